"""
Sponsor membership operations.

A user belongs to a sponsor at most once, with exactly one role. Roles are flat:
holding ``owner`` does not satisfy a check for ``editor``.
"""
from typing import Optional
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.users.models import User
from app.features.sponsors.models import Sponsor, SponsorMember, SponsorRole
from app.features.sponsors.exceptions import MemberNotFound, MissingRole, MissingSponsorId
from app.utils import get_logger


log = get_logger(__name__)


async def find_member_by_user_id(
    db: AsyncSession,
    sponsor: Sponsor,
    user_id: str
) -> SponsorMember | None:
    """
    Get the membership of ``user_id`` in ``sponsor``.

    Raises:
        MissingSponsorId: if the sponsor has not been saved yet
    """
    if not sponsor.id:
        raise MissingSponsorId("You must have a sponsor ID set in order to search for members")

    result = await db.execute(
        select(SponsorMember).where(
            and_(
                SponsorMember.sponsor_id == sponsor.id,
                SponsorMember.user_id == user_id
            )
        )
    )
    return result.scalar_one_or_none()


async def find_members(db: AsyncSession, sponsor: Sponsor) -> list[SponsorMember]:
    """Get the sponsor's roster, oldest membership first."""
    result = await db.execute(
        select(SponsorMember)
        .where(SponsorMember.sponsor_id == sponsor.id)
        .order_by(SponsorMember.created_at, SponsorMember.id)
    )
    return list(result.scalars().all())


async def add_member(
    db: AsyncSession,
    sponsor: Sponsor,
    user_id: str,
    role: Optional[str] = None
) -> SponsorMember:
    """
    Add a user to the sponsor, or change the role of an existing member.

    A new membership needs a role. For an existing membership the role is only
    changed when a non-empty role is given; otherwise it is left as it was.

    Raises:
        MissingRole: adding a new member without a role
        MissingSponsorId: the sponsor has not been saved yet
        InvalidRole: role is not owner, editor or staff
    """
    member = await find_member_by_user_id(db, sponsor, user_id)

    if member is None:
        if not role:
            raise MissingRole("You must provide a role if adding a new member")

        if not sponsor.id:
            raise MissingSponsorId("The sponsor must have a ID set in order to add a member")

        member = SponsorMember(sponsor_id=sponsor.id, user_id=user_id, role=role)
        db.add(member)
        log.info(f"Adding user {user_id} to sponsor {sponsor.id} as {member.role}")
    elif role:
        if member.role != role:
            log.info(f"Changing role of user {user_id} in sponsor {sponsor.id} from {member.role} to {role}")
        member.role = role

    await db.commit()
    await db.refresh(member)
    return member


async def user_has_role(
    db: AsyncSession,
    sponsor: Sponsor,
    user: User,
    role: str
) -> bool:
    """True if ``user`` is a member of ``sponsor`` with exactly ``role``."""
    result = await db.execute(
        select(SponsorMember.role).where(
            and_(
                SponsorMember.sponsor_id == sponsor.id,
                SponsorMember.user_id == user.id
            )
        )
    )
    member_role = result.scalar_one_or_none()
    return member_role is not None and member_role == role


async def is_sponsor_owner(db: AsyncSession, sponsor: Sponsor, user_id: str) -> bool:
    """True if ``user_id`` owns the sponsor. Non-members are not owners."""
    member = await find_member_by_user_id(db, sponsor, user_id)
    return member is not None and member.role == SponsorRole.OWNER


async def get_member_role(db: AsyncSession, sponsor: Sponsor, user_id: str) -> str:
    """
    Get the role of ``user_id`` in the sponsor.

    Raises:
        MemberNotFound: the user is not a member
    """
    member = await find_member_by_user_id(db, sponsor, user_id)
    if member is None:
        raise MemberNotFound(f"User {user_id} is not a member of sponsor {sponsor.id}")
    return member.role


async def find_users_by_role(db: AsyncSession, sponsor: Sponsor, role: str) -> list[User]:
    """
    Get the users holding ``role`` in the sponsor.

    An unknown role yields an empty list. Memberships whose user no longer
    exists in the directory are skipped.
    """
    role = getattr(role, "value", role)
    if not Sponsor.is_valid_role(role):
        return []

    result = await db.execute(
        select(User)
        .join(SponsorMember, SponsorMember.user_id == User.id)
        .where(
            and_(
                SponsorMember.sponsor_id == sponsor.id,
                SponsorMember.role == role
            )
        )
        .order_by(SponsorMember.created_at, SponsorMember.id)
    )
    return list(result.scalars().all())


async def user_can_create_document(db: AsyncSession, sponsor: Sponsor, user: User) -> bool:
    """Editors and owners may create documents for the sponsor."""
    return (
        await user_has_role(db, sponsor, user, SponsorRole.EDITOR)
        or await user_has_role(db, sponsor, user, SponsorRole.OWNER)
    )
