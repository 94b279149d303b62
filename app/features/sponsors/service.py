"""
Sponsor lifecycle operations: saving, lookup, soft deletion and the
individual-sponsor factory.
"""
import logging
from typing import Any, Mapping, Optional
from sqlalchemy import select, and_, inspect
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.users.directory import get_user_by_id
from app.features.sponsors.models import Sponsor, SponsorMember, SponsorRole, SponsorStatus
from app.features.sponsors.members import add_member, find_member_by_user_id
from app.features.sponsors.exceptions import (
    MemberNotFound,
    SponsorNotFound,
    SponsorNotSaved,
    UserNotFound,
)
from app.utils import get_logger


log = get_logger(__name__)

# Profile fields copied onto an individual sponsor
PROFILE_FIELDS = ("address1", "address2", "city", "state", "postal_code", "phone")


async def save_sponsor(
    db: AsyncSession,
    sponsor: Sponsor,
    logger: Optional[logging.Logger] = None
) -> bool:
    """
    Validate and persist a sponsor.

    Validation runs first. When it fails nothing is written, the failure is
    logged at ERROR with the field errors and the raw attributes, and False is
    returned; the errors stay available through ``sponsor.get_errors()``.
    An already-saved sponsor is reloaded from the store on failure, so its
    rejected changes are dropped and a later commit cannot write them.

    Args:
        db: Database session
        sponsor: Sponsor to save (new or already persisted)
        logger: Where validation failures are reported; defaults to this module's logger

    Returns:
        True if the sponsor was saved
    """
    logger = logger or log

    if not sponsor.validate():
        logger.error(
            f"Unable to validate sponsor: errors={sponsor.get_errors()} attributes={sponsor.to_attributes()}"
        )
        if inspect(sponsor).persistent:
            errors = sponsor.get_errors()
            await db.refresh(sponsor)
            sponsor.validation_errors = errors
        return False

    db.add(sponsor)
    await db.commit()
    await db.refresh(sponsor)
    return True


async def create_sponsor(db: AsyncSession, **attributes: Any) -> Sponsor:
    """
    Build and save a sponsor from ``attributes``.

    Raises:
        SponsorNotSaved: the attributes failed validation
    """
    sponsor = Sponsor(**attributes)
    if not await save_sponsor(db, sponsor):
        raise SponsorNotSaved("Sponsor failed validation", sponsor.get_errors())
    return sponsor


async def find_sponsor(
    db: AsyncSession,
    sponsor_id: str,
    with_deleted: bool = False
) -> Sponsor | None:
    """Get a sponsor by id. Soft-deleted sponsors are only returned when ``with_deleted`` is set."""
    stmt = select(Sponsor).where(Sponsor.id == sponsor_id)
    if not with_deleted:
        stmt = stmt.where(Sponsor.deleted_at.is_(None))
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def soft_delete_sponsor(db: AsyncSession, sponsor: Sponsor) -> None:
    """Mark the sponsor deleted. The row, its members and its RBAC rules are kept."""
    sponsor.mark_deleted()
    await db.commit()
    await db.refresh(sponsor)
    log.info(f"Soft-deleted sponsor {sponsor.id}")


async def find_sponsors_by_user_id(
    db: AsyncSession,
    user_id: str,
    only_active: bool = True
) -> list[Sponsor]:
    """
    Get the sponsors a user is a member of.

    Args:
        db: Database session
        user_id: Member's user id
        only_active: Restrict to sponsors with status ``active``
    """
    stmt = (
        select(Sponsor)
        .join(SponsorMember, SponsorMember.sponsor_id == Sponsor.id)
        .where(
            and_(
                SponsorMember.user_id == user_id,
                Sponsor.deleted_at.is_(None)
            )
        )
    )
    if only_active:
        stmt = stmt.where(Sponsor.status == SponsorStatus.ACTIVE.value)

    result = await db.execute(stmt.order_by(Sponsor.name))
    return list(result.scalars().all())


async def find_sponsor_by_member_id(db: AsyncSession, member_id: str) -> Sponsor | None:
    """Get the sponsor a membership record belongs to."""
    result = await db.execute(
        select(SponsorMember).where(SponsorMember.id == member_id)
    )
    member = result.scalar_one_or_none()

    if member is None:
        return None

    return await find_sponsor(db, member.sponsor_id)


async def is_valid_user_for_sponsor(db: AsyncSession, user_id: str, sponsor_id: str) -> bool:
    """
    Check that ``user_id`` is a member of ``sponsor_id``.

    Raises:
        SponsorNotFound: no live sponsor with that id
        MemberNotFound: the user is not a member
    """
    sponsor = await find_sponsor(db, sponsor_id)

    if sponsor is None:
        raise SponsorNotFound(f"Invalid Sponsor ID {sponsor_id}")

    member = await find_member_by_user_id(db, sponsor, user_id)

    if member is None:
        raise MemberNotFound(f"Invalid Member ID {user_id}")

    return True


def individual_sponsor_defaults(user) -> dict[str, Any]:
    """Sponsor attributes derived from a user's profile."""
    attrs: dict[str, Any] = {
        "name": user.full_name,
        "display_name": user.full_name,
    }
    for field in PROFILE_FIELDS:
        attrs[field] = getattr(user, field) or config.INDIVIDUAL_SPONSOR_PLACEHOLDER
    attrs["individual"] = True
    attrs["status"] = SponsorStatus.PENDING.value
    return attrs


async def create_individual_sponsor(
    db: AsyncSession,
    user_id: str,
    overrides: Optional[Mapping[str, Any]] = None
) -> Sponsor:
    """
    Create a sponsor representing one user acting alone.

    Attributes come from the user's profile, with ``overrides`` taking
    precedence. The user becomes the sponsor's owner.

    Raises:
        UserNotFound: no user with ``user_id``
        SponsorNotSaved: the merged attributes failed validation
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise UserNotFound(f"Invalid User ID {user_id}")

    attrs = individual_sponsor_defaults(user)
    attrs.update(overrides or {})

    sponsor = Sponsor(**attrs)
    if not await save_sponsor(db, sponsor):
        raise SponsorNotSaved(f"Unable to create individual sponsor for user {user_id}", sponsor.get_errors())

    await add_member(db, sponsor, user_id, SponsorRole.OWNER.value)
    log.info(f"Created individual sponsor {sponsor.id} for user {user_id}")

    return sponsor
