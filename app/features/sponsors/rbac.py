"""
Sponsor-scoped RBAC provisioning and teardown.

Each sponsor owns three roles in the authority (``sponsor_<id>_owner``,
``sponsor_<id>_editor``, ``sponsor_<id>_staff``) and four document permissions
(``sponsor_<id>_<action>_document`` for create, edit, delete and manage).
Provisioning rebuilds them from scratch and attaches each role to the users
holding the matching membership role.

Provisioning and teardown for one sponsor never overlap within a process, and
each runs in a single transaction that is either committed or rolled back.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.authority import (
    attach_role_to_user,
    create_permission,
    create_role,
    delete_permission,
    delete_role,
    detach_role_from_user,
    find_permission_by_name,
    find_sponsor_roles,
    sync_role_permissions,
)
from app.features.permissions.models import Role
from app.features.users.directory import get_users_by_ids
from app.features.sponsors.models import ROLE_DOCUMENT_ACTIONS, Sponsor, SponsorRole
from app.features.sponsors.members import find_members, find_users_by_role
from app.features.sponsors.exceptions import MissingSponsorId
from app.utils import get_logger


log = get_logger(__name__)

DOCUMENT_RESOURCE = "document"

_sponsor_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


@asynccontextmanager
async def sponsor_lock(sponsor_id: str) -> AsyncIterator[None]:
    """Hold the in-process lock for ``sponsor_id``."""
    lock = _sponsor_locks.get(sponsor_id)
    if lock is None:
        lock = asyncio.Lock()
        _sponsor_locks[sponsor_id] = lock

    async with lock:
        yield


async def create_rbac_rules(db: AsyncSession, sponsor: Sponsor) -> dict[str, Role]:
    """
    Rebuild the sponsor's roles and permissions and attach them to its members.

    Existing sponsor-scoped rules are torn down first, so calling this again
    yields the same end state.

    On failure the transaction is rolled back and the sponsor is reloaded.

    Returns:
        The owner, editor and staff roles keyed by membership role

    Raises:
        MissingSponsorId: the sponsor has not been saved yet
    """
    if not sponsor.id:
        raise MissingSponsorId("The sponsor must have a ID set in order to create RBAC rules")

    sponsor_id = sponsor.id
    async with sponsor_lock(sponsor_id):
        try:
            await _destroy_rbac_rules(db, sponsor)
            roles = await _provision_rbac_rules(db, sponsor)
            await db.commit()
        except Exception:
            log.error(f"Error provisioning RBAC rules for sponsor {sponsor_id}", exc_info=True)
            await _rollback(db, sponsor)
            raise

    log.info(f"Provisioned RBAC rules for sponsor {sponsor_id}")
    return roles


async def destroy_rbac_rules(db: AsyncSession, sponsor: Sponsor) -> None:
    """
    Remove the sponsor's roles and permissions from the authority.

    Members lose the sponsor-scoped roles; the membership roster itself is untouched.
    On failure the transaction is rolled back and the sponsor is reloaded.

    Raises:
        MissingSponsorId: the sponsor has not been saved yet
    """
    if not sponsor.id:
        raise MissingSponsorId("The sponsor must have a ID set in order to destroy RBAC rules")

    sponsor_id = sponsor.id
    async with sponsor_lock(sponsor_id):
        try:
            await _destroy_rbac_rules(db, sponsor)
            await db.commit()
        except Exception:
            log.error(f"Error destroying RBAC rules for sponsor {sponsor_id}", exc_info=True)
            await _rollback(db, sponsor)
            raise

    log.info(f"Destroyed RBAC rules for sponsor {sponsor_id}")


async def _rollback(db: AsyncSession, sponsor: Sponsor) -> None:
    # Rollback expires every instance; reload the sponsor so it stays usable
    await db.rollback()
    if inspect(sponsor).persistent:
        await db.refresh(sponsor)


async def _provision_rbac_rules(db: AsyncSession, sponsor: Sponsor) -> dict[str, Role]:
    owner_role = await create_role(
        db, sponsor.get_role_id(SponsorRole.OWNER), sponsor_id=sponsor.id,
        description=f"Owner of sponsor {sponsor.get_display_name()}"
    )

    perm_lookup: dict[str, str] = {}
    for perm in sponsor.get_permissions_array():
        permission = await create_permission(
            db,
            name=perm["name"],
            display_name=perm["display_name"],
            resource=DOCUMENT_RESOURCE,
            action=perm["action"],
            sponsor_id=sponsor.id,
        )
        perm_lookup[perm["action"]] = permission.id

    await sync_role_permissions(
        db, owner_role, [perm_lookup[action] for action in ROLE_DOCUMENT_ACTIONS[SponsorRole.OWNER]]
    )

    editor_role = await create_role(
        db, sponsor.get_role_id(SponsorRole.EDITOR), sponsor_id=sponsor.id,
        description=f"Editor of sponsor {sponsor.get_display_name()}"
    )
    await sync_role_permissions(
        db, editor_role, [perm_lookup[action] for action in ROLE_DOCUMENT_ACTIONS[SponsorRole.EDITOR]]
    )

    # Staff carries no document permissions
    staff_role = await create_role(
        db, sponsor.get_role_id(SponsorRole.STAFF), sponsor_id=sponsor.id,
        description=f"Staff of sponsor {sponsor.get_display_name()}"
    )

    roles = {
        SponsorRole.OWNER.value: owner_role,
        SponsorRole.EDITOR.value: editor_role,
        SponsorRole.STAFF.value: staff_role,
    }

    for member_role, role in roles.items():
        for user in await find_users_by_role(db, sponsor, member_role):
            await attach_role_to_user(db, user.id, role)

    return roles


async def _destroy_rbac_rules(db: AsyncSession, sponsor: Sponsor) -> None:
    role_names = [sponsor.get_role_id(role) for role in SponsorRole]
    roles = await find_sponsor_roles(db, sponsor.id, role_names)

    members = await find_members(db, sponsor)
    users = await get_users_by_ids(db, [member.user_id for member in members])

    for role in roles:
        for member in members:
            if member.user_id not in users:
                log.warning(
                    f"Member {member.id} of sponsor {sponsor.id} references missing user "
                    f"{member.user_id}; skipping detach of {role.name}"
                )
                continue
            await detach_role_from_user(db, member.user_id, role)
        await delete_role(db, role)

    for perm in sponsor.get_permissions_array():
        permission = await find_permission_by_name(db, perm["name"])
        if permission is not None:
            await delete_permission(db, permission)
