"""
Role/permission authority operations.

Implements:
- Role and permission creation and deletion
- Role → permission assignment with replace-set ("sync") semantics
- User → role attachment and detachment
- Permission checking for a user, optionally within one sponsor

These helpers flush but never commit: the calling operation owns the transaction.
"""
from collections.abc import Iterable
from typing import Dict, List, Optional
from sqlalchemy import select, delete, insert, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.users.models import User
from app.features.permissions.models import (
    Permission,
    Role,
    role_permissions,
    user_roles,
)
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Roles
# ============================================================================

async def create_role(
    db: AsyncSession,
    name: str,
    sponsor_id: Optional[str] = None,
    description: Optional[str] = None
) -> Role:
    """Create a role and flush it so its id is available."""
    role = Role(name=name, sponsor_id=sponsor_id, description=description)
    db.add(role)
    await db.flush()
    log.debug(f"Created role {role.name} ({role.id})")
    return role


async def find_role_by_name(db: AsyncSession, name: str) -> Role | None:
    result = await db.execute(select(Role).where(Role.name == name))
    return result.scalars().first()


async def find_sponsor_roles(
    db: AsyncSession,
    sponsor_id: str,
    names: Optional[Iterable[str]] = None
) -> List[Role]:
    """
    Get the roles scoped to a sponsor.

    Args:
        db: Database session
        sponsor_id: Sponsor scope
        names: Optional subset of role names to restrict to

    Returns:
        Matching roles ordered by name
    """
    stmt = select(Role).where(Role.sponsor_id == sponsor_id)
    if names is not None:
        stmt = stmt.where(Role.name.in_(list(names)))
    result = await db.execute(stmt.order_by(Role.name))
    return list(result.scalars().all())


async def delete_role(db: AsyncSession, role: Role) -> None:
    """Delete a role together with its permission and user assignments."""
    await db.execute(delete(user_roles).where(user_roles.c.role_id == role.id))
    await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role.id))
    await db.delete(role)
    await db.flush()
    log.debug(f"Deleted role {role.name} ({role.id})")


# ============================================================================
# Permissions
# ============================================================================

async def create_permission(
    db: AsyncSession,
    name: str,
    display_name: Optional[str],
    resource: str,
    action: str,
    sponsor_id: Optional[str] = None,
    description: Optional[str] = None
) -> Permission:
    """Create a permission and flush it so its id is available."""
    permission = Permission(
        name=name,
        display_name=display_name,
        resource=resource,
        action=action.lower(),
        sponsor_id=sponsor_id,
        description=description,
    )
    db.add(permission)
    await db.flush()
    log.debug(f"Created permission {permission.name} ({permission.id})")
    return permission


async def find_permission_by_name(db: AsyncSession, name: str) -> Permission | None:
    result = await db.execute(select(Permission).where(Permission.name == name))
    return result.scalars().first()


async def delete_permission(db: AsyncSession, permission: Permission) -> None:
    """Delete a permission and remove it from every role holding it."""
    await db.execute(delete(role_permissions).where(role_permissions.c.permission_id == permission.id))
    await db.delete(permission)
    await db.flush()
    log.debug(f"Deleted permission {permission.name} ({permission.id})")


# ============================================================================
# Role → Permission assignment
# ============================================================================

async def sync_role_permissions(
    db: AsyncSession,
    role: Role,
    permission_ids: Iterable[str]
) -> None:
    """
    Replace the permission set of a role.

    After this call the role holds exactly ``permission_ids``, whatever it held before.
    """
    wanted = list(dict.fromkeys(permission_ids))

    await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role.id))
    if wanted:
        await db.execute(
            insert(role_permissions),
            [{"role_id": role.id, "permission_id": permission_id} for permission_id in wanted]
        )
    log.debug(f"Synced {len(wanted)} permissions onto role {role.name}")


async def get_role_permission_names(db: AsyncSession, role_id: str) -> List[str]:
    stmt = (
        select(Permission.name)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .where(role_permissions.c.role_id == role_id)
        .order_by(Permission.name)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


# ============================================================================
# User → Role assignment
# ============================================================================

async def attach_role_to_user(db: AsyncSession, user_id: str, role: Role) -> bool:
    """
    Give a user account a role.

    Returns:
        True if the role was attached, False if the user already held it
    """
    check_stmt = select(user_roles).where(
        and_(
            user_roles.c.user_id == user_id,
            user_roles.c.role_id == role.id
        )
    )
    check_result = await db.execute(check_stmt)
    if check_result.first():
        return False

    await db.execute(insert(user_roles).values(user_id=user_id, role_id=role.id))
    log.debug(f"Attached role {role.name} to user {user_id}")
    return True


async def detach_role_from_user(db: AsyncSession, user_id: str, role: Role) -> bool:
    """
    Take a role away from a user account.

    Returns:
        True if an assignment was removed
    """
    result = await db.execute(
        delete(user_roles).where(
            and_(
                user_roles.c.user_id == user_id,
                user_roles.c.role_id == role.id
            )
        )
    )
    removed = bool(result.rowcount)
    if removed:
        log.debug(f"Detached role {role.name} from user {user_id}")
    return removed


async def get_user_roles(
    db: AsyncSession,
    user_id: str,
    sponsor_id: Optional[str] = None
) -> List[Role]:
    """Get the roles a user holds, optionally only those scoped to one sponsor."""
    stmt = (
        select(Role)
        .join(user_roles, user_roles.c.role_id == Role.id)
        .where(user_roles.c.user_id == user_id)
    )
    if sponsor_id is not None:
        stmt = stmt.where(Role.sponsor_id == sponsor_id)
    result = await db.execute(stmt.order_by(Role.name))
    return list(result.scalars().all())


# ============================================================================
# Permission Checking Functions
# ============================================================================

async def get_user_permissions(
    db: AsyncSession,
    user_id: str,
    sponsor_id: Optional[str] = None
) -> List[Permission]:
    """
    Get all permissions a user has through the roles attached to their account.

    Args:
        db: Database session
        user_id: User to inspect
        sponsor_id: Restrict to permissions scoped to this sponsor

    Returns:
        List of unique Permission objects
    """
    permissions_map: Dict[str, Permission] = {}

    stmt = (
        select(Permission)
        .join(role_permissions, role_permissions.c.permission_id == Permission.id)
        .join(user_roles, user_roles.c.role_id == role_permissions.c.role_id)
        .where(user_roles.c.user_id == user_id)
    )
    if sponsor_id is not None:
        stmt = stmt.where(Permission.sponsor_id == sponsor_id)

    result = await db.execute(stmt)
    for perm in result.scalars().all():
        permissions_map[perm.id] = perm

    return list(permissions_map.values())


async def has_permission(
    db: AsyncSession,
    user: User,
    resource: str,
    action: str,
    sponsor_id: Optional[str] = None
) -> bool:
    """
    Check if user has permission to perform an action on a resource.

    Args:
        db: Database session
        user: User object
        resource: Resource type (e.g., "document")
        action: Action (e.g., "create", "edit", "delete", "manage")
        sponsor_id: Sponsor context; None checks every permission the user holds

    Returns:
        True if user has permission, False otherwise
    """
    if not user.is_active:
        log.debug(f"User {user.id} is inactive - denied permission {action} on {resource}")
        return False

    permissions = await get_user_permissions(db, user.id, sponsor_id)

    for permission in permissions:
        if permission.resource == resource and permission.action == action:
            log.debug(
                f"User {user.id} granted permission {action} on {resource} "
                f"via permission {permission.id} in sponsor {sponsor_id}"
            )
            return True

    log.debug(f"User {user.id} denied permission {action} on {resource} in sponsor {sponsor_id}")
    return False
