"""
Permission and Role models for the shared RBAC authority.

This module implements the role/permission store used for authorization checks:
- Named roles, optionally scoped to a sponsor
- Named permissions on a resource/action pair, optionally scoped to a sponsor
- Role → permission assignments
- User → role assignments
"""
from datetime import datetime
from sqlalchemy import String, ForeignKey, Table, Column, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


# ============================================================================
# Association Tables
# ============================================================================

# Role-Permission relationship
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(26), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

# User-Role relationship (the roles a user account holds)
user_roles = Table(
    "user_roles",
    Base.metadata,
    Column("user_id", String(26), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", String(26), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=datetime.now),
)


# ============================================================================
# Core Models
# ============================================================================

class Permission(Base, TimestampMixin):
    """
    Permission model defining a specific action on a resource.

    Examples:
    - name="sponsor_<id>_create_document", resource="document", action="create"
    - name="sponsor_<id>_manage_document", resource="document", action="manage"
    """
    __tablename__ = "permissions"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Permission definition
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    resource: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Optional: Link to a specific sponsor (null = application-wide permission)
    sponsor_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("sponsors.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r}, resource={self.resource}, action={self.action})>"


class Role(Base, TimestampMixin):
    """
    Role model for grouping permissions.

    Roles are sponsor-specific or global (system roles).
    Examples: sponsor_<id>_owner, sponsor_<id>_editor, sponsor_<id>_staff
    """
    __tablename__ = "roles"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    # Role definition
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Optional: Link to specific sponsor (null = system-wide role)
    sponsor_id: Mapped[str | None] = mapped_column(
        String(26),
        ForeignKey("sponsors.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name={self.name!r}, sponsor_id={self.sponsor_id})>"
