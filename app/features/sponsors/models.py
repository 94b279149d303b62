"""
Sponsor models.

Sponsors are organizations (or single people acting alone) that own documents.
Members are linked to a sponsor through SponsorMember with one of three roles.
Sponsor-scoped roles and permissions live in the RBAC authority and are named
after the sponsor id.
"""
from typing import Any
from sqlalchemy import String, ForeignKey, Boolean, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column, reconstructor, validates
import enum

from app.core.database.base import Base, TimestampMixin, SoftDeleteMixin, generate_ulid
from app.features.sponsors.exceptions import InvalidRole, InvalidStatus, SponsorNotSaved
from app.features.sponsors.validation import ErrorSet, validate


class SponsorStatus(str, enum.Enum):
    """Lifecycle status of a sponsor."""
    ACTIVE = "active"
    PENDING = "pending"


class SponsorRole(str, enum.Enum):
    """Role of a member within a sponsor. No role implies another."""
    OWNER = "owner"
    EDITOR = "editor"
    STAFF = "staff"


# Document actions a sponsor can grant, with their display labels
DOCUMENT_PERMISSIONS: tuple[tuple[str, str], ...] = (
    ("create", "Create Documents"),
    ("edit", "Edit Documents"),
    ("delete", "Delete Documents"),
    ("manage", "Manage Documents"),
)

# Document actions granted to each sponsor role
ROLE_DOCUMENT_ACTIONS: dict[SponsorRole, tuple[str, ...]] = {
    SponsorRole.OWNER: ("create", "edit", "delete", "manage"),
    SponsorRole.EDITOR: ("create", "edit", "manage"),
    SponsorRole.STAFF: (),
}

# Attributes stored for a sponsor, in display order
SPONSOR_FIELDS: tuple[str, ...] = (
    "name",
    "display_name",
    "address1",
    "address2",
    "city",
    "state",
    "postal_code",
    "phone",
    "individual",
    "status",
)


class Sponsor(Base, TimestampMixin, SoftDeleteMixin):
    """
    Sponsor model.

    Carries its own validation error set between a failed validation and the
    next save attempt. The error set is a plain attribute and is never stored.
    """
    __tablename__ = "sponsors"

    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    name: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Address fields
    address1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Personal sponsor (one user acting alone) vs organizational sponsor
    individual: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=SponsorStatus.PENDING.value,
        nullable=False,
        index=True
    )

    def __init__(self, **kwargs: Any):
        kwargs.setdefault("status", SponsorStatus.PENDING.value)
        kwargs.setdefault("individual", False)
        super().__init__(**kwargs)
        self.validation_errors: ErrorSet = {}

    @reconstructor
    def _init_on_load(self) -> None:
        self.validation_errors = {}

    @validates("status")
    def _check_status(self, key: str, value: Any) -> str:
        if not self.is_valid_status(value):
            raise InvalidStatus(value)
        return SponsorStatus(value).value

    # ------------------------------------------------------------------
    # Class helpers
    # ------------------------------------------------------------------

    @staticmethod
    def get_statuses() -> list[str]:
        return [status.value for status in SponsorStatus]

    @staticmethod
    def is_valid_status(status: Any) -> bool:
        return status in Sponsor.get_statuses()

    @staticmethod
    def is_valid_role(role: Any) -> bool:
        return role in [r.value for r in SponsorRole]

    @staticmethod
    def get_roles(for_html: bool = False) -> list[str] | dict[str, str]:
        """
        List the member roles.

        Args:
            for_html: Return a ``{role: role}`` mapping suitable for select options
        """
        roles = [role.value for role in SponsorRole]
        if for_html:
            return {role: role for role in roles}
        return roles

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def to_attributes(self) -> dict[str, Any]:
        """The persisted attribute set. Never includes the validation errors."""
        attributes = {field: getattr(self, field) for field in SPONSOR_FIELDS}
        if self.id is not None:
            attributes["id"] = self.id
        return attributes

    def validate(self) -> bool:
        """
        Check the required fields.

        On failure the error set replaces any previous one and False is returned;
        on success the error set is cleared. Never raises.
        """
        ok, errors = validate(self.to_attributes())
        self.validation_errors = errors
        return ok

    def get_errors(self) -> ErrorSet:
        return self.validation_errors

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def get_display_name(self) -> str:
        if self.display_name:
            return self.display_name
        if self.name:
            return self.name
        return ""

    def is_active(self) -> bool:
        return self.status == SponsorStatus.ACTIVE

    # ------------------------------------------------------------------
    # RBAC naming
    # ------------------------------------------------------------------

    def get_role_id(self, role: str) -> str:
        """Name of the authority role backing ``role`` for this sponsor."""
        role = getattr(role, "value", role)
        if isinstance(role, str):
            role = role.lower()

        if not self.is_valid_role(role):
            raise InvalidRole(role)

        return f"sponsor_{self.id}_{role}"

    def get_permission_name(self, action: str) -> str:
        return f"sponsor_{self.id}_{action}_document"

    def get_permissions_array(self) -> list[dict[str, str]]:
        """The four document permissions this sponsor provisions."""
        return [
            {
                "name": self.get_permission_name(action),
                "display_name": label,
                "action": action,
            }
            for action, label in DOCUMENT_PERMISSIONS
        ]

    def __repr__(self) -> str:
        return f"<Sponsor(id={self.id}, name={self.name!r}, status={self.status})>"


@event.listens_for(Sponsor, "before_insert")
@event.listens_for(Sponsor, "before_update")
def sponsor_before_write(mapper, connection, target: Sponsor) -> None:
    """
    Refuse to write a sponsor that fails the required-field rules.

    Args:
        mapper: SQLAlchemy mapper
        connection: Database connection
        target: Sponsor instance being inserted or updated
    """
    if not target.validate():
        raise SponsorNotSaved(f"Refusing to write invalid sponsor {target.id}", target.get_errors())


class SponsorMember(Base, TimestampMixin):
    """
    Membership of a user in a sponsor.

    ``user_id`` references the user directory by id only; the user may have
    been removed since the membership was created.
    """
    __tablename__ = "sponsor_members"
    __table_args__ = (
        UniqueConstraint("sponsor_id", "user_id", name="uq_sponsor_members_sponsor_user"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)

    sponsor_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("sponsors.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    user_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, index=True)

    @validates("role")
    def _check_role(self, key: str, value: Any) -> str:
        if not Sponsor.is_valid_role(value):
            raise InvalidRole(value)
        return SponsorRole(value).value

    def __repr__(self) -> str:
        return f"<SponsorMember(id={self.id}, sponsor_id={self.sponsor_id}, user_id={self.user_id}, role={self.role})>"
