"""
User model with ULID primary keys.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class User(Base, TimestampMixin):
    """
    User model representing people who can belong to sponsors.
    
    Uses ULID instead of auto-incrementing integers for better distributed systems support.
    The profile fields seed the attributes of an individual sponsor.
    """
    __tablename__ = "users"
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # User information
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    fname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    lname: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    
    # Optional profile fields
    address1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(50), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    
    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    @property
    def full_name(self) -> str:
        return f"{self.fname} {self.lname}"
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
