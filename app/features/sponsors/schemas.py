"""
Pydantic schemas for the external representation of sponsors and members.

Soft-delete and bookkeeping timestamps are kept out of the external representation.
"""
from datetime import datetime
from pydantic import BaseModel, Field


class SponsorResponse(BaseModel):
    """External representation of a sponsor."""
    id: str
    name: str | None = None
    display_name: str | None = Field(None, description="Display name, falling back to the sponsor name")
    address1: str | None = None
    address2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    phone: str | None = None
    individual: bool = False
    status: str

    model_config = {"from_attributes": True}

    @classmethod
    def from_sponsor(cls, sponsor) -> "SponsorResponse":
        return cls.model_validate(sponsor).model_copy(
            update={"display_name": sponsor.get_display_name()}
        )


class SponsorMemberResponse(BaseModel):
    """A member of a sponsor's roster."""
    id: str
    sponsor_id: str
    user_id: str
    role: str
    created_at: datetime

    model_config = {"from_attributes": True}
