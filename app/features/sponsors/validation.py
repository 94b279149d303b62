"""
Required-field validation for sponsor attributes.

The rules are expressed as a pydantic model; a failed validation is turned into
an error set mapping each failing field to its human-readable messages.
"""
from typing import Annotated, Any, Mapping
from pydantic import BaseModel, ConfigDict, Field, ValidationError


ErrorSet = dict[str, list[str]]

# A required value must be present, not None and not the empty string
Required = Annotated[str, Field(min_length=1)]

CUSTOM_MESSAGES: dict[str, str] = {
    "name": "The sponsor name is required",
    "address1": "The sponsor address is required",
    "city": "The sponsor city is required",
    "state": "The sponsor state is required",
    "postal_code": "The sponsor postal code is required",
    "phone": "The sponsor phone number is required",
    "display_name": "The sponsor display name is required",
}


class SponsorRules(BaseModel):
    """Fields every sponsor must carry before it can be saved."""
    name: Required
    address1: Required
    city: Required
    state: Required
    postal_code: Required
    phone: Required
    display_name: Required

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


def validate(
    attributes: Mapping[str, Any],
    rules: type[BaseModel] = SponsorRules,
    messages: Mapping[str, str] = CUSTOM_MESSAGES
) -> tuple[bool, ErrorSet]:
    """
    Validate ``attributes`` against ``rules``.

    Returns:
        (True, {}) when every rule passes, otherwise (False, errors) where errors
        holds one message per failing field, in rule order.
    """
    try:
        rules.model_validate(dict(attributes))
    except ValidationError as exc:
        failed = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        errors: ErrorSet = {}
        for field in rules.model_fields:
            if field in failed:
                errors[field] = [messages.get(field, f"The {field} field is invalid")]
        return False, errors

    return True, {}
