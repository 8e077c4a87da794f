"""
Base Models for API and Progress Validation

Every request, response and stored progress document is validated through
one of three bases:

    API Request    → StrictRequest (extra="forbid") → Route Handler / Operator
    DB Row         → StrictResponse (extra="ignore") → API Response
    Progress JSON  ↔ APIModel (extra="forbid", both directions)

Unknown request fields fail with 422 instead of being silently dropped, so a
client sending {"ratting": 3} learns about it immediately.
"""

from pydantic import BaseModel, ConfigDict


class StrictRequest(BaseModel):
    """
    Base model for request bodies and operator action data.

    Features:
        - extra="forbid": Unknown fields raise a validation error
        - validate_default=True: Validates default values
        - str_strip_whitespace=True: Trims whitespace from strings
        - from_attributes=True: Allows ORM model conversion
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
        from_attributes=True,
    )


class StrictResponse(BaseModel):
    """
    Base model for response bodies.

    Built from ORM rows with model_validate(); columns the model does not
    declare are ignored.
    """

    model_config = ConfigDict(
        extra="ignore",
        validate_default=True,
        from_attributes=True,
    )


class APIModel(BaseModel):
    """Base for models that are both stored and returned, such as session progress."""

    model_config = ConfigDict(
        extra="forbid",
        from_attributes=True,
    )
