"""Pydantic v2 models for sender identities."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class IdentitySettings(BaseModel):
    """Per-identity preferences, stored as versioned JSON.

    Unknown keys are rejected so a row written by a newer schema version
    fails loudly instead of being silently truncated.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: int = Field(default=1, ge=1)
    display_name: str | None = None
    preferred_language: str | None = None


class Identity(BaseModel):
    """A sender identity as stored in the datastore."""

    model_config = ConfigDict(frozen=True)

    identity_id: str
    primary_address: str
    settings: IdentitySettings = Field(default_factory=IdentitySettings)
    created_at: datetime


class ResolvedIdentity(BaseModel):
    """The identity an inbound email was attributed to.

    ``is_newly_created`` is True only for the request whose insert created
    the row.
    """

    model_config = ConfigDict(frozen=True)

    identity_id: str
    primary_address: str
    is_newly_created: bool = False
    settings: IdentitySettings = Field(default_factory=IdentitySettings)
