from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProfileQuery(BaseModel):
    """Parameters of one remote search run.

    Frozen: built once per request by the front door and handed to the
    orchestration client, which never mutates it.
    """
    model_config = ConfigDict(frozen=True)

    role: str = Field(..., min_length=1, description="Role / job title searched for")
    industry: Optional[str] = None
    organisation: Optional[str] = None
    profiles_requested: int = Field(10, ge=1, le=1000, description="Profiles the remote agent should collect")

    @field_validator("role")
    @classmethod
    def _strip_role(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("role must not be blank")
        return v

    @field_validator("industry", "organisation")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ProfileRecord(BaseModel):
    """Canonical profile produced by the output normalizer.

    Every field is optional: a source record missing a field yields None
    rather than a failure.
    """
    name: Optional[str] = None
    job: Optional[str] = None
    company: Optional[str] = None
    location: Optional[str] = None
    profile_url: Optional[str] = Field(None, serialization_alias="profileUrl")

    def to_public_dict(self) -> dict[str, Optional[str]]:
        return self.model_dump(by_alias=True)


class ProfileSearchRequest(BaseModel):
    """Inbound JSON body of POST /get_linkedin_profiles."""
    role: Optional[str] = None
    industry: Optional[str] = None
    organisation: Optional[str] = None
    limit: Optional[int] = Field(None, ge=1, le=100)

    @property
    def has_required_fields(self) -> bool:
        return bool((self.role or "").strip() and (self.organisation or "").strip())

    def to_query(self, profiles_requested: int) -> ProfileQuery:
        return ProfileQuery(
            role=self.role or "",
            industry=self.industry,
            organisation=self.organisation,
            profiles_requested=max(profiles_requested, self.limit or 0),
        )
