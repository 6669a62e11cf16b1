"""
Database Schemas for the StudyMate backend

The Pydantic models below describe the stored documents and the request
bodies that create them.

Collections:
- users: account records
- partners: study-partner offer profiles
- connections: requests sent from a requester to a partner profile

Profiles and users accept free-form extra fields, which are stored as sent.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Optional
from datetime import datetime


class FreeFormDocument(BaseModel):
    """Stores unknown keys as sent, except ids, which the store assigns."""
    model_config = ConfigDict(extra="allow")

    @model_validator(mode="before")
    @classmethod
    def drop_client_ids(cls, data):
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in ("_id", "id")}
        return data


class User(FreeFormDocument):
    name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=1)


class PartnerProfile(FreeFormDocument):
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1, description="Searched by the discovery listing")
    email: str = Field(..., min_length=1)
    experienceLevel: Optional[str] = Field(None, description="Beginner, Intermediate, Expert or anything else")
    rating: float = 0
    partnerCount: int = Field(0, ge=0, description="Bumped once per accepted connection request")
    profileImage: Optional[str] = None
    studyMode: Optional[str] = None

    @field_validator("rating", "partnerCount", mode="before")
    @classmethod
    def absent_counts_as_zero(cls, v):
        return 0 if v is None or v == "" else v


class ConnectionCreate(BaseModel):
    # Both fields are checked by the orchestrator so missing values map to a
    # single "missing fields" error rather than per-field pydantic errors.
    partnerId: Optional[str] = None
    requesterEmail: Optional[str] = None


class ConnectionRequest(BaseModel):
    partnerId: str
    requesterEmail: str
    partnerName: Optional[str] = None
    partnerImage: Optional[str] = None
    subject: Optional[str] = None
    studyMode: Optional[str] = None
    status: str = "pending"
    createdAt: datetime

