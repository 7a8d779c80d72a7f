"""
teamforge/schemas.py

Pydantic request/response schemas for the projects API.
Creator and requester ids always come from the auth context, never from a
request body.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, validator

from teamforge.config import DEFAULT_MAX_TEAM_SIZE, MAX_TEAM_SIZE, MIN_TEAM_SIZE, PROJECT_DOMAINS
from teamforge.models import Decision, MembershipRequest, MembershipStatus, Profile, Project, Role


def normalize_skills(values) -> List[str]:
    """Trim, drop blanks and drop case-insensitive duplicates (first spelling wins)."""
    seen = set()
    skills: List[str] = []
    for raw in values or []:
        if not isinstance(raw, str):
            continue
        skill = raw.strip()
        key = skill.lower()
        if not skill or key in seen:
            continue
        seen.add(key)
        skills.append(skill)
    return skills


def coerce_skills(v, field_name: str) -> List[str]:
    """Accept None, a comma-separated string, or a list/tuple of strings."""
    if v is None:
        return []
    if isinstance(v, str):
        v = v.split(",")
    if not isinstance(v, (list, tuple)):
        raise ValueError(f"{field_name} must be a list of strings")
    return normalize_skills(v)


def _blank_to_none(v):
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


# ========================================================================
# PROJECT SCHEMAS
# ========================================================================

class ProjectCreateRequest(BaseModel):
    """Request schema for creating a project.

    - title is required and trimmed
    - description and domain are optional; blank values are stored as null
    - required_skills behaves as a set
    - max_team_size defaults to 5 and must be within 2..20
    """
    title: str = Field(..., min_length=1, max_length=200, description="Project title (required)")
    description: Optional[str] = Field(None, max_length=5000, description="Short description")
    domain: Optional[str] = Field(None, description=f"One of: {', '.join(PROJECT_DOMAINS)}")
    required_skills: List[str] = Field(default_factory=list, description="Skills the team needs")
    max_team_size: int = Field(
        DEFAULT_MAX_TEAM_SIZE,
        ge=MIN_TEAM_SIZE,
        le=MAX_TEAM_SIZE,
        description="Advertised team size (advisory)",
    )
    is_public: bool = Field(True, description="Listed publicly")

    @validator("title", pre=True)
    def trim_title(cls, v):
        """Trim whitespace from title."""
        if isinstance(v, str):
            return v.strip()
        return v

    @validator("title")
    def validate_title_non_empty(cls, v):
        """Ensure title is not empty after trimming."""
        if not v or not v.strip():
            raise ValueError("title must not be empty")
        return v

    @validator("description", "domain", pre=True)
    def blank_optional_text(cls, v):
        return _blank_to_none(v)

    @validator("domain")
    def validate_domain(cls, v):
        if v is not None and v not in PROJECT_DOMAINS:
            raise ValueError(f"domain must be one of: {', '.join(PROJECT_DOMAINS)}")
        return v

    @validator("required_skills", pre=True)
    def clean_skills(cls, v):
        return coerce_skills(v, "required_skills")

    @validator("max_team_size", pre=True)
    def default_team_size(cls, v):
        """A missing or zero size falls back to the default."""
        if v is None or v == "" or v == 0:
            return DEFAULT_MAX_TEAM_SIZE
        return v


class ProjectResponse(BaseModel):
    """Response schema for project data."""
    id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    domain: Optional[str] = None
    domain_label: str = Field("General", description="Domain for display")
    required_skills: List[str] = Field(default_factory=list)
    max_team_size: int = DEFAULT_MAX_TEAM_SIZE
    is_public: bool = True
    created_at: datetime

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            creator_id=project.creator_id,
            title=project.title,
            description=project.description,
            domain=project.domain,
            domain_label=project.domain or "General",
            required_skills=project.required_skills,
            max_team_size=project.max_team_size,
            is_public=project.is_public,
            created_at=project.created_at,
        )


class ProjectListResponse(BaseModel):
    """Response schema for project lists."""
    items: List[ProjectResponse] = Field(default_factory=list)
    total: int = 0


# ========================================================================
# MEMBERSHIP SCHEMAS
# ========================================================================

class DecisionRequest(BaseModel):
    """Owner's decision on a pending request."""
    decision: Decision


class MembershipResponse(BaseModel):
    id: str
    project_id: str
    user_id: str
    status: MembershipStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: MembershipRequest) -> "MembershipResponse":
        return cls(
            id=record.id,
            project_id=record.project_id,
            user_id=record.user_id,
            status=record.status,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class MembershipListResponse(BaseModel):
    items: List[MembershipResponse] = Field(default_factory=list)
    total: int = 0


class ProfileResponse(BaseModel):
    user_id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    is_placeholder: bool = False

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls(
            user_id=profile.user_id,
            name=profile.name,
            bio=profile.bio,
            skills=profile.skills,
            is_placeholder=profile.is_placeholder,
        )


class PendingRequestResponse(BaseModel):
    request_id: str
    profile: ProfileResponse


class CompositionResponse(BaseModel):
    """Team view. pending is only filled in for the owner."""
    owner: ProfileResponse
    members: List[ProfileResponse] = Field(default_factory=list)
    pending: List[PendingRequestResponse] = Field(default_factory=list)
    pending_count: int = 0
    max_team_size: int = DEFAULT_MAX_TEAM_SIZE
    team_size: int = 1
    open_slots: int = 0
    over_capacity: bool = False


class ProjectDetailResponse(BaseModel):
    """Project page payload, computed for the requesting viewer."""
    project: ProjectResponse
    role: Role
    actions: List[str] = Field(default_factory=list)
    membership: Optional[MembershipResponse] = None
    team: CompositionResponse


# ========================================================================
# PROFILE SCHEMAS
# ========================================================================

class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=2000)
    skills: List[str] = Field(default_factory=list)

    @validator("name", "bio", pre=True)
    def blank_optional_text(cls, v):
        return _blank_to_none(v)

    @validator("skills", pre=True)
    def clean_skills(cls, v):
        return coerce_skills(v, "skills")
