from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

# Enums
class MembershipStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"

class Role(str, Enum):
    """Relationship between an actor and a project. Derived, never stored."""
    owner = "owner"
    accepted_member = "accepted-member"
    pending_requester = "pending-requester"
    rejected = "rejected"
    non_member = "non-member"

class Decision(str, Enum):
    accept = "accept"
    reject = "reject"

# Models
class Project(BaseModel):
    id: str
    creator_id: str
    title: str
    description: Optional[str] = None
    domain: Optional[str] = None
    required_skills: List[str] = Field(default_factory=list)
    max_team_size: int = 5
    is_public: bool = True
    created_at: datetime

class MembershipRequest(BaseModel):
    id: str
    project_id: str
    user_id: str
    status: MembershipStatus = MembershipStatus.pending
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class Profile(BaseModel):
    user_id: str
    name: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    is_placeholder: bool = False  # True when no profile row exists for user_id

class PendingEntry(BaseModel):
    request_id: str  # needed by the owner to accept/reject
    profile: Profile

class ProjectComposition(BaseModel):
    owner: Profile
    accepted: List[Profile] = Field(default_factory=list)
    pending: List[PendingEntry] = Field(default_factory=list)
    # Capacity figures are advisory (display only)
    max_team_size: int = 5
    team_size: int = 1
    open_slots: int = 0
    over_capacity: bool = False
