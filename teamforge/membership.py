"""
teamforge/membership.py

Membership engine: the decision logic for joining projects.

Given a project, an actor, and the membership rows for that project, this
module decides the actor's role, which actions are available, and whether a
requested state transition is valid.

Key principles:
- Role is always derived from project.creator_id + the actor's row, never stored
- The actor is passed in explicitly (None = anonymous)
- Failures are returned as MembershipResult values, never raised
- The creator never has a membership row

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Iterable, Optional, Set

from teamforge.errors import MembershipError, MembershipResult
from teamforge.models import Decision, MembershipRequest, MembershipStatus, Project, Role


# ============================================================================
# Role Classification
# ============================================================================

STATUS_ROLES: Dict[MembershipStatus, Role] = {
    MembershipStatus.pending: Role.pending_requester,
    MembershipStatus.accepted: Role.accepted_member,
    MembershipStatus.rejected: Role.rejected,
}


def find_record(records: Iterable[MembershipRequest], actor: Optional[str]) -> Optional[MembershipRequest]:
    """Return the (at most one) membership row belonging to actor."""
    if not actor:
        return None
    for record in records:
        if record.user_id == actor:
            return record
    return None


def classify_role(
    project: Project,
    actor: Optional[str],
    records: Iterable[MembershipRequest],
) -> Role:
    """
    Classify the actor's relationship to a project.

    Args:
        project: The project being viewed
        actor: Current user id, or None when unauthenticated
        records: Membership rows scoped to this project

    Returns:
        Exactly one Role. Never fails.
    """
    if not actor:
        return Role.non_member

    if actor == project.creator_id:
        return Role.owner

    record = find_record(records, actor)
    if record is None:
        return Role.non_member

    return STATUS_ROLES.get(record.status, Role.non_member)


# ============================================================================
# Permitted Actions
# ============================================================================

class Action(str, Enum):
    """Actions the UI may offer for a (project, actor) pair."""
    VIEW = "project:view"
    REQUEST_TO_JOIN = "membership:request"
    VIEW_PENDING_REQUESTS = "membership:view_pending"
    DECIDE_REQUESTS = "membership:decide"


ROLE_ACTIONS: Dict[Role, Set[Action]] = {
    Role.owner: {
        Action.VIEW,
        Action.VIEW_PENDING_REQUESTS,
        Action.DECIDE_REQUESTS,
    },
    Role.accepted_member: {Action.VIEW},
    Role.pending_requester: {Action.VIEW},
    # Rejection is terminal: no new request can be made
    Role.rejected: {Action.VIEW},
    Role.non_member: {
        Action.VIEW,
        Action.REQUEST_TO_JOIN,
    },
}


def permitted_actions(role: Role, actor: Optional[str]) -> Set[Action]:
    """
    Actions available to the actor given their role.

    Anonymous viewers are classified non-member but cannot request to join
    until they sign in.
    """
    actions = set(ROLE_ACTIONS.get(role, {Action.VIEW}))
    if not actor:
        actions.discard(Action.REQUEST_TO_JOIN)
    return actions


# ============================================================================
# Transitions
# ============================================================================

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def request_to_join(
    project: Project,
    actor: Optional[str],
    existing: Optional[MembershipRequest],
    *,
    request_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MembershipResult[MembershipRequest]:
    """
    Validate a join request and build the new pending row.

    The returned row is not persisted. The caller inserts it; the store's
    uniqueness constraint on (project_id, user_id) is the final word on
    duplicates, since `existing` may already be stale.

    Args:
        project: Project to join
        actor: Requesting user id (None = anonymous)
        existing: The actor's current row for this project, if any
        request_id: Id for the new row (generated when omitted)
        now: Creation timestamp (defaults to current UTC time)

    Returns:
        MembershipResult with a pending MembershipRequest, or one of
        NotAuthenticated / SelfJoinNotAllowed / AlreadyRequested
    """
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    if actor == project.creator_id:
        return MembershipResult.failure(MembershipError.SELF_JOIN_NOT_ALLOWED)

    # Any status blocks a new request, rejected included
    if existing is not None:
        return MembershipResult.failure(
            MembershipError.ALREADY_REQUESTED,
            f"Request already exists ({existing.status.value})",
        )

    created_at = now or _utcnow()
    return MembershipResult.success(
        MembershipRequest(
            id=request_id or uuid.uuid4().hex,
            project_id=project.id,
            user_id=actor,
            status=MembershipStatus.pending,
            created_at=created_at,
            updated_at=created_at,
        )
    )


DECISION_STATUS: Dict[Decision, MembershipStatus] = {
    Decision.accept: MembershipStatus.accepted,
    Decision.reject: MembershipStatus.rejected,
}


def decide_request(
    record: MembershipRequest,
    deciding_actor: Optional[str],
    project: Project,
    decision: Decision,
    *,
    now: Optional[datetime] = None,
) -> MembershipResult[MembershipRequest]:
    """
    Validate an owner's accept/reject decision and build the updated row.

    max_team_size is not checked here: the owner may accept beyond the
    advertised size.

    Args:
        record: The membership row being decided
        deciding_actor: User id of the caller
        project: Project the row must belong to
        decision: accept or reject

    Returns:
        MembershipResult with the updated row, or one of
        NotAuthenticated / NotFound / NotAuthorized / AlreadyDecided
    """
    if not deciding_actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    if record.project_id != project.id:
        return MembershipResult.failure(MembershipError.NOT_FOUND, "Request not found for this project")

    if deciding_actor != project.creator_id:
        return MembershipResult.failure(MembershipError.NOT_AUTHORIZED)

    if record.status != MembershipStatus.pending:
        return MembershipResult.failure(
            MembershipError.ALREADY_DECIDED,
            f"Request has already been {record.status.value}",
        )

    return MembershipResult.success(
        MembershipRequest(
            id=record.id,
            project_id=record.project_id,
            user_id=record.user_id,
            status=DECISION_STATUS[decision],
            created_at=record.created_at,
            updated_at=now or _utcnow(),
        )
    )
