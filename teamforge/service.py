"""
teamforge/service.py

Orchestration of the membership workflow against the stores.

Every operation follows the same shape:
1. Fetch the project and membership rows in one transaction
2. Ask the pure engine (membership / composition / visibility) what to do
3. Apply the returned mutation through the store
4. Re-fetch and recompute the viewer's role and the team (refresh-after-write)

All outcomes are returned as MembershipResult values. Store exceptions are
translated here and nowhere else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from teamforge import stores
from teamforge.composition import compose_team
from teamforge.config import ENFORCE_PROJECT_VISIBILITY, IS_DEV
from teamforge.db import get_db_connection
from teamforge.errors import (
    DuplicateRequestError,
    MembershipError,
    MembershipResult,
    PreconditionFailedError,
    StoreUnavailableError,
)
from teamforge.membership import (
    Action,
    classify_role,
    decide_request,
    find_record,
    permitted_actions,
    request_to_join,
)
from teamforge.models import (
    Decision,
    MembershipRequest,
    MembershipStatus,
    Profile,
    Project,
    ProjectComposition,
    Role,
)
from teamforge.visibility import can_view, list_owned, list_visible


@dataclass
class ProjectView:
    """Everything a project page needs, computed for one viewer."""
    project: Project
    role: Role
    actions: Set[Action]
    composition: ProjectComposition
    membership: Optional[MembershipRequest] = None

    @property
    def pending_count(self) -> int:
        return len(self.composition.pending)


def _enforced(enforce_visibility: Optional[bool]) -> bool:
    return ENFORCE_PROJECT_VISIBILITY if enforce_visibility is None else enforce_visibility


def _unavailable(label: str) -> MembershipResult:
    print(f"[MEMBERSHIP] Store unavailable during {label}")
    return MembershipResult.failure(MembershipError.STORE_UNAVAILABLE)


# ============================================================================
# Projects
# ============================================================================

def create_project(actor: Optional[str], fields: Dict[str, Any]) -> MembershipResult[Project]:
    """Create a project owned by actor. fields must already be validated."""
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    try:
        with get_db_connection() as conn:
            project = stores.create_project(conn, actor, fields)
    except StoreUnavailableError:
        return _unavailable("create_project")

    return MembershipResult.success(project)


def list_all_projects(
    actor: Optional[str],
    enforce_visibility: Optional[bool] = None,
) -> MembershipResult[List[Project]]:
    """The "all projects" listing for actor."""
    enforce = _enforced(enforce_visibility)
    try:
        with get_db_connection() as conn:
            projects = stores.list_projects(conn)
            memberships = (
                stores.list_membership_requests_for_user(conn, actor)
                if enforce and actor else []
            )
    except StoreUnavailableError:
        return _unavailable("list_all_projects")

    return MembershipResult.success(
        list_visible(projects, actor, memberships, enforce_visibility=enforce)
    )


def list_my_projects(actor: Optional[str]) -> MembershipResult[List[Project]]:
    """Projects created by actor; empty for anonymous callers."""
    if not actor:
        return MembershipResult.success([])

    try:
        with get_db_connection() as conn:
            projects = stores.list_projects(conn, creator_id=actor)
    except StoreUnavailableError:
        return _unavailable("list_my_projects")

    return MembershipResult.success(list_owned(projects, actor))


def load_project_view(
    project_id: str,
    actor: Optional[str],
    enforce_visibility: Optional[bool] = None,
) -> MembershipResult[ProjectView]:
    """
    Fetch a project with its membership rows and compute the viewer's role,
    permitted actions and team composition.
    """
    try:
        with get_db_connection() as conn:
            project = stores.get_project(conn, project_id)
            if project is None:
                return MembershipResult.failure(MembershipError.NOT_FOUND, "Project not found")

            records = stores.list_membership_requests(conn, project.id)
            profiles = stores.get_profiles(
                conn, [project.creator_id] + [r.user_id for r in records]
            )
    except StoreUnavailableError:
        return _unavailable("load_project_view")

    mine = find_record(records, actor)

    # Hidden projects look exactly like missing ones
    if not can_view(project, actor, mine, enforce_visibility=_enforced(enforce_visibility)):
        return MembershipResult.failure(MembershipError.NOT_FOUND, "Project not found")

    role = classify_role(project, actor, records)

    return MembershipResult.success(
        ProjectView(
            project=project,
            role=role,
            actions=permitted_actions(role, actor),
            composition=compose_team(project, records, profiles.get),
            membership=mine,
        )
    )


# ============================================================================
# Membership transitions
# ============================================================================

def join_project(
    project_id: str,
    actor: Optional[str],
    enforce_visibility: Optional[bool] = None,
) -> MembershipResult[ProjectView]:
    """
    Request to join a project.

    The existence check only gives a friendly early answer; the insert itself
    is guarded by UNIQUE(project_id, user_id), and a constraint violation is
    reported as AlreadyRequested.
    """
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    try:
        with get_db_connection() as conn:
            project = stores.get_project(conn, project_id)
            if project is None:
                return MembershipResult.failure(MembershipError.NOT_FOUND, "Project not found")

            existing = stores.get_membership_request(conn, project.id, actor)
            if not can_view(project, actor, existing, enforce_visibility=_enforced(enforce_visibility)):
                return MembershipResult.failure(MembershipError.NOT_FOUND, "Project not found")

            outcome = request_to_join(project, actor, existing)
            if not outcome.ok:
                if IS_DEV:
                    print(f"[MEMBERSHIP] Join refused: project_id={project_id}, user_id={actor}, "
                          f"error={outcome.error.value}")
                return MembershipResult.failure(outcome.error, outcome.message)

            stores.insert_membership_request(conn, outcome.value)
    except DuplicateRequestError:
        return MembershipResult.failure(MembershipError.ALREADY_REQUESTED)
    except StoreUnavailableError:
        return _unavailable("join_project")

    if IS_DEV:
        print(f"[MEMBERSHIP] Join requested: project_id={project_id}, user_id={actor}")

    return load_project_view(project_id, actor, enforce_visibility=enforce_visibility)


def decide_membership(
    project_id: str,
    request_id: str,
    actor: Optional[str],
    decision: Decision,
) -> MembershipResult[ProjectView]:
    """
    Accept or reject a pending request as the project owner.

    The status write is conditional on the row still being pending, so when
    two decisions race exactly one wins and the other gets AlreadyDecided.
    """
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    try:
        with get_db_connection() as conn:
            project = stores.get_project(conn, project_id)
            if project is None:
                return MembershipResult.failure(MembershipError.NOT_FOUND, "Project not found")

            record = stores.get_membership_request_by_id(conn, request_id)
            if record is None:
                return MembershipResult.failure(MembershipError.NOT_FOUND, "Request not found")

            outcome = decide_request(record, actor, project, Decision(decision))
            if not outcome.ok:
                if IS_DEV:
                    print(f"[MEMBERSHIP] Decision refused: request_id={request_id}, actor={actor}, "
                          f"error={outcome.error.value}")
                return MembershipResult.failure(outcome.error, outcome.message)

            stores.update_membership_request_status(
                conn, record.id, outcome.value.status, MembershipStatus.pending
            )
    except PreconditionFailedError:
        return MembershipResult.failure(MembershipError.ALREADY_DECIDED)
    except StoreUnavailableError:
        return _unavailable("decide_membership")

    if IS_DEV:
        print(f"[MEMBERSHIP] Request {request_id} -> {outcome.value.status.value} by owner {actor}")

    return load_project_view(project_id, actor)


def list_my_memberships(actor: Optional[str]) -> MembershipResult[List[MembershipRequest]]:
    """All membership rows belonging to actor, newest first."""
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    try:
        with get_db_connection() as conn:
            records = stores.list_membership_requests_for_user(conn, actor)
    except StoreUnavailableError:
        return _unavailable("list_my_memberships")

    return MembershipResult.success(records)


# ============================================================================
# Profiles
# ============================================================================

def save_profile(actor: Optional[str], fields: Dict[str, Any]) -> MembershipResult[Profile]:
    """Create or replace the actor's display profile."""
    if not actor:
        return MembershipResult.failure(MembershipError.NOT_AUTHENTICATED)

    profile = Profile(
        user_id=actor,
        name=fields.get("name"),
        bio=fields.get("bio"),
        skills=list(fields.get("skills") or []),
    )
    try:
        with get_db_connection() as conn:
            stores.upsert_profile(conn, profile)
    except StoreUnavailableError:
        return _unavailable("save_profile")

    return MembershipResult.success(profile)
