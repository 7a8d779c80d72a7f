"""
teamforge/routes_projects.py

Projects and membership endpoints.

Security guarantees:
- Creator / requester / decider ids come from the verified bearer token only
- Only the project owner can decide requests or see the pending list
- Duplicate join requests are rejected by a database constraint
- Every response after a write is rebuilt from freshly fetched rows
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Path

from teamforge import service
from teamforge.auth_context import AuthContext, get_current_actor, require_auth_context
from teamforge.config import IS_DEV
from teamforge.errors import ERROR_STATUS, MembershipResult
from teamforge.membership import Action
from teamforge.schemas import (
    CompositionResponse,
    DecisionRequest,
    MembershipListResponse,
    MembershipResponse,
    PendingRequestResponse,
    ProfileResponse,
    ProfileUpdateRequest,
    ProjectCreateRequest,
    ProjectDetailResponse,
    ProjectListResponse,
    ProjectResponse,
)


router = APIRouter(
    prefix="/api",
    tags=["projects"],
)


def raise_for_result(result: MembershipResult, label: str = ""):
    """
    Return result.value, or raise the HTTPException matching its error kind.

    Raises:
        HTTPException: 400/401/403/404/409/503 depending on the error kind
    """
    if result.ok:
        return result.value

    status_code = ERROR_STATUS[result.error]
    if IS_DEV or status_code >= 500:
        print(f"[PROJECTS] {label or 'request'} failed: {result.error.value} ({status_code})")

    raise HTTPException(status_code=status_code, detail=result.to_error_detail())


def to_detail_response(view: service.ProjectView) -> ProjectDetailResponse:
    """Serialize a ProjectView; pending requesters are only shown to the owner."""
    composition = view.composition
    show_pending = Action.VIEW_PENDING_REQUESTS in view.actions

    team = CompositionResponse(
        owner=ProfileResponse.from_profile(composition.owner),
        members=[ProfileResponse.from_profile(p) for p in composition.accepted],
        pending=[
            PendingRequestResponse(
                request_id=entry.request_id,
                profile=ProfileResponse.from_profile(entry.profile),
            )
            for entry in composition.pending
        ] if show_pending else [],
        pending_count=view.pending_count,
        max_team_size=composition.max_team_size,
        team_size=composition.team_size,
        open_slots=composition.open_slots,
        over_capacity=composition.over_capacity,
    )

    return ProjectDetailResponse(
        project=ProjectResponse.from_project(view.project),
        role=view.role,
        actions=sorted(a.value for a in view.actions),
        membership=MembershipResponse.from_record(view.membership) if view.membership else None,
        team=team,
    )


# ---------------------------------------------------------
# Projects
# ---------------------------------------------------------
@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    request: ProjectCreateRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectResponse:
    """
    Create a project owned by the caller.

    Raises:
        HTTPException(401): Not signed in
        HTTPException(422): Invalid input (empty title, unknown domain, size out of range)
        HTTPException(503): Database unavailable
    """
    fields = request.dict()
    project = raise_for_result(service.create_project(ctx.user_id, fields), "create_project")
    return ProjectResponse.from_project(project)


@router.get("/projects", response_model=ProjectListResponse)
def list_projects(actor: Optional[str] = Depends(get_current_actor)) -> ProjectListResponse:
    """All projects, newest first. Anonymous callers are allowed."""
    projects = raise_for_result(service.list_all_projects(actor), "list_projects")
    items = [ProjectResponse.from_project(p) for p in projects]
    return ProjectListResponse(items=items, total=len(items))


@router.get("/projects/mine", response_model=ProjectListResponse)
def list_my_projects(actor: Optional[str] = Depends(get_current_actor)) -> ProjectListResponse:
    """Projects created by the caller; empty when not signed in."""
    projects = raise_for_result(service.list_my_projects(actor), "list_my_projects")
    items = [ProjectResponse.from_project(p) for p in projects]
    return ProjectListResponse(items=items, total=len(items))


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: str = Path(..., min_length=1, max_length=64, description="Project ID"),
    actor: Optional[str] = Depends(get_current_actor),
) -> ProjectDetailResponse:
    """
    Project page: project fields, the caller's role and permitted actions,
    and the team composition.

    Raises:
        HTTPException(404): Project not found (or hidden from the caller)
    """
    view = raise_for_result(service.load_project_view(project_id, actor), "get_project")
    return to_detail_response(view)


# ---------------------------------------------------------
# Membership
# ---------------------------------------------------------
@router.post("/projects/{project_id}/join", response_model=ProjectDetailResponse, status_code=201)
def join_project(
    project_id: str = Path(..., min_length=1, max_length=64, description="Project ID"),
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectDetailResponse:
    """
    Request to join a project (creates a pending request).

    Raises:
        HTTPException(400): Caller owns the project
        HTTPException(404): Project not found
        HTTPException(409): A request already exists (any status, rejected included)
    """
    view = raise_for_result(service.join_project(project_id, ctx.user_id), "join_project")
    return to_detail_response(view)


@router.post(
    "/projects/{project_id}/requests/{request_id}/decision",
    response_model=ProjectDetailResponse,
)
def decide_request(
    request: DecisionRequest,
    project_id: str = Path(..., min_length=1, max_length=64, description="Project ID"),
    request_id: str = Path(..., min_length=1, max_length=64, description="Membership request ID"),
    ctx: AuthContext = Depends(require_auth_context),
) -> ProjectDetailResponse:
    """
    Accept or reject a pending request. Owner only.

    Raises:
        HTTPException(403): Caller is not the owner
        HTTPException(404): Project or request not found
        HTTPException(409): Request already decided
    """
    view = raise_for_result(
        service.decide_membership(project_id, request_id, ctx.user_id, request.decision),
        "decide_request",
    )
    return to_detail_response(view)


@router.get("/me/memberships", response_model=MembershipListResponse)
def list_my_memberships(ctx: AuthContext = Depends(require_auth_context)) -> MembershipListResponse:
    records = raise_for_result(service.list_my_memberships(ctx.user_id), "list_my_memberships")
    items = [MembershipResponse.from_record(r) for r in records]
    return MembershipListResponse(items=items, total=len(items))


# ---------------------------------------------------------
# Profiles
# ---------------------------------------------------------
@router.put("/profiles/me", response_model=ProfileResponse)
def update_my_profile(
    request: ProfileUpdateRequest,
    ctx: AuthContext = Depends(require_auth_context),
) -> ProfileResponse:
    """Create or replace the caller's display profile."""
    profile = raise_for_result(service.save_profile(ctx.user_id, request.dict()), "update_my_profile")
    return ProfileResponse.from_profile(profile)
