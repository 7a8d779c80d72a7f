"""
teamforge/stores.py

Project, membership and profile stores over SQLAlchemy Core.

Every function takes an open connection (see db.get_db_connection) so the
caller controls the transaction boundary.

Store contracts:
- create_membership_request / insert_membership_request rely on UNIQUE(project_id, user_id); a
  violation raises DuplicateRequestError
- update_membership_request_status is a conditional update on the expected
  current status; a miss raises PreconditionFailedError
- Any other driver failure raises StoreUnavailableError
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.engine import Connection, CursorResult
from sqlalchemy.exc import DBAPIError, IntegrityError

from teamforge.config import IS_DEV
from teamforge.errors import DuplicateRequestError, PreconditionFailedError, StoreUnavailableError
from teamforge.models import MembershipRequest, MembershipStatus, Profile, Project


PROJECT_COLUMNS = """
    id, creator_id, title, description, domain, required_skills_json,
    max_team_size, is_public, created_at
"""

MEMBER_COLUMNS = "id, project_id, user_id, status, created_at, updated_at"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _execute(conn: Connection, sql: str, params: Optional[Dict[str, Any]] = None, label: str = "") -> CursorResult:
    """Run a statement, mapping driver failures (other than constraint violations) to StoreUnavailableError."""
    try:
        return conn.execute(text(sql), params or {})
    except IntegrityError:
        raise
    except DBAPIError as e:
        print(f"[STORE] DB error{f' in {label}' if label else ''}: {type(e).__name__}")
        raise StoreUnavailableError(f"database error in {label or 'query'}") from e


def _load_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


# ---------------------------------------------------------
# Row conversion
# ---------------------------------------------------------
def row_to_project(row) -> Project:
    return Project(
        id=row["id"],
        creator_id=row["creator_id"],
        title=row["title"],
        description=row["description"],
        domain=row["domain"],
        required_skills=_load_list(row["required_skills_json"]),
        max_team_size=row["max_team_size"],
        is_public=bool(row["is_public"]),
        created_at=row["created_at"],
    )


def row_to_membership(row) -> MembershipRequest:
    return MembershipRequest(
        id=row["id"],
        project_id=row["project_id"],
        user_id=row["user_id"],
        status=MembershipStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def row_to_profile(row) -> Profile:
    return Profile(
        user_id=row["user_id"],
        name=row["name"],
        bio=row["bio"],
        skills=_load_list(row["skills_json"]),
    )


# ============================================================================
# Project Store
# ============================================================================

def create_project(conn: Connection, creator_id: str, fields: Dict[str, Any]) -> Project:
    """
    Insert a project owned by creator_id.

    Args:
        conn: Open connection
        creator_id: Owner (from auth context only, never from the request body)
        fields: Validated fields (title, description, domain, required_skills,
            max_team_size, is_public)

    Returns:
        The stored Project
    """
    project = Project(
        id=uuid.uuid4().hex,
        creator_id=creator_id,
        title=fields["title"],
        description=fields.get("description"),
        domain=fields.get("domain"),
        required_skills=list(fields.get("required_skills") or []),
        max_team_size=fields["max_team_size"],
        is_public=fields.get("is_public", True),
        created_at=_now(),
    )
    _execute(
        conn,
        """
        INSERT INTO projects (
            id, creator_id, title, description, domain, required_skills_json,
            max_team_size, is_public, created_at
        ) VALUES (
            :id, :creator_id, :title, :description, :domain, :required_skills_json,
            :max_team_size, :is_public, :created_at
        )
        """,
        {
            "id": project.id,
            "creator_id": project.creator_id,
            "title": project.title,
            "description": project.description,
            "domain": project.domain,
            "required_skills_json": json.dumps(project.required_skills),
            "max_team_size": project.max_team_size,
            "is_public": project.is_public,
            "created_at": project.created_at.isoformat(),
        },
        label="create_project",
    )

    if IS_DEV:
        print(f"[PROJECTS] Created project_id={project.id}, creator_id={creator_id}")

    return project


def get_project(conn: Connection, project_id: str) -> Optional[Project]:
    row = _execute(
        conn,
        f"SELECT {PROJECT_COLUMNS} FROM projects WHERE id = :id",
        {"id": project_id},
        label="get_project",
    ).mappings().first()
    return row_to_project(row) if row else None


def list_projects(conn: Connection, creator_id: Optional[str] = None) -> List[Project]:
    """List projects newest first, optionally only those created by creator_id."""
    if creator_id is not None:
        result = _execute(
            conn,
            f"SELECT {PROJECT_COLUMNS} FROM projects WHERE creator_id = :creator_id ORDER BY created_at DESC",
            {"creator_id": creator_id},
            label="list_projects",
        )
    else:
        result = _execute(
            conn,
            f"SELECT {PROJECT_COLUMNS} FROM projects ORDER BY created_at DESC",
            label="list_projects",
        )
    return [row_to_project(row) for row in result.mappings().fetchall()]


# ============================================================================
# Membership Store
# ============================================================================

def create_membership_request(
    conn: Connection,
    project_id: str,
    user_id: str,
    request_id: Optional[str] = None,
) -> MembershipRequest:
    """
    Insert a new pending membership row.

    Raises:
        DuplicateRequestError: A row for (project_id, user_id) already exists
    """
    now = _now()
    return insert_membership_request(
        conn,
        MembershipRequest(
            id=request_id or uuid.uuid4().hex,
            project_id=project_id,
            user_id=user_id,
            status=MembershipStatus.pending,
            created_at=now,
            updated_at=now,
        ),
    )


def insert_membership_request(conn: Connection, record: MembershipRequest) -> MembershipRequest:
    """
    Insert a membership row exactly as given (id, status and timestamps).

    Raises:
        DuplicateRequestError: A row for (project_id, user_id) already exists
    """
    created_at = record.created_at or _now()
    updated_at = record.updated_at or created_at
    project_id, user_id = record.project_id, record.user_id
    try:
        _execute(
            conn,
            f"""
            INSERT INTO project_members ({MEMBER_COLUMNS})
            VALUES (:id, :project_id, :user_id, :status, :created_at, :updated_at)
            """,
            {
                "id": record.id,
                "project_id": project_id,
                "user_id": user_id,
                "status": MembershipStatus(record.status).value,
                "created_at": created_at.isoformat(),
                "updated_at": updated_at.isoformat(),
            },
            label="insert_membership_request",
        )
    except IntegrityError as e:
        if IS_DEV:
            print(f"[MEMBERSHIP] Duplicate request rejected by constraint: project_id={project_id}, user_id={user_id}")
        raise DuplicateRequestError(f"membership request exists for project {project_id}") from e

    return record


def get_membership_request(conn: Connection, project_id: str, user_id: str) -> Optional[MembershipRequest]:
    row = _execute(
        conn,
        f"SELECT {MEMBER_COLUMNS} FROM project_members WHERE project_id = :project_id AND user_id = :user_id",
        {"project_id": project_id, "user_id": user_id},
        label="get_membership_request",
    ).mappings().first()
    return row_to_membership(row) if row else None


def get_membership_request_by_id(conn: Connection, request_id: str) -> Optional[MembershipRequest]:
    row = _execute(
        conn,
        f"SELECT {MEMBER_COLUMNS} FROM project_members WHERE id = :id",
        {"id": request_id},
        label="get_membership_request_by_id",
    ).mappings().first()
    return row_to_membership(row) if row else None


def list_membership_requests(
    conn: Connection,
    project_id: str,
    status: Optional[MembershipStatus] = None,
) -> List[MembershipRequest]:
    """List rows for a project, optionally filtered by status, oldest first."""
    if status is not None:
        result = _execute(
            conn,
            f"""
            SELECT {MEMBER_COLUMNS} FROM project_members
            WHERE project_id = :project_id AND status = :status
            ORDER BY created_at
            """,
            {"project_id": project_id, "status": MembershipStatus(status).value},
            label="list_membership_requests",
        )
    else:
        result = _execute(
            conn,
            f"SELECT {MEMBER_COLUMNS} FROM project_members WHERE project_id = :project_id ORDER BY created_at",
            {"project_id": project_id},
            label="list_membership_requests",
        )
    return [row_to_membership(row) for row in result.mappings().fetchall()]


def list_membership_requests_for_user(conn: Connection, user_id: str) -> List[MembershipRequest]:
    result = _execute(
        conn,
        f"SELECT {MEMBER_COLUMNS} FROM project_members WHERE user_id = :user_id ORDER BY created_at DESC",
        {"user_id": user_id},
        label="list_membership_requests_for_user",
    )
    return [row_to_membership(row) for row in result.mappings().fetchall()]


def update_membership_request_status(
    conn: Connection,
    request_id: str,
    new_status: MembershipStatus,
    expected_status: MembershipStatus,
) -> MembershipRequest:
    """
    Conditionally move a row from expected_status to new_status.

    Concurrent decisions on the same row resolve to whichever update lands
    first; the other sees rowcount 0.

    Raises:
        PreconditionFailedError: Row missing or not in expected_status
    """
    result = _execute(
        conn,
        """
        UPDATE project_members
        SET status = :new_status, updated_at = :updated_at
        WHERE id = :id AND status = :expected_status
        """,
        {
            "id": request_id,
            "new_status": MembershipStatus(new_status).value,
            "expected_status": MembershipStatus(expected_status).value,
            "updated_at": _now().isoformat(),
        },
        label="update_membership_request_status",
    )

    if result.rowcount == 0:
        raise PreconditionFailedError(f"request {request_id} is not {MembershipStatus(expected_status).value}")

    record = get_membership_request_by_id(conn, request_id)
    if record is None:
        raise PreconditionFailedError(f"request {request_id} disappeared")
    return record


# ============================================================================
# Profile Store
# ============================================================================

def get_profile(conn: Connection, user_id: str) -> Optional[Profile]:
    row = _execute(
        conn,
        "SELECT user_id, name, bio, skills_json FROM profiles WHERE user_id = :user_id",
        {"user_id": user_id},
        label="get_profile",
    ).mappings().first()
    return row_to_profile(row) if row else None


def get_profiles(conn: Connection, user_ids: List[str]) -> Dict[str, Profile]:
    """Batch profile lookup keyed by user_id (missing users are absent)."""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
        return {}

    stmt = text(
        "SELECT user_id, name, bio, skills_json FROM profiles WHERE user_id IN :user_ids"
    ).bindparams(bindparam("user_ids", expanding=True))
    try:
        result = conn.execute(stmt, {"user_ids": unique_ids})
    except DBAPIError as e:
        print(f"[STORE] DB error in get_profiles: {type(e).__name__}")
        raise StoreUnavailableError("database error in get_profiles") from e

    return {row["user_id"]: row_to_profile(row) for row in result.mappings().fetchall()}


def upsert_profile(conn: Connection, profile: Profile) -> Profile:
    _execute(
        conn,
        """
        INSERT INTO profiles (user_id, name, bio, skills_json, updated_at)
        VALUES (:user_id, :name, :bio, :skills_json, :updated_at)
        ON CONFLICT (user_id) DO UPDATE SET
            name = excluded.name,
            bio = excluded.bio,
            skills_json = excluded.skills_json,
            updated_at = excluded.updated_at
        """,
        {
            "user_id": profile.user_id,
            "name": profile.name,
            "bio": profile.bio,
            "skills_json": json.dumps(profile.skills),
            "updated_at": _now().isoformat(),
        },
        label="upsert_profile",
    )
    return profile
