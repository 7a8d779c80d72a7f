"""
teamforge/test_stores.py

Storage contract and service-level tests against a temporary SQLite database.

Tests verify:
1. UNIQUE(project_id, user_id) rejects a second membership row
2. Conditional status updates only apply to rows in the expected state
3. Two concurrent joins by the same actor yield exactly one pending row
4. Two concurrent decisions on one request yield exactly one terminal state
5. Driver failures surface as StoreUnavailable (retryable) and roll back partial writes

Run: pytest teamforge/test_stores.py -v
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from teamforge import service, stores
from teamforge.db import get_db_connection
from teamforge.errors import (
    DuplicateRequestError,
    MembershipError,
    PreconditionFailedError,
    StoreUnavailableError,
)
from teamforge.models import Decision, MembershipRequest, MembershipStatus, Profile, Role

PROJECT_FIELDS = {
    "title": "Smart Attendance System",
    "description": "Face recognition roll call",
    "domain": "AI/ML",
    "required_skills": ["Python", "OpenCV"],
    "max_team_size": 3,
    "is_public": True,
}


@pytest.fixture
def project(db):
    """Project P owned by user-a."""
    with get_db_connection() as conn:
        return stores.create_project(conn, "user-a", PROJECT_FIELDS)


def run_concurrently(*calls):
    """Start all calls at the same time and collect their return values in order."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, fn):
        barrier.wait()
        results[index] = fn()

    threads = [threading.Thread(target=worker, args=(i, fn)) for i, fn in enumerate(calls)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return results


# ============================================================================
# Test: Project Store
# ============================================================================

def test_project_round_trip(project):
    with get_db_connection() as conn:
        loaded = stores.get_project(conn, project.id)

    assert loaded.creator_id == "user-a"
    assert loaded.title == "Smart Attendance System"
    assert loaded.domain == "AI/ML"
    assert loaded.required_skills == ["Python", "OpenCV"]
    assert loaded.max_team_size == 3
    assert loaded.is_public is True


def test_get_missing_project(db):
    with get_db_connection() as conn:
        assert stores.get_project(conn, "nope") is None


def test_list_projects_by_creator(project):
    with get_db_connection() as conn:
        stores.create_project(conn, "user-b", dict(PROJECT_FIELDS, title="Other"))
        mine = stores.list_projects(conn, creator_id="user-a")
        everything = stores.list_projects(conn)

    assert [p.id for p in mine] == [project.id]
    assert len(everything) == 2


# ============================================================================
# Test: Membership Store
# ============================================================================

def test_duplicate_membership_rejected_by_constraint(project):
    with get_db_connection() as conn:
        stores.create_membership_request(conn, project.id, "user-b")

    with pytest.raises(DuplicateRequestError):
        with get_db_connection() as conn:
            stores.create_membership_request(conn, project.id, "user-b")

    with get_db_connection() as conn:
        rows = stores.list_membership_requests(conn, project.id)
    assert len(rows) == 1


def test_list_membership_requests_by_status(project):
    with get_db_connection() as conn:
        r1 = stores.create_membership_request(conn, project.id, "user-b")
        stores.create_membership_request(conn, project.id, "user-c")
        stores.update_membership_request_status(conn, r1.id, MembershipStatus.accepted, MembershipStatus.pending)

        accepted = stores.list_membership_requests(conn, project.id, MembershipStatus.accepted)
        pending = stores.list_membership_requests(conn, project.id, MembershipStatus.pending)

    assert [r.user_id for r in accepted] == ["user-b"]
    assert [r.user_id for r in pending] == ["user-c"]


def test_conditional_update_applies_once(project):
    with get_db_connection() as conn:
        record = stores.create_membership_request(conn, project.id, "user-b")
        updated = stores.update_membership_request_status(
            conn, record.id, MembershipStatus.rejected, MembershipStatus.pending
        )
    assert updated.status == MembershipStatus.rejected

    with pytest.raises(PreconditionFailedError):
        with get_db_connection() as conn:
            stores.update_membership_request_status(
                conn, record.id, MembershipStatus.accepted, MembershipStatus.pending
            )

    with get_db_connection() as conn:
        assert stores.get_membership_request(conn, project.id, "user-b").status == MembershipStatus.rejected


def test_profile_upsert(db):
    with get_db_connection() as conn:
        stores.upsert_profile(conn, Profile(user_id="user-b", name="Bob", skills=["Go"]))
        stores.upsert_profile(conn, Profile(user_id="user-b", name="Bobby", skills=["Go", "SQL"]))
        profile = stores.get_profile(conn, "user-b")

    assert profile.name == "Bobby"
    assert profile.skills == ["Go", "SQL"]


def test_get_profiles_batch(db):
    with get_db_connection() as conn:
        stores.upsert_profile(conn, Profile(user_id="user-a", name="Ada"))
        stores.upsert_profile(conn, Profile(user_id="user-b", name="Bob"))
        profiles = stores.get_profiles(conn, ["user-a", "ghost", "user-b", "user-a"])
        empty = stores.get_profiles(conn, [])

    assert sorted(profiles) == ["user-a", "user-b"]
    assert profiles["user-b"].name == "Bob"
    assert empty == {}


def test_insert_keeps_record_timestamps(project):
    created = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    record = MembershipRequest(
        id="req-1",
        project_id=project.id,
        user_id="user-b",
        status=MembershipStatus.pending,
        created_at=created,
        updated_at=created,
    )
    with get_db_connection() as conn:
        stores.insert_membership_request(conn, record)
        stored = stores.get_membership_request_by_id(conn, "req-1")

    assert stored.created_at == created
    assert stored.updated_at == created


# ============================================================================
# Test: Service workflow
# ============================================================================

def test_service_scenarios(project):
    # B requests to join
    view = service.join_project(project.id, "user-b").value
    assert view.role == Role.pending_requester

    # A accepts B
    r1 = view.membership
    owner_view = service.load_project_view(project.id, "user-a").value
    assert [e.request_id for e in owner_view.composition.pending] == [r1.id]

    owner_view = service.decide_membership(project.id, r1.id, "user-a", Decision.accept).value
    assert [p.user_id for p in owner_view.composition.accepted] == ["user-b"]
    assert owner_view.composition.pending == []
    assert service.load_project_view(project.id, "user-b").value.role == Role.accepted_member

    # C twice
    r2 = service.join_project(project.id, "user-c").value.membership
    assert service.join_project(project.id, "user-c").error == MembershipError.ALREADY_REQUESTED

    # B is not the owner
    result = service.decide_membership(project.id, r2.id, "user-b", Decision.accept)
    assert result.error == MembershipError.NOT_AUTHORIZED

    # A rejects C; C cannot re-request
    service.decide_membership(project.id, r2.id, "user-a", Decision.reject)
    assert service.join_project(project.id, "user-c").error == MembershipError.ALREADY_REQUESTED
    assert service.load_project_view(project.id, "user-c").value.role == Role.rejected


def test_join_stores_the_engine_record(project):
    fixed = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
    with patch("teamforge.membership._utcnow", return_value=fixed):
        view = service.join_project(project.id, "user-b").value

    with get_db_connection() as conn:
        stored = stores.get_membership_request(conn, project.id, "user-b")

    assert stored.id == view.membership.id
    assert stored.created_at == fixed
    assert stored.updated_at == fixed


def test_decide_twice_is_already_decided(project):
    r1 = service.join_project(project.id, "user-b").value.membership
    assert service.decide_membership(project.id, r1.id, "user-a", Decision.accept).ok

    again = service.decide_membership(project.id, r1.id, "user-a", Decision.reject)
    assert again.error == MembershipError.ALREADY_DECIDED


def test_decide_unknown_request(project):
    result = service.decide_membership(project.id, "missing", "user-a", Decision.accept)
    assert result.error == MembershipError.NOT_FOUND


def test_owner_cannot_join(project):
    assert service.join_project(project.id, "user-a").error == MembershipError.SELF_JOIN_NOT_ALLOWED


def test_join_unknown_project(db):
    assert service.join_project("missing", "user-b").error == MembershipError.NOT_FOUND


def test_stale_existence_check_still_rejected(project):
    """The constraint, not the pre-read, decides duplicates."""
    service.join_project(project.id, "user-b")

    with patch("teamforge.stores.get_membership_request", return_value=None):
        result = service.join_project(project.id, "user-b")

    assert result.error == MembershipError.ALREADY_REQUESTED
    with get_db_connection() as conn:
        assert len(stores.list_membership_requests(conn, project.id)) == 1


# ============================================================================
# Test: Concurrency
# ============================================================================

def test_concurrent_joins_create_one_row(project):
    results = run_concurrently(
        lambda: service.join_project(project.id, "user-c"),
        lambda: service.join_project(project.id, "user-c"),
    )

    assert sorted(r.ok for r in results) == [False, True]
    loser = next(r for r in results if not r.ok)
    assert loser.error == MembershipError.ALREADY_REQUESTED

    with get_db_connection() as conn:
        rows = stores.list_membership_requests(conn, project.id)
    assert [(r.user_id, r.status) for r in rows] == [("user-c", MembershipStatus.pending)]


def test_concurrent_accept_and_reject(project):
    r1 = service.join_project(project.id, "user-b").value.membership

    results = run_concurrently(
        lambda: service.decide_membership(project.id, r1.id, "user-a", Decision.accept),
        lambda: service.decide_membership(project.id, r1.id, "user-a", Decision.reject),
    )

    assert sorted(r.ok for r in results) == [False, True]
    loser = next(r for r in results if not r.ok)
    assert loser.error == MembershipError.ALREADY_DECIDED

    with get_db_connection() as conn:
        final = stores.get_membership_request_by_id(conn, r1.id)
    assert final.status in (MembershipStatus.accepted, MembershipStatus.rejected)


# ============================================================================
# Test: Store failures
# ============================================================================

def test_driver_error_maps_to_store_unavailable():
    conn = MagicMock()
    conn.execute.side_effect = OperationalError("SELECT 1", {}, Exception("disk I/O error"))

    with pytest.raises(StoreUnavailableError):
        stores.get_project(conn, "p1")


def test_service_reports_retryable_failure(project):
    with patch("teamforge.stores.get_project", side_effect=StoreUnavailableError("down")):
        result = service.join_project(project.id, "user-b")

    assert result.error == MembershipError.STORE_UNAVAILABLE
    assert result.retryable

    # Nothing was written
    with get_db_connection() as conn:
        assert stores.list_membership_requests(conn, project.id) == []


def test_failure_after_insert_rolls_back_join(project):
    real_insert = stores.insert_membership_request

    def insert_then_fail(conn, record):
        real_insert(conn, record)
        raise StoreUnavailableError("connection dropped")

    with patch("teamforge.stores.insert_membership_request", side_effect=insert_then_fail):
        result = service.join_project(project.id, "user-b")

    assert result.error == MembershipError.STORE_UNAVAILABLE
    with get_db_connection() as conn:
        assert stores.list_membership_requests(conn, project.id) == []

    # A retry goes through once the store is back
    assert service.join_project(project.id, "user-b").ok


def test_failure_after_update_leaves_request_pending(project):
    r1 = service.join_project(project.id, "user-b").value.membership
    real_update = stores.update_membership_request_status

    def update_then_fail(conn, request_id, new_status, expected_status):
        real_update(conn, request_id, new_status, expected_status)
        raise StoreUnavailableError("connection dropped")

    with patch("teamforge.stores.update_membership_request_status", side_effect=update_then_fail):
        result = service.decide_membership(project.id, r1.id, "user-a", Decision.accept)

    assert result.error == MembershipError.STORE_UNAVAILABLE
    with get_db_connection() as conn:
        assert stores.get_membership_request_by_id(conn, r1.id).status == MembershipStatus.pending
