"""
teamforge/test_composition.py

Tests for compose_team.

Run: pytest teamforge/test_composition.py -v
"""

from datetime import datetime, timezone

import pytest

from teamforge.composition import compose_team
from teamforge.models import MembershipRequest, MembershipStatus, Profile, Project


@pytest.fixture
def project():
    return Project(
        id="p1",
        creator_id="owner",
        title="Campus Marketplace",
        max_team_size=3,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def profiles():
    return {
        "owner": Profile(user_id="owner", name="Ada"),
        "bob": Profile(user_id="bob", name="Bob"),
        "cat": Profile(user_id="cat", name="Cat"),
    }


def record(user_id, status, record_id=None):
    return MembershipRequest(id=record_id or f"r-{user_id}", project_id="p1", user_id=user_id, status=status)


def test_partitions_by_status(project, profiles):
    records = [
        record("bob", MembershipStatus.accepted),
        record("cat", MembershipStatus.pending),
        record("dan", MembershipStatus.rejected),
    ]
    team = compose_team(project, records, profiles.get)

    assert team.owner.name == "Ada"
    assert [p.user_id for p in team.accepted] == ["bob"]
    assert [(e.request_id, e.profile.user_id) for e in team.pending] == [("r-cat", "cat")]


def test_owner_row_is_filtered_out(project, profiles):
    records = [
        record("owner", MembershipStatus.pending),
        record("owner", MembershipStatus.accepted, record_id="r-owner-2"),
        record("bob", MembershipStatus.accepted),
    ]
    team = compose_team(project, records, profiles.get)

    ids = {p.user_id for p in team.accepted} | {e.profile.user_id for e in team.pending}
    assert "owner" not in ids
    assert team.team_size == 2


def test_accepted_and_pending_are_disjoint(project, profiles):
    records = [
        record("bob", MembershipStatus.accepted),
        record("cat", MembershipStatus.pending),
    ]
    team = compose_team(project, records, profiles.get)

    accepted = {p.user_id for p in team.accepted}
    pending = {e.profile.user_id for e in team.pending}
    assert accepted.isdisjoint(pending)


def test_missing_profiles_become_placeholders(project):
    records = [
        record("ghost-1", MembershipStatus.accepted),
        record("ghost-2", MembershipStatus.pending),
    ]
    team = compose_team(project, records, lambda user_id: None)

    assert team.owner.is_placeholder and team.owner.name == "Unknown"
    assert len(team.accepted) == 1
    assert team.accepted[0].is_placeholder and team.accepted[0].name == "Member"
    assert len(team.pending) == 1
    assert team.pending[0].profile.user_id == "ghost-2"
    assert team.pending[0].profile.name == "User"


def test_capacity_is_reported_not_enforced(project, profiles):
    records = [record(f"user-{i}", MembershipStatus.accepted) for i in range(4)]
    team = compose_team(project, records, profiles.get)

    assert len(team.accepted) == 4
    assert team.team_size == 5
    assert team.max_team_size == 3
    assert team.open_slots == 0
    assert team.over_capacity is True


def test_empty_team(project, profiles):
    team = compose_team(project, [], profiles.get)

    assert team.accepted == []
    assert team.pending == []
    assert team.team_size == 1
    assert team.open_slots == 2
    assert team.over_capacity is False
