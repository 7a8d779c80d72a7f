"""
teamforge/composition.py

Project composition view: owner + accepted members + pending requesters.

Recomputed from the current membership rows on every read; never persisted.
"""

from __future__ import annotations

from typing import Callable, Iterable, List, Optional

from teamforge.models import (
    MembershipRequest,
    MembershipStatus,
    PendingEntry,
    Profile,
    Project,
    ProjectComposition,
)

ProfileLookup = Callable[[str], Optional[Profile]]

# Display names for users without a profile row
OWNER_PLACEHOLDER = "Unknown"
MEMBER_PLACEHOLDER = "Member"
REQUESTER_PLACEHOLDER = "User"


def placeholder_profile(user_id: str, name: str) -> Profile:
    return Profile(user_id=user_id, name=name, is_placeholder=True)


def resolve_profile(profile_lookup: ProfileLookup, user_id: str, fallback_name: str) -> Profile:
    """Look up a profile, substituting a placeholder so the user is still counted."""
    profile = profile_lookup(user_id)
    if profile is None:
        return placeholder_profile(user_id, fallback_name)
    return profile


def compose_team(
    project: Project,
    records: Iterable[MembershipRequest],
    profile_lookup: ProfileLookup,
) -> ProjectComposition:
    """
    Build the team view for a project.

    Rows for the creator are dropped before partitioning, so the owner never
    appears among accepted or pending entries. Rejected rows are not part of
    the team. Capacity figures are informational only.

    Args:
        project: The project
        records: All membership rows for the project
        profile_lookup: user_id -> Profile or None

    Returns:
        ProjectComposition
    """
    accepted: List[Profile] = []
    pending: List[PendingEntry] = []

    for record in records:
        if record.user_id == project.creator_id:
            continue
        if record.status == MembershipStatus.accepted:
            accepted.append(resolve_profile(profile_lookup, record.user_id, MEMBER_PLACEHOLDER))
        elif record.status == MembershipStatus.pending:
            pending.append(
                PendingEntry(
                    request_id=record.id,
                    profile=resolve_profile(profile_lookup, record.user_id, REQUESTER_PLACEHOLDER),
                )
            )

    owner = resolve_profile(profile_lookup, project.creator_id, OWNER_PLACEHOLDER)

    team_size = 1 + len(accepted)
    max_team_size = project.max_team_size

    return ProjectComposition(
        owner=owner,
        accepted=accepted,
        pending=pending,
        max_team_size=max_team_size,
        team_size=team_size,
        open_slots=max(0, max_team_size - team_size),
        over_capacity=team_size > max_team_size,
    )
