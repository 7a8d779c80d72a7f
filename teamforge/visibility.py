"""
teamforge/visibility.py

Listing and read-access filters for projects.

Current behaviour: is_public is stored but does not restrict reads. The
hardened rule (public, or owned, or the actor has a pending/accepted row) is
applied only when enforce_visibility is True (ENFORCE_PROJECT_VISIBILITY).

Pure Python logic - no FastAPI imports, no database access.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from teamforge.models import MembershipRequest, MembershipStatus, Project

# Statuses that grant sight of a private project
VISIBLE_STATUSES = (MembershipStatus.pending, MembershipStatus.accepted)


def _newest_first(projects: Iterable[Project]) -> List[Project]:
    return sorted(projects, key=lambda p: p.created_at, reverse=True)


def can_view(
    project: Project,
    actor: Optional[str],
    record: Optional[MembershipRequest] = None,
    enforce_visibility: bool = False,
) -> bool:
    """
    Check whether actor may read a single project.

    Args:
        project: Project being read
        actor: Current user id or None
        record: The actor's membership row for this project, if any
        enforce_visibility: Apply the is_public rule

    Returns:
        True if the project may be shown
    """
    if not enforce_visibility or project.is_public:
        return True
    if not actor:
        return False
    if actor == project.creator_id:
        return True
    return (
        record is not None
        and record.user_id == actor
        and record.project_id == project.id
        and record.status in VISIBLE_STATUSES
    )


def list_visible(
    projects: Iterable[Project],
    actor: Optional[str],
    memberships: Optional[Iterable[MembershipRequest]] = None,
    enforce_visibility: bool = False,
) -> List[Project]:
    """
    The "all projects" listing, newest first.

    Args:
        projects: Candidate projects
        actor: Current user id or None
        memberships: The actor's membership rows (any project); only used
            when enforce_visibility is True
        enforce_visibility: Apply the is_public rule

    Returns:
        Projects the actor may see
    """
    if not enforce_visibility:
        return _newest_first(projects)

    by_project = {}
    for record in memberships or []:
        if record.user_id == actor:
            by_project[record.project_id] = record

    return _newest_first(
        p for p in projects
        if can_view(p, actor, by_project.get(p.id), enforce_visibility=True)
    )


def list_owned(projects: Iterable[Project], actor: Optional[str]) -> List[Project]:
    """The "my projects" listing: projects created by actor, newest first."""
    if not actor:
        return []
    return _newest_first(p for p in projects if p.creator_id == actor)
