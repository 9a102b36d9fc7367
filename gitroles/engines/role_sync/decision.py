"""Role decision: should a linked user hold a role of a given kind?"""

from __future__ import annotations

from collections.abc import Mapping

from gitroles.engines.role_sync.models import GuildSyncTarget, RepoMembership, RoleKind


def decide(
    kind: RoleKind,
    github_login: str,
    target: GuildSyncTarget,
    membership_by_full_name: Mapping[str, RepoMembership],
) -> bool:
    """True if *github_login* appears in the *kind* set of any followed repository.

    Repositories without data (failed fetch) count as empty.
    """
    login = github_login.lower()
    for repo in target.repositories:
        membership = membership_by_full_name.get(repo.full_name)
        if membership is not None and login in membership.logins(kind):
            return True
    return False
