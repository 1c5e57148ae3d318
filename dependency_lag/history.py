"""
Commit history access backed by GitPython.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Union

from git import Repo
from git.exc import BadName, BadObject, GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from .config import CommitSelection
from .exceptions import RepositoryError
from .models import CommitInfo
from .time_utils import ensure_utc, from_epoch


logger = logging.getLogger(__name__)


class GitHistory:
    """Walk the first-parent history of a local repository."""

    def __init__(self, repo_path: Union[str, Path]) -> None:
        self.repo_path = Path(repo_path)
        try:
            self.repo = Repo(self.repo_path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise RepositoryError(f"Cannot open repository at {self.repo_path}: {e}") from e

    def commits_touching(
        self,
        paths: Sequence[str],
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
    ) -> List[CommitInfo]:
        """Commits touching any of ``paths``, oldest first, filtered by author time.

        ``--since`` is passed to git only to prune the walk (it compares
        committer dates); the author-time window is applied here.
        """
        args = ["--first-parent", "--reverse", "--pretty=format:%H %at"]
        if since is not None:
            since = ensure_utc(since)
            args.append("--since=" + since.strftime("%Y-%m-%d %H:%M:%S +0000"))
        if until is not None:
            until = ensure_utc(until)
        args.append("--")
        args.extend(paths)

        try:
            output = self.repo.git.log(*args)
        except GitCommandError as e:
            raise RepositoryError(f"Cannot enumerate commits of {self.repo_path}: {e}") from e

        commits = []
        for line in output.splitlines():
            parts = line.split()
            if len(parts) != 2:
                continue
            authored_at = from_epoch(int(parts[1]))
            if since is not None and authored_at < since:
                continue
            if until is not None and authored_at > until:
                continue
            commits.append(CommitInfo(hash=parts[0], authored_at=authored_at))

        logger.debug("%d commits touch %s", len(commits), ", ".join(paths))
        return commits

    def read_file(self, commit_hash: str, path: str) -> Optional[str]:
        """Contents of ``path`` at ``commit_hash``; None if absent or unreadable."""
        try:
            item = self.repo.commit(commit_hash).tree / path
        except KeyError:
            return None
        except (BadName, BadObject, ValueError, GitCommandError) as e:
            logger.debug("Cannot read %s at %s: %s", path, commit_hash[:7], e)
            return None
        if item.type != "blob":
            return None
        return item.data_stream.read().decode("utf-8", errors="replace")


def select_commits(
    commits: List[CommitInfo],
    limit: Optional[int],
    selection: CommitSelection = CommitSelection.NEWEST,
) -> List[CommitInfo]:
    """Apply a commit-count cap to an oldest-first commit list.

    ``NEWEST`` keeps the ``limit`` most recent commits, ``OLDEST`` the first
    ``limit`` ones. Order stays oldest first either way.
    """
    if limit is None or len(commits) <= limit:
        return list(commits)
    if selection is CommitSelection.OLDEST:
        return list(commits[:limit])
    return list(commits[-limit:])
