"""
Locate or clone the repository to analyze.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

from git import Repo
from git.exc import GitCommandError

from .config import GH_TOKEN_ENV, env_token
from .exceptions import RepositoryError


logger = logging.getLogger(__name__)


def clone_directory(url: str, workdir: Union[str, Path]) -> Path:
    """Directory a clone of ``url`` lives in: ``workdir/<name without .git>``."""
    name = url.rstrip("/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[:-4]
    return Path(workdir) / name


def authenticated_url(url: str, token: Optional[str]) -> str:
    """Embed a token into an https clone URL; other URLs are returned unchanged."""
    if not token:
        return url
    parts = urlsplit(url)
    if parts.scheme != "https" or "@" in parts.netloc:
        return url
    return urlunsplit(parts._replace(netloc=f"token:{token}@{parts.netloc}"))


def ensure_repository(location: str, workdir: Union[str, Path] = ".") -> Path:
    """Return a local path for ``location``, cloning it first when it is a URL.

    An existing local directory is used as-is. A URL is cloned once into
    ``workdir`` and reused by later runs.

    Raises:
        RepositoryError: if the clone fails.
    """
    local = Path(location).expanduser()
    if local.is_dir():
        return local

    target = clone_directory(location, workdir)
    if target.exists():
        logger.info("Using existing clone %s", target)
        return target

    logger.info("Cloning %s -> %s", location, target)
    try:
        Repo.clone_from(authenticated_url(location, env_token(GH_TOKEN_ENV)), target)
    except GitCommandError as e:
        raise RepositoryError(f"Cannot clone {location}: {e.status}") from e
    return target
