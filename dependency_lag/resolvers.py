"""
Ecosystem-specific release time resolvers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

import requests
from packaging.utils import canonicalize_name
from packaging.version import InvalidVersion, Version

from .config import NPM_TOKEN_ENV, REGISTRY_URLS, REQUEST_TIMEOUT, env_token
from .models import ReleaseRecord
from .time_utils import parse_timestamp


logger = logging.getLogger(__name__)


@dataclass
class RegistryEntry:
    """Everything one registry response tells us about a dependency."""

    release_times: Dict[str, Optional[datetime]] = field(default_factory=dict)
    latest_version: Optional[str] = None


@dataclass
class ReleaseTimeCache:
    """Per-run in-memory cache shared by the resolvers of one analysis."""

    entries: Dict[Tuple[str, str], RegistryEntry] = field(default_factory=dict)
    session: requests.Session = field(default_factory=requests.Session)
    timeout: float = REQUEST_TIMEOUT
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def get(self, ecosystem: str, name: str) -> Optional[RegistryEntry]:
        with self.lock:
            return self.entries.get((ecosystem, name))

    def put(self, ecosystem: str, name: str, entry: RegistryEntry) -> RegistryEntry:
        with self.lock:
            # First writer wins so concurrent prefetches agree on one entry.
            return self.entries.setdefault((ecosystem, name), entry)

    def put_version(
        self, ecosystem: str, name: str, version: str, released_at: Optional[datetime]
    ) -> None:
        with self.lock:
            entry = self.entries.setdefault((ecosystem, name), RegistryEntry())
            entry.release_times[version] = released_at

    def close(self) -> None:
        """Release the pooled HTTP connections."""
        self.session.close()

    def __enter__(self) -> "ReleaseTimeCache":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class RegistryResolver:
    """Base class: fetch a dependency's full version map once, then serve from cache."""

    ecosystem = ""

    def __init__(self, cache: ReleaseTimeCache, base_url: Optional[str] = None) -> None:
        self.cache = cache
        self.base_url = (base_url or REGISTRY_URLS[self.ecosystem]).rstrip("/")

    def cache_key(self, name: str) -> str:
        return name

    def resolve(self, name: str, version: str) -> Optional[datetime]:
        """Publication time of ``name@version`` or None when unknown."""
        entry = self._entry(name)
        return self._lookup_version(entry, version)

    def latest(self, name: str) -> Optional[ReleaseRecord]:
        """The registry's latest release of ``name``."""
        entry = self._entry(name)
        if not entry.latest_version:
            return None
        released_at = self._lookup_version(entry, entry.latest_version)
        if released_at is None:
            return None
        return ReleaseRecord(name=name, version=entry.latest_version, released_at=released_at)

    def fetch(self, name: str) -> RegistryEntry:
        raise NotImplementedError

    def _lookup_version(self, entry: RegistryEntry, version: str) -> Optional[datetime]:
        return entry.release_times.get(version)

    def _entry(self, name: str) -> RegistryEntry:
        key = self.cache_key(name)
        cached = self.cache.get(self.ecosystem, key)
        if cached is not None:
            logger.debug("Cache hit: %s:%s", self.ecosystem, key)
            return cached

        try:
            entry = self.fetch(key)
        except (requests.RequestException, ValueError) as e:
            logger.info("Release lookup failed for %s:%s: %s", self.ecosystem, key, e)
            entry = RegistryEntry()
        return self.cache.put(self.ecosystem, key, entry)

    def _get_json(self, url: str, headers: Optional[Dict[str, str]] = None):
        logger.debug("GET %s", url)
        with self.cache.session.get(url, headers=headers, timeout=self.cache.timeout) as response:
            response.raise_for_status()
            return response.json()


class NpmReleaseResolver(RegistryResolver):
    """Release times from the npm registry ``time`` map."""

    ecosystem = "npm"

    def fetch(self, name: str) -> RegistryEntry:
        url = f"{self.base_url}/{requests.utils.quote(name, safe='@')}"
        headers = {"Accept": "application/json"}
        token = env_token(NPM_TOKEN_ENV)
        if token:
            headers["Authorization"] = f"Bearer {token}"

        logger.info("Fetching release times for %s", name)
        data = self._get_json(url, headers=headers)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected npm response for {name}")

        times = {}
        for ver, timestamp in (data.get("time") or {}).items():
            if ver in ("created", "modified"):
                continue
            released_at = parse_timestamp(timestamp)
            if released_at is not None:
                times[ver] = released_at

        latest = (data.get("dist-tags") or {}).get("latest")
        return RegistryEntry(release_times=times, latest_version=latest)


class PyPIReleaseResolver(RegistryResolver):
    """Release times from the PyPI JSON API (first uploaded file per release)."""

    ecosystem = "py"

    def cache_key(self, name: str) -> str:
        return canonicalize_name(name)

    def fetch(self, name: str) -> RegistryEntry:
        url = f"{self.base_url}/{name}/json"
        logger.info("Fetching release times for %s", name)
        data = self._get_json(url)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected PyPI response for {name}")

        times = {}
        for ver, release_files in (data.get("releases") or {}).items():
            if not release_files:
                continue
            first = release_files[0]
            released_at = parse_timestamp(
                first.get("upload_time_iso_8601") or first.get("upload_time")
            )
            if released_at is not None:
                times[ver] = released_at

        latest = (data.get("info") or {}).get("version")
        return RegistryEntry(release_times=times, latest_version=latest)

    def _lookup_version(self, entry: RegistryEntry, version: str) -> Optional[datetime]:
        if version in entry.release_times:
            return entry.release_times[version]
        try:
            wanted = Version(version)
        except InvalidVersion:
            return None
        for ver, released_at in entry.release_times.items():
            try:
                if Version(ver) == wanted:
                    return released_at
            except InvalidVersion:
                continue
        return None


def escape_module_path(path: str) -> str:
    """Go module proxy case encoding: upper-case letters become ``!`` + lower."""
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in path)


class GoProxyReleaseResolver(RegistryResolver):
    """Release times from the Go module proxy.

    The proxy has no endpoint listing every version with its time, so the
    per-module map is filled one ``.info`` request at a time. Misses are
    cached too.
    """

    ecosystem = "go"

    def resolve(self, name: str, version: str) -> Optional[datetime]:
        cached = self.cache.get(self.ecosystem, name)
        if cached is not None and version in cached.release_times:
            logger.debug("Cache hit: go:%s@%s", name, version)
            return cached.release_times[version]

        url = f"{self.base_url}/{escape_module_path(name)}/@v/{escape_module_path(version)}.info"
        try:
            released_at = self._fetch_info(url)[1]
        except (requests.RequestException, ValueError) as e:
            logger.info("Release lookup failed for go:%s@%s: %s", name, version, e)
            released_at = None
        self.cache.put_version(self.ecosystem, name, version, released_at)
        return released_at

    def latest(self, name: str) -> Optional[ReleaseRecord]:
        url = f"{self.base_url}/{escape_module_path(name)}/@latest"
        try:
            version, released_at = self._fetch_info(url)
        except (requests.RequestException, ValueError) as e:
            logger.info("Latest lookup failed for go:%s: %s", name, e)
            return None
        if not version or released_at is None:
            return None
        self.cache.put_version(self.ecosystem, name, version, released_at)
        return ReleaseRecord(name=name, version=version, released_at=released_at)

    def _fetch_info(self, url: str) -> Tuple[Optional[str], Optional[datetime]]:
        data = self._get_json(url)
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected proxy response from {url}")
        return data.get("Version"), parse_timestamp(data.get("Time"))


RESOLVER_CLASSES = {
    "npm": NpmReleaseResolver,
    "go": GoProxyReleaseResolver,
    "py": PyPIReleaseResolver,
}
