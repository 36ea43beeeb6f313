"""
Manifest downloads -- conditional GETs with ETag caching.

Each manifest source (the primary plus any secondary URLs) is fetched
independently. A source that fails does not stop the others; only the
first failure is reported to the caller afterwards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Union

import requests

from .. import __version__, app_dir
from ..cache import CACHE_FILE_NAME, Cache
from ..config import Config, ManifestConfig
from ..errors import ManifestInvalid, ManifestUpdateFailed, SaveKeepError
from .document import Manifest

logger = logging.getLogger("savekeep.manifest.update")

USER_AGENT = f"savekeep/{__version__}"
UPDATE_INTERVAL = timedelta(hours=24)
REQUEST_TIMEOUT = 60


@dataclass(frozen=True)
class ManifestUpdate:
    """Outcome of a successful update check for one manifest URL."""

    url: str
    etag: Optional[str]
    timestamp: datetime
    modified: bool


UpdateResult = Union[Optional[ManifestUpdate], SaveKeepError]


def should_update(
    url: str,
    cache: Cache,
    force: bool,
    primary: bool,
    home: Optional[Path] = None,
) -> bool:
    """Whether a manifest is due for a check (missing, uncached, or 24h old)."""
    if force:
        return True
    if not Manifest.path_for(url, primary, home).exists():
        return True
    cached = cache.manifests.get(url)
    if cached is None or cached.checked is None:
        return True
    return datetime.now(timezone.utc) - _aware(cached.checked) >= UPDATE_INTERVAL


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def update_one(
    url: str,
    cache: Cache,
    force: bool,
    primary: bool,
    home: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> Optional[ManifestUpdate]:
    """Download one manifest if it changed.

    Returns:
        The update record, or None when no check was due.

    Raises:
        ManifestUpdateFailed: Network error, unexpected status, or write failure.
        ManifestInvalid: The server returned content that is not a manifest.
    """
    identifier = None if primary else url

    if not should_update(url, cache, force, primary, home):
        return None

    path = Manifest.path_for(url, primary, home)
    headers = {"User-Agent": USER_AGENT}
    cached = cache.manifests.get(url)
    old_etag = cached.etag if cached else None
    if old_etag and path.exists():
        headers["If-None-Match"] = old_etag

    http = session or requests
    try:
        resp = http.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as exc:
        logger.warning("Manifest request failed for %s: %s", url, exc)
        raise ManifestUpdateFailed(identifier) from exc

    now = datetime.now(timezone.utc)

    if resp.status_code == 304:
        logger.debug("Manifest not modified: %s", url)
        return ManifestUpdate(url=url, etag=old_etag, timestamp=now, modified=False)

    if resp.status_code != 200:
        logger.warning("Manifest request for %s returned HTTP %s", url, resp.status_code)
        raise ManifestUpdateFailed(identifier)

    try:
        content = resp.content.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ManifestUpdateFailed(identifier) from exc
    Manifest.load_from_string(content, strict=True, identifier=identifier)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        logger.error("Failed to save manifest %s: %s", path, exc)
        raise ManifestUpdateFailed(identifier) from exc

    logger.info("Manifest updated: %s", url)
    return ManifestUpdate(
        url=url,
        etag=resp.headers.get("ETag"),
        timestamp=now,
        modified=True,
    )


def update_manifests(
    config: ManifestConfig,
    cache: Cache,
    force: bool = False,
    home: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> list[UpdateResult]:
    """Check the primary (when enabled or forced) and every secondary URL.

    Returns one entry per source: an update, None when skipped, or the
    error that source hit.
    """
    sources: list[tuple[str, bool]] = []
    if config.enable or force:
        sources.append((config.url, True))
    for url in config.secondary_manifest_urls(force):
        sources.append((url, False))

    results: list[UpdateResult] = []
    for url, primary in sources:
        try:
            results.append(update_one(url, cache, force, primary, home, session))
        except (ManifestUpdateFailed, ManifestInvalid) as exc:
            results.append(exc)
    return results


def update_manifests_into_cache(
    config: Config,
    cache: Cache,
    force: bool = False,
    home: Optional[Path] = None,
    session: Optional[requests.Session] = None,
) -> None:
    """Run every update, record successes in the cache, then raise the first error."""
    home = home or app_dir()
    error: Optional[SaveKeepError] = None

    for result in update_manifests(config.manifest, cache, force, home, session):
        if isinstance(result, SaveKeepError):
            if error is None:
                error = result
            continue
        if result is not None:
            cache.update_manifest(result)
            cache.save(home / CACHE_FILE_NAME)

    if error is not None:
        raise error
