"""Fetch model and label artifacts from local paths or HTTP endpoints."""
from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

import requests

from . import config

logger = logging.getLogger(__name__)


class ArtifactFetchError(OSError):
    """Raised when an artifact cannot be read or downloaded."""


def is_remote(location: str) -> bool:
    return urlparse(str(location)).scheme in {"http", "https"}


class ArtifactFetcher:
    """Read JSON artifacts and make model files available on local disk.

    Local locations are plain paths. ``http(s)://`` locations are fetched with
    ``requests``; single files are downloaded once into ``cache_dir``.
    """

    def __init__(
        self,
        cache_dir: Path = config.CACHE_DIR,
        timeout: float = config.FETCH_TIMEOUT_S,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_json(self, location: str) -> Any:
        """Return the parsed JSON document at ``location``.

        Raises ``ArtifactFetchError`` when the document is unreachable and
        ``ValueError`` when it is not valid JSON.
        """
        if is_remote(location):
            response = self._get(location)
            return json.loads(response.text)

        path = Path(location)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ArtifactFetchError(f"cannot read {path}: {exc}") from exc
        return json.loads(text)

    def resolve(self, base: str, relative: str) -> str:
        """Resolve ``relative`` against the location of the document ``base``."""
        if is_remote(relative) or Path(relative).is_absolute():
            return relative
        if is_remote(base):
            return urljoin(base, relative)
        return str(Path(base).parent / relative)

    def localize(self, location: str) -> Path:
        """Return a local path for ``location``, downloading remote files."""
        if not is_remote(location):
            return Path(location)

        digest = hashlib.sha1(location.encode("utf-8")).hexdigest()[:12]
        name = Path(urlparse(location).path).name or "artifact"
        target = self.cache_dir / f"{digest}_{name}"
        if target.exists():
            logger.debug("Using cached artifact %s for %s", target, location)
            return target

        response = self._get(location)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        target.write_bytes(response.content)
        logger.info("Downloaded %s -> %s", location, target)
        return target

    def _get(self, url: str) -> requests.Response:
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ArtifactFetchError(f"cannot fetch {url}: {exc}") from exc
        return response
