"""On-disk caches for map images and geocoding responses."""

import enum
import json
import logging
import os
import tempfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import requests

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

_MAP_FALLBACK_QUERY = "?auto=compress&cs=tinysrgb&w=600&h=350"
_STREETVIEW_FALLBACK_QUERY = "?auto=compress&cs=tinysrgb&w=600&h=400"

FALLBACK_MAP_IMAGES = tuple(
    f"https://images.pexels.com/photos/{photo}/pexels-photo-{photo}.jpeg{_MAP_FALLBACK_QUERY}"
    for photo in (1028600, 417074, 1308940, 1707820, 1563256)
)
FALLBACK_STREETVIEW_IMAGES = tuple(
    f"https://images.pexels.com/photos/{photo}/pexels-photo-{photo}.jpeg{_STREETVIEW_FALLBACK_QUERY}"
    for photo in (2389349, 2603464, 3751007, 2526128, 2119713)
)


class CacheStatus(str, enum.Enum):
    HIT = "hit"
    DOWNLOADED = "downloaded"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass(slots=True)
class CacheResult:
    status: CacheStatus
    path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.status is not CacheStatus.FAILED


def format_coordinate(value: float) -> str:
    return f"{round(float(value), 6)}".replace(".", "_")


def static_map_filename(lat: float, lng: float, zoom: int, width: int, height: int) -> str:
    return f"map_{format_coordinate(lat)}_{format_coordinate(lng)}_{zoom}_{width}x{height}.jpg"


def streetview_filename(lat: float, lng: float, heading: int, width: int, height: int) -> str:
    return f"sv_{format_coordinate(lat)}_{format_coordinate(lng)}_{heading}_{width}x{height}.jpg"


def geocode_filename(lat: float, lng: float) -> str:
    return f"geo_{format_coordinate(lat)}_{format_coordinate(lng)}.json"


def write_atomic(target: Path, content: bytes) -> None:
    """Write via a temp file in the target directory, then rename into place."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(content)
        os.replace(tmp_name, target)
    except OSError:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def pick_fallback(filename: str, candidates: Sequence[str]) -> Optional[str]:
    """Same filename, same stock image."""
    if not candidates:
        return None
    return candidates[zlib.crc32(filename.encode("utf-8")) % len(candidates)]


class AssetCache:
    """Memoize remote images under ``directory``; an existing file is always a hit."""

    def __init__(self, directory: Union[str, Path], session: Optional[requests.Session] = None) -> None:
        self.directory = Path(directory)
        self.session = session or requests.Session()

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def _download(self, url: str, target: Path, params: Optional[Dict[str, Any]] = None) -> bool:
        try:
            response = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Download failed for %s: %s", target.name, exc)
            return False

        content = response.content
        if not content:
            logger.warning("Empty response body for %s", target.name)
            return False

        write_atomic(target, content)
        return True

    def fallback(self, filename: str, fallback_urls: Sequence[str]) -> CacheResult:
        target = self.path_for(filename)
        fallback_url = pick_fallback(filename, fallback_urls)
        if fallback_url and self._download(fallback_url, target):
            logger.info("Cached fallback image for %s", filename)
            return CacheResult(CacheStatus.FALLBACK, target)
        return CacheResult(CacheStatus.FAILED)

    def fetch(
        self,
        filename: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        fallback_urls: Sequence[str] = (),
    ) -> CacheResult:
        target = self.path_for(filename)
        if target.exists():
            return CacheResult(CacheStatus.HIT, target)
        if self._download(url, target, params=params):
            logger.debug("Cached %s", filename)
            return CacheResult(CacheStatus.DOWNLOADED, target)
        return self.fallback(filename, fallback_urls)


class JsonCache:
    """Memoize API payloads as JSON files under ``directory``; a readable file is a hit."""

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def path_for(self, filename: str) -> Path:
        return self.directory / filename

    def load(self, filename: str) -> Optional[Dict[str, Any]]:
        path = self.path_for(filename)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", filename, exc)
            return None
        return payload if isinstance(payload, dict) else None

    def store(self, filename: str, payload: Dict[str, Any]) -> Path:
        target = self.path_for(filename)
        write_atomic(target, json.dumps(payload).encode("utf-8"))
        logger.debug("Cached %s", filename)
        return target
