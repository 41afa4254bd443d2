"""Data records of a crawl: screenshot results, reports, sitemaps and session state."""

from __future__ import annotations

import re
import threading
import time
import xml.etree.ElementTree as ET
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_TIME_PATTERN = re.compile(
    r"(\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d)(?:\.(\d+))?(Z|[+-]\d\d:\d\d)"
)
_ISO_SPLIT = re.compile(r"^(.*T\d\d:\d\d:\d\d)(?:\.(\d+))?(.*)$")


def _now() -> datetime:
    return datetime.now().astimezone()


def _format_time(moment: datetime) -> str:
    """Format a time as RFC 3339 with trailing fraction zeros dropped."""
    if moment.tzinfo is None:
        moment = moment.astimezone()
    match = _ISO_SPLIT.match(moment.isoformat())
    if match is None:
        raise ValueError(f"cannot format time {moment!r}")
    base, fraction, zone = match.groups()
    fraction = (fraction or "").rstrip("0")
    if zone == "+00:00":
        zone = "Z"
    return base + (f".{fraction}" if fraction else "") + zone


def _parse_time(text: str) -> datetime:
    """Parse an RFC 3339 time, keeping at most microsecond precision."""
    match = _TIME_PATTERN.fullmatch(text)
    if match is None:
        raise ValueError(f"invalid timestamp: {text!r}")
    base, fraction, zone = match.groups()
    fraction = (fraction or "")[:6].ljust(6, "0")
    if zone == "Z":
        zone = "+00:00"
    return datetime.fromisoformat(f"{base}.{fraction}{zone}")


@dataclass
class ScreenshotResult:
    """Outcome of capturing one page."""

    url: str
    filename: str
    success: bool = False
    error: str = ""
    timestamp: datetime = field(default_factory=_now)
    file_size: int = 0
    duration: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "url": self.url,
            "filename": self.filename,
            "success": self.success,
        }
        if self.error:
            data["error"] = self.error
        data["timestamp"] = _format_time(self.timestamp)
        if self.file_size:
            data["fileSize"] = self.file_size
        if self.duration:
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ScreenshotResult:
        stamp = data.get("timestamp")
        return cls(
            url=data.get("url") or "",
            filename=data.get("filename") or "",
            success=bool(data.get("success", False)),
            error=data.get("error") or "",
            timestamp=_parse_time(stamp) if stamp is not None else _ZERO_TIME,
            file_size=int(data.get("fileSize") or 0),
            duration=int(data.get("duration") or 0),
        )


@dataclass
class Report:
    """Aggregate report over all crawl sessions for a site."""

    base_url: str = ""
    total_pages: int = 0
    successful_screenshots: int = 0
    failed_screenshots: int = 0
    timestamp: datetime = field(default_factory=_now)
    last_update: datetime | None = None
    new_pages_in_this_run: int = 0
    total_duration: int = 0
    average_page_size: int = 0
    results: list[ScreenshotResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "baseUrl": self.base_url,
            "totalPages": self.total_pages,
            "successfulScreenshots": self.successful_screenshots,
            "failedScreenshots": self.failed_screenshots,
            "timestamp": _format_time(self.timestamp),
        }
        if self.last_update is not None:
            data["lastUpdate"] = _format_time(self.last_update)
        data["newPagesInThisRun"] = self.new_pages_in_this_run
        data["totalDuration"] = self.total_duration
        data["averagePageSize"] = self.average_page_size
        data["results"] = [result.to_dict() for result in self.results]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Report:
        stamp = data.get("timestamp")
        last = data.get("lastUpdate")
        return cls(
            base_url=data.get("baseUrl") or "",
            total_pages=int(data.get("totalPages") or 0),
            successful_screenshots=int(data.get("successfulScreenshots") or 0),
            failed_screenshots=int(data.get("failedScreenshots") or 0),
            timestamp=_parse_time(stamp) if stamp is not None else _ZERO_TIME,
            last_update=_parse_time(last) if last is not None else None,
            new_pages_in_this_run=int(data.get("newPagesInThisRun") or 0),
            total_duration=int(data.get("totalDuration") or 0),
            average_page_size=int(data.get("averagePageSize") or 0),
            results=[ScreenshotResult.from_dict(item) for item in data.get("results") or []],
        )


@dataclass(frozen=True)
class SitemapURL:
    """One <url> entry of a sitemap."""

    loc: str = ""
    lastmod: str = ""
    changefreq: str = ""
    priority: str = ""


_SITEMAP_FIELDS = frozenset({"loc", "lastmod", "changefreq", "priority"})


def _local_name(tag: str) -> str:
    return tag.rpartition("}")[2]


def parse_urlset(data: bytes | str) -> list[SitemapURL]:
    """Parse a sitemap document into its <url> entries; raises ValueError on bad XML."""
    try:
        root = ET.fromstring(data)
    except ET.ParseError as exc:
        raise ValueError(f"invalid sitemap XML: {exc}") from exc

    entries = []
    for element in root:
        if not isinstance(element.tag, str) or _local_name(element.tag) != "url":
            continue
        values = {}
        for child in element:
            if not isinstance(child.tag, str):
                continue
            name = _local_name(child.tag)
            if name in _SITEMAP_FIELDS:
                values[name] = "".join(child.itertext())
        entries.append(SitemapURL(**values))
    return entries


class CrawlSession:
    """State of one crawl: the queue, visited and existing URLs, and results."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url
        self._visited: set[str] = set()
        self._existing: set[str] = set()
        self._queue: deque[str] = deque()
        self._depths: dict[str, int] = {}
        self._results: list[ScreenshotResult] = []
        self._started = time.monotonic()
        self._lock = threading.Lock()

    def add_url(self, url: str, depth: int) -> None:
        """Queue a URL at a depth unless it was visited or already captured."""
        with self._lock:
            if url not in self._visited and url not in self._existing:
                self._queue.append(url)
                self._depths[url] = depth

    def mark_visited(self, url: str) -> None:
        with self._lock:
            self._visited.add(url)

    def mark_existing(self, url: str) -> None:
        with self._lock:
            self._existing.add(url)

    def add_result(self, result: ScreenshotResult) -> None:
        with self._lock:
            self._results.append(result)

    def next_url(self) -> tuple[str, int] | None:
        """Pop the next queued URL with its depth, or None when the queue is empty."""
        with self._lock:
            if not self._queue:
                return None
            url = self._queue.popleft()
            return url, self._depths.get(url, 0)

    def is_visited(self, url: str) -> bool:
        with self._lock:
            return url in self._visited

    def is_existing(self, url: str) -> bool:
        with self._lock:
            return url in self._existing

    @property
    def results(self) -> list[ScreenshotResult]:
        with self._lock:
            return list(self._results)

    def elapsed(self) -> timedelta:
        return timedelta(seconds=time.monotonic() - self._started)

    def stats(self) -> tuple[int, int, int]:
        """Return (total, successful, failed) result counts."""
        with self._lock:
            success = sum(1 for result in self._results if result.success)
            total = len(self._results)
        return total, success, total - success