"""Finding a site's pages through its sitemap.xml and robots.txt."""

from __future__ import annotations

import logging

import requests

from .models import parse_urlset
from .urls import fix_relative_url, is_valid_url, normalize_url

log = logging.getLogger(__name__)

_TIMEOUT = 30.0


class DiscoveryError(Exception):
    """Raised when a discovery resource cannot be reached."""


def extract_sitemap_references(robots_content: str) -> list[str]:
    """Return the absolute sitemap URLs named by 'Sitemap:' lines of a robots.txt."""
    references = []
    for line in robots_content.split("\n"):
        line = line.strip()
        if not line.lower().startswith("sitemap:"):
            continue
        reference = line.removeprefix("Sitemap:").strip()
        reference = reference.removeprefix("sitemap:").strip()
        if reference.startswith("http"):
            references.append(reference)
    return references


class DiscoveryService:
    """Collects same-site URLs from sitemaps, directly and via robots.txt."""

    def __init__(self, base_url: str, session: requests.Session | None = None) -> None:
        self.base_url = base_url
        self.timeout = _TIMEOUT
        self._session = session if session is not None else requests.Session()

    def _fetch(self, url: str, label: str) -> bytes | None:
        """Return the body of a 200 response, or None after logging why not."""
        try:
            with self._session.get(url, timeout=self.timeout) as response:
                if response.status_code != 200:
                    log.warning("%s not accessible: HTTP %d", label, response.status_code)
                    return None
                return response.content
        except requests.RequestException as exc:
            log.warning("%s fetch error: %s", label, exc)
            return None

    def fetch_sitemap(self, sitemap_url: str) -> list[str]:
        """Return the valid same-site locations listed in one sitemap."""
        label = f"Sitemap ({sitemap_url})"
        body = self._fetch(sitemap_url, label)
        if body is None:
            return []
        try:
            entries = parse_urlset(body)
        except ValueError as exc:
            log.warning("%s parse error: %s", label, exc)
            return []
        return [
            entry.loc
            for entry in entries
            if entry.loc and is_valid_url(entry.loc, self.base_url)
        ]

    def robots_sitemap_urls(self) -> list[str]:
        """Return the URLs of every sitemap referenced by the site's robots.txt."""
        body = self._fetch(self.base_url + "/robots.txt", "Robots.txt")
        if body is None:
            return []
        content = body.decode("utf-8", errors="replace")
        return [
            url
            for reference in extract_sitemap_references(content)
            for url in self.fetch_sitemap(reference)
        ]

    def discover_urls(self, check_sitemap: bool, check_robots: bool) -> list[str]:
        """Gather normalised, valid, same-site URLs from the enabled sources."""
        found: dict[str, None] = {}

        if check_sitemap:
            sitemap_urls = self.fetch_sitemap(self.base_url + "/sitemap.xml")
            found.update((normalize_url(url), None) for url in sitemap_urls)
            log.info("Sitemap discovery: %d URLs found", len(sitemap_urls))

        if check_robots:
            robots_urls = self.robots_sitemap_urls()
            found.update((normalize_url(url), None) for url in robots_urls)
            log.info("Robots.txt discovery: %d URLs found", len(robots_urls))

        resolved = (fix_relative_url(url, self.base_url) for url in found)
        return [url for url in resolved if is_valid_url(url, self.base_url)]

    def _check_access(self, url: str, label: str) -> None:
        try:
            with self._session.get(url, timeout=self.timeout) as response:
                status = response.status_code
        except requests.RequestException as exc:
            raise DiscoveryError(f"{label} test failed: {exc}") from exc
        if status != 200:
            raise DiscoveryError(f"{label} not accessible: HTTP {status}")

    def check_sitemap_access(self) -> None:
        """Raise DiscoveryError unless sitemap.xml answers with HTTP 200."""
        self._check_access(self.base_url + "/sitemap.xml", "sitemap")

    def check_robots_access(self) -> None:
        """Raise DiscoveryError unless robots.txt answers with HTTP 200."""
        self._check_access(self.base_url + "/robots.txt", "robots.txt")