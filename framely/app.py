"""The crawl workflow: set up, discover, capture pages, report, clean up."""

from __future__ import annotations

import logging
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from typing import Any

from .browser import BrowserError, BrowserService
from .config import Config
from .discovery import DiscoveryService
from .models import CrawlSession, Report
from .report import ReportService
from .urls import fix_relative_url, is_valid_url, normalize_url, should_skip_url

log = logging.getLogger(__name__)


class AppError(Exception):
    """Raised when a stage of the crawl cannot complete."""


class AppService:
    """Runs one crawl of a site with the given services."""

    def __init__(
        self,
        config: Config,
        browser: Any = None,
        discovery: Any = None,
        reports: Any = None,
    ) -> None:
        self.config = config
        self.browser = browser if browser is not None else BrowserService(config)
        self.discovery = discovery if discovery is not None else DiscoveryService(config.base_url)
        self.reports = reports if reports is not None else ReportService(config)
        self.session = CrawlSession(config.base_url)

    def initialize(self) -> None:
        """Prepare the output directory, test the site and load known URLs."""
        log.info("Initializing Framely Screenshot Service")
        log.info("Target: %s", self.config.base_url)
        log.info("Max Depth: %d", self.config.max_depth)
        log.info("Parallel Workers: %d", self.config.parallel_workers)

        try:
            self.reports.ensure_output_directory()
        except OSError as exc:
            raise AppError(f"output directory creation failed: {exc}") from exc

        try:
            self.browser.check_connection(self.config.base_url)
        except BrowserError as exc:
            raise AppError(f"connection test failed: {exc}") from exc

        existing = self.reports.existing_urls()
        for url in existing:
            self.session.mark_existing(url)
        log.info("Loaded %d existing URLs", len(existing))

    def discover_urls(self) -> None:
        """Queue URLs found in the sitemap and robots.txt, if enabled."""
        if not self.config.check_sitemap and not self.config.check_robots:
            log.info("URL discovery disabled")
            return

        log.info("Starting URL discovery...")
        discovered = self.discovery.discover_urls(
            self.config.check_sitemap, self.config.check_robots
        )
        for url in discovered:
            normalized = normalize_url(url)
            if not self.session.is_visited(normalized) and not self.session.is_existing(normalized):
                self.session.add_url(url, 1)
        log.info("Discovery complete: %d URLs added to queue", len(discovered))

    def crawl_website(self) -> None:
        """Crawl from the base URL, in parallel when more than one worker is set."""
        log.info("Starting website crawl...")
        self.session.add_url(self.config.base_url, 0)
        if self.config.parallel_workers > 1:
            self._crawl_parallel()
        else:
            self._crawl_sequential()

    def _crawl_sequential(self) -> None:
        log.info("Running sequential crawl...")
        while (item := self.session.next_url()) is not None:
            url, depth = item
            if depth > self.config.max_depth:
                continue

            normalized = normalize_url(url)
            if self.session.is_visited(normalized):
                continue
            if self.session.is_existing(normalized):
                log.info("Skipping existing: %s", url)
                self.session.mark_visited(normalized)
                continue
            if should_skip_url(url, self.config.skip_patterns):
                log.info("Skipping pattern match: %s", url)
                self.session.mark_visited(normalized)
                continue

            self.session.mark_visited(normalized)
            result = self.browser.capture_screenshot(url)
            self.session.add_result(result)

            if result.success and depth < self.config.max_depth:
                try:
                    links = self.browser.extract_links(url)
                except BrowserError as exc:
                    log.warning("Link extraction failed for %s: %s", url, exc)
                else:
                    self.enqueue_links(links, depth + 1)

            time.sleep(self.config.request_delay)

    def _capture_in_worker(self, url: str, depth: int) -> None:
        result = self.browser.capture_screenshot(url)
        self.session.add_result(result)
        if result.success and depth < self.config.max_depth:
            try:
                links = self.browser.extract_links(url)
            except BrowserError:
                return
            self.enqueue_links(links, depth + 1)

    def _crawl_parallel(self) -> None:
        workers = self.config.parallel_workers
        log.info("Running parallel crawl with %d workers...", workers)
        pending: set[Future[None]] = set()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            while True:
                while (item := self.session.next_url()) is not None:
                    url, depth = item
                    if depth > self.config.max_depth:
                        continue
                    normalized = normalize_url(url)
                    if self.session.is_visited(normalized) or self.session.is_existing(normalized):
                        continue
                    if should_skip_url(url, self.config.skip_patterns):
                        continue
                    self.session.mark_visited(normalized)
                    pending.add(pool.submit(self._capture_in_worker, url, depth))
                if not pending:
                    break
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    future.result()

    def enqueue_links(self, links: list[str], depth: int) -> None:
        """Queue valid, unseen, unskipped links at the given depth."""
        for link in links:
            fixed = fix_relative_url(link, self.config.base_url)
            if not is_valid_url(fixed, self.config.base_url):
                continue
            normalized = normalize_url(fixed)
            if self.session.is_visited(normalized) or self.session.is_existing(normalized):
                continue
            if not should_skip_url(fixed, self.config.skip_patterns):
                self.session.add_url(fixed, depth)

    def generate_report(self) -> None:
        """Merge this session into the saved report and log session statistics."""
        log.info("Generating reports...")
        existing: Report | None
        try:
            existing = self.reports.load_existing_report()
        except (OSError, ValueError, TypeError):
            log.info("No existing report found, creating new one")
            existing = None

        try:
            self.reports.generate_report(self.session, existing)
        except OSError as exc:
            raise AppError(f"report generation failed: {exc}") from exc

        total, success, failed = self.session.stats()
        log.info("Report generated successfully")
        log.info("Session Stats:")
        log.info("Total: %d pages", total)
        log.info("Success: %d pages", success)
        log.info("Failed: %d pages", failed)
        log.info("Duration: %.2f seconds", self.session.elapsed().total_seconds())

    def cleanup(self) -> None:
        log.info("Cleaning up resources...")
        if self.browser is not None:
            self.browser.close()
        log.info("Cleanup complete")

    def run(self) -> None:
        """Run every stage in order, always cleaning up afterwards."""
        stages = (
            (self.initialize, "initialization"),
            (self.discover_urls, "URL discovery"),
            (self.crawl_website, "website crawl"),
            (self.generate_report, "report generation"),
        )
        try:
            for stage, label in stages:
                try:
                    stage()
                except AppError as exc:
                    raise AppError(f"{label} failed: {exc}") from exc
            log.info("Framely completed successfully!")
        finally:
            self.cleanup()