"""Writing the JSON report and the text summary of crawl results."""

from __future__ import annotations

import json
import os
from datetime import datetime
from pathlib import Path

from .config import REPORT_FILE, SUMMARY_FILE, Config
from .models import CrawlSession, Report, ScreenshotResult

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_RED = "\033[31m"
_RESET = "\033[0m"


def _encode_json(data: object) -> str:
    text = json.dumps(data, indent=2, ensure_ascii=False)
    # These characters occur only inside JSON strings, so escaping them textually is safe.
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def _line(colour: str, text: str) -> str:
    return f"{colour}> {text}\n{_RESET}"


class ReportService:
    """Loads, merges and writes reports in the configured output directory."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.output_dir = Path(config.output_dir)

    @property
    def report_path(self) -> Path:
        return self.output_dir / REPORT_FILE

    @property
    def summary_path(self) -> Path:
        return self.output_dir / SUMMARY_FILE

    def load_existing_report(self) -> Report:
        """Read the saved report; raises OSError or ValueError if it is missing or bad."""
        data = json.loads(self.report_path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError("report is not a JSON object")
        return Report.from_dict(data)

    def generate_report(
        self, session: CrawlSession, existing_report: Report | None = None
    ) -> Report:
        """Merge earlier results with this session's, then write report and summary."""
        session_results = session.results
        all_results = list(existing_report.results) if existing_report else []
        all_results.extend(session_results)

        successes = [result for result in all_results if result.success]
        total_size = sum(result.file_size for result in successes)
        average = total_size // len(successes) if successes else 0

        timestamp = datetime.now().astimezone()
        report = Report(
            base_url=self.config.base_url,
            total_pages=len(all_results),
            successful_screenshots=len(successes),
            failed_screenshots=len(all_results) - len(successes),
            timestamp=timestamp,
            last_update=timestamp if session_results else None,
            new_pages_in_this_run=len(session_results),
            total_duration=sum(result.duration for result in all_results),
            average_page_size=average,
            results=all_results,
        )

        self.report_path.write_text(_encode_json(report.to_dict()), encoding="utf-8")
        self.summary_path.write_text(
            self.build_summary(report, session_results), encoding="utf-8"
        )
        return report

    def build_summary(
        self, report: Report, new_results: list[ScreenshotResult]
    ) -> str:
        """Render the human-readable summary of a report."""
        generated = report.timestamp.strftime("%Y-%m-%d %H:%M:%S")
        parts = [
            _line(_CYAN, f"Site: {report.base_url}"),
            _line(_CYAN, f"Generated: {generated}"),
            _line(_CYAN, f"Total Pages: {report.total_pages}"),
            _line(_GREEN, f"Successful: {report.successful_screenshots}"),
            _line(_RED, f"Failed: {report.failed_screenshots}"),
            _line(_CYAN, f"New in this run: {report.new_pages_in_this_run}"),
            _line(_CYAN, f"Total Duration: {report.total_duration / 1000.0:.2f} seconds"),
            f"{_CYAN}> Average Page Size: {report.average_page_size / 1024.0:.2f} KB\n\n{_RESET}",
        ]

        if new_results:
            parts.append(_line(_CYAN, f"Newly added pages ({len(new_results)}):"))
            for result in new_results:
                if result.success:
                    details = f"{result.file_size / 1024:.2f}KB, {result.duration}ms"
                    parts.append(
                        _line(_GREEN, f"SUCCESS {result.url} -> {result.filename} ({details})")
                    )
                else:
                    parts.append(
                        _line(_RED, f"FAILED {result.url} -> {result.filename} ({result.error})")
                    )
            parts.append("\n")

        parts.append(_line(_CYAN, "All successful pages:"))
        parts.extend(
            _line(
                _GREEN,
                f"SUCCESS {result.url} -> {result.filename} ({result.file_size / 1024:.2f}KB)",
            )
            for result in report.results
            if result.success
        )

        if report.failed_screenshots > 0:
            parts.append("\n" + _line(_CYAN, "Failed pages:"))
            parts.extend(
                _line(_RED, f"FAILED {result.url} - {result.error}")
                for result in report.results
                if not result.success
            )

        return "".join(parts)

    def existing_urls(self) -> set[str]:
        """URLs captured successfully in the saved report; empty if there is none."""
        try:
            report = self.load_existing_report()
        except (OSError, ValueError, TypeError):
            return set()
        return {result.url for result in report.results if result.success}

    def ensure_output_directory(self) -> None:
        """Create the output directory if nothing exists at its path."""
        if not os.path.exists(self.output_dir):
            self.output_dir.mkdir(parents=True, exist_ok=True)