import json
import re

import pytest

from framely.config import REPORT_FILE, SUMMARY_FILE, Config
from framely.models import CrawlSession, Report, ScreenshotResult
from framely.report import ReportService

BASE = "https://example.com"


@pytest.fixture
def service(tmp_path):
    return ReportService(Config(BASE, output_dir=str(tmp_path)))


def _ok(url, filename, size=2048, duration=150):
    return ScreenshotResult(url=url, filename=filename, success=True, file_size=size, duration=duration)


def _failed(url, filename, error="timeout"):
    return ScreenshotResult(url=url, filename=filename, success=False, error=error, duration=40)


def _session(*results):
    session = CrawlSession(BASE)
    for result in results:
        session.add_result(result)
    return session


def test_generate_report_writes_counts(service, tmp_path):
    results = [_ok(BASE + "/a", "a.png"), _ok(BASE + "/b", "b.png"), _failed(BASE + "/c", "c.png")]
    report = service.generate_report(_session(*results))

    data = json.loads((tmp_path / REPORT_FILE).read_text(encoding="utf-8"))
    assert data["baseUrl"] == BASE
    assert data["totalPages"] == len(results)
    assert data["successfulScreenshots"] == sum(r.success for r in results)
    assert data["failedScreenshots"] == sum(not r.success for r in results)
    assert data["newPagesInThisRun"] == len(results)
    assert data["totalDuration"] == sum(r.duration for r in results)
    assert data["averagePageSize"] == 2048
    assert "lastUpdate" in data
    assert [item["url"] for item in data["results"]] == [r.url for r in results]
    assert report.total_pages == data["totalPages"]


def test_generate_report_merges_existing(service):
    earlier = Report(base_url=BASE, results=[_ok(BASE + "/old", "old.png")])
    new = [_ok(BASE + "/new", "new.png"), _failed(BASE + "/bad", "bad.png")]
    report = service.generate_report(_session(*new), earlier)

    assert report.total_pages == len(earlier.results) + len(new)
    assert report.new_pages_in_this_run == len(new)
    assert [r.url for r in report.results] == [BASE + "/old", BASE + "/new", BASE + "/bad"]


def test_no_new_results_has_no_last_update(service, tmp_path):
    report = service.generate_report(_session())
    assert report.last_update is None
    assert report.total_pages == 0
    assert report.average_page_size == 0
    assert report.results == []

    data = json.loads((tmp_path / REPORT_FILE).read_text(encoding="utf-8"))
    assert "lastUpdate" not in data
    assert data["totalPages"] == 0
    assert data["results"] == []


def test_json_escapes_html_characters(service, tmp_path):
    service.generate_report(_session(_ok(BASE + "/q?a=1&b=<2>", "q.png")))
    text = (tmp_path / REPORT_FILE).read_text(encoding="utf-8")
    assert "\\u0026" in text
    assert "\\u003c" in text
    assert "&" not in text
    assert json.loads(text)["results"][0]["url"] == BASE + "/q?a=1&b=<2>"


def test_report_round_trips_through_load(service):
    results = [_ok(BASE + "/a", "a.png", size=1500), _failed(BASE + "/b", "b.png", error="boom")]
    written = service.generate_report(_session(*results))
    loaded = service.load_existing_report()

    assert loaded.base_url == written.base_url
    assert loaded.total_pages == written.total_pages
    assert loaded.average_page_size == written.average_page_size
    assert [(r.url, r.success, r.error, r.file_size) for r in loaded.results] == [
        (r.url, r.success, r.error, r.file_size) for r in results
    ]


def test_load_missing_report_raises(service):
    with pytest.raises(OSError):
        service.load_existing_report()


def test_load_corrupt_report_raises(service, tmp_path):
    (tmp_path / REPORT_FILE).write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        service.load_existing_report()


def test_existing_urls_only_successful(service):
    service.generate_report(_session(_ok(BASE + "/a", "a.png"), _failed(BASE + "/b", "b.png")))
    assert service.existing_urls() == {BASE + "/a"}


def test_existing_urls_empty_without_report(service, tmp_path):
    assert service.existing_urls() == set()
    (tmp_path / REPORT_FILE).write_text("[1, 2]", encoding="utf-8")
    assert service.existing_urls() == set()


def test_summary_file_contents(service, tmp_path):
    service.generate_report(_session(_ok(BASE + "/a", "a.png"), _failed(BASE + "/b", "b.png", error="boom")))
    summary = (tmp_path / SUMMARY_FILE).read_text(encoding="utf-8")

    assert f"> Site: {BASE}\n" in summary
    assert re.search(r"> Generated: \d{4}-\d\d-\d\d \d\d:\d\d:\d\d\n", summary)
    assert f"> SUCCESS {BASE}/a -> a.png (2.00KB, 150ms)" in summary
    assert f"> FAILED {BASE}/b -> b.png (boom)" in summary
    assert f"> FAILED {BASE}/b - boom" in summary
    assert "Newly added pages (2):" in summary


def test_summary_without_failures_omits_failed_section(service):
    report = Report(base_url=BASE, total_pages=1, successful_screenshots=1,
                    results=[_ok(BASE + "/a", "a.png")])
    summary = service.build_summary(report, [])
    assert "Failed pages:" not in summary
    assert "Newly added pages" not in summary
    assert "All successful pages:" in summary
    assert f"SUCCESS {BASE}/a -> a.png" in summary


def test_ensure_output_directory_creates_nested(tmp_path):
    target = tmp_path / "deep" / "shots"
    service = ReportService(Config(BASE, output_dir=str(target)))
    service.ensure_output_directory()
    assert target.is_dir()
    service.ensure_output_directory()
    assert target.is_dir()