import pytest
import requests
import responses

from framely.discovery import (
    DiscoveryError,
    DiscoveryService,
    extract_sitemap_references,
)
from framely.urls import normalize_url

BASE = "https://example.com"


def _sitemap(*locs):
    entries = "".join(f"<url><loc>{loc}</loc></url>" for loc in locs)
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"{entries}</urlset>"
    )


@pytest.fixture
def mock_http():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


def test_extract_references_both_cases():
    content = (
        "User-agent: *\n"
        "Sitemap: https://example.com/a.xml\r\n"
        "sitemap: https://example.com/b.xml\n"
        "Disallow: /private\n"
    )
    assert extract_sitemap_references(content) == [
        "https://example.com/a.xml",
        "https://example.com/b.xml",
    ]


def test_extract_references_skips_relative_and_other_case():
    content = "Sitemap: /relative.xml\nSITEMAP: https://example.com/c.xml\n"
    assert extract_sitemap_references(content) == []


def test_fetch_sitemap_filters_foreign_and_files(mock_http):
    mock_http.get(
        BASE + "/sitemap.xml",
        body=_sitemap(
            "https://example.com/about",
            "https://other.example.org/page",
            "https://example.com/file.pdf",
        ),
    )
    service = DiscoveryService(BASE)
    assert service.fetch_sitemap(BASE + "/sitemap.xml") == ["https://example.com/about"]


def test_fetch_sitemap_not_found_returns_empty(mock_http):
    mock_http.get(BASE + "/sitemap.xml", status=404)
    assert DiscoveryService(BASE).fetch_sitemap(BASE + "/sitemap.xml") == []


def test_fetch_sitemap_bad_xml_returns_empty(mock_http):
    mock_http.get(BASE + "/sitemap.xml", body="<urlset><url>")
    assert DiscoveryService(BASE).fetch_sitemap(BASE + "/sitemap.xml") == []


def test_fetch_sitemap_connection_error_returns_empty(mock_http):
    mock_http.get(BASE + "/sitemap.xml", body=requests.ConnectionError("refused"))
    assert DiscoveryService(BASE).fetch_sitemap(BASE + "/sitemap.xml") == []


def test_robots_sitemap_urls_follows_references(mock_http):
    mock_http.get(
        BASE + "/robots.txt",
        body="User-agent: *\nSitemap: https://example.com/pages.xml\n",
    )
    mock_http.get(
        BASE + "/pages.xml",
        body=_sitemap("https://example.com/one", "https://example.com/two"),
    )
    assert DiscoveryService(BASE).robots_sitemap_urls() == [
        "https://example.com/one",
        "https://example.com/two",
    ]


def test_robots_missing_returns_empty(mock_http):
    mock_http.get(BASE + "/robots.txt", status=500)
    assert DiscoveryService(BASE).robots_sitemap_urls() == []


def test_discover_urls_merges_and_normalizes(mock_http):
    mock_http.get(
        BASE + "/sitemap.xml",
        body=_sitemap("https://example.com/about/", "https://example.com/blog?page=2"),
    )
    mock_http.get(BASE + "/robots.txt", body="Sitemap: https://example.com/extra.xml\n")
    mock_http.get(
        BASE + "/extra.xml",
        body=_sitemap("https://example.com/about", "https://example.com/contact"),
    )
    found = DiscoveryService(BASE).discover_urls(True, True)
    expected = {
        normalize_url("https://example.com/about/"),
        normalize_url("https://example.com/blog?page=2"),
        normalize_url("https://example.com/contact"),
    }
    assert set(found) == expected
    assert len(found) == len(expected)


def test_discover_urls_sources_disabled_makes_no_requests(mock_http):
    assert DiscoveryService(BASE).discover_urls(False, False) == []
    assert len(mock_http.calls) == 0


def test_discover_only_sitemap_skips_robots(mock_http):
    mock_http.get(BASE + "/sitemap.xml", body=_sitemap("https://example.com/x"))
    found = DiscoveryService(BASE).discover_urls(True, False)
    assert found == ["https://example.com/x"]
    assert [call.request.url for call in mock_http.calls] == [BASE + "/sitemap.xml"]


def test_check_sitemap_access_ok_and_failure(mock_http):
    mock_http.get(BASE + "/sitemap.xml", status=200)
    DiscoveryService(BASE).check_sitemap_access()
    assert len(mock_http.calls) == 1

    mock_http.replace(responses.GET, BASE + "/sitemap.xml", status=403)
    with pytest.raises(DiscoveryError, match="HTTP 403"):
        DiscoveryService(BASE).check_sitemap_access()


def test_check_robots_access_connection_error(mock_http):
    mock_http.get(BASE + "/robots.txt", body=requests.ConnectionError("down"))
    with pytest.raises(DiscoveryError, match="robots.txt test failed"):
        DiscoveryService(BASE).check_robots_access()