"""Application settings and their defaults."""

from __future__ import annotations

from dataclasses import dataclass, field

# Output locations, relative to the working directory.
SCREENSHOTS_DIR = "screenshots"
REPORT_FILE = "report.json"
SUMMARY_FILE = "summary.txt"

# Crawl behaviour.
DEFAULT_MAX_DEPTH = 5
DEFAULT_PARALLEL_WORKERS = 5
DEFAULT_SCREENSHOT_DELAY = 3
DEFAULT_REQUEST_DELAY = 1

# Capture settings.
DEFAULT_VIEWPORT_WIDTH, DEFAULT_VIEWPORT_HEIGHT = 1920, 1080
DEFAULT_SCREENSHOT_QUALITY = 90

# A host name with at least one dot and an alphabetic top-level label.
DOMAIN_REGEX = r"^[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

_DOCUMENTS = "pdf doc docx xls xlsx"
_ARCHIVES = "zip rar exe dmg pkg"
_MEDIA = "mp4 avi mov mp3 wav"
_IMAGES = "jpg jpeg png gif svg"

EXCLUDED_EXTENSIONS: tuple[str, ...] = tuple(
    "." + ext
    for group in (_DOCUMENTS, _ARCHIVES, _MEDIA, _IMAGES)
    for ext in group.split()
)

DEFAULT_SKIP_PATTERNS: tuple[str, ...] = ("/wp-admin",)

_BROWSER_SWITCHES = """
    headless no-sandbox disable-setuid-sandbox disable-dev-shm-usage
    disable-accelerated-2d-canvas no-first-run no-zygote disable-gpu
    disable-extensions disable-plugins disable-images disable-javascript
"""

CHROME_FLAGS: tuple[str, ...] = tuple("--" + name for name in _BROWSER_SWITCHES.split())

DEFAULT_USER_AGENT = " ".join(
    (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64)",
        "AppleWebKit/537.36 (KHTML, like Gecko)",
        "Chrome/121.0.0.0 Safari/537.36",
    )
)


def _default_skip_patterns() -> list[str]:
    return list(DEFAULT_SKIP_PATTERNS)


@dataclass
class Config:
    """All settings for one crawl; only the base URL has no default."""

    base_url: str
    max_depth: int = DEFAULT_MAX_DEPTH
    parallel_workers: int = DEFAULT_PARALLEL_WORKERS
    screenshot_delay: int = DEFAULT_SCREENSHOT_DELAY
    request_delay: int = DEFAULT_REQUEST_DELAY
    viewport_width: int = DEFAULT_VIEWPORT_WIDTH
    viewport_height: int = DEFAULT_VIEWPORT_HEIGHT
    quality: int = DEFAULT_SCREENSHOT_QUALITY
    check_sitemap: bool = True
    check_robots: bool = True
    skip_patterns: list[str] = field(default_factory=_default_skip_patterns)
    user_agent: str = DEFAULT_USER_AGENT
    output_dir: str = SCREENSHOTS_DIR