from framely.config import (
    DEFAULT_MAX_DEPTH,
    DEFAULT_PARALLEL_WORKERS,
    DEFAULT_REQUEST_DELAY,
    DEFAULT_SCREENSHOT_DELAY,
    DEFAULT_SCREENSHOT_QUALITY,
    DEFAULT_SKIP_PATTERNS,
    DEFAULT_USER_AGENT,
    DEFAULT_VIEWPORT_HEIGHT,
    DEFAULT_VIEWPORT_WIDTH,
    SCREENSHOTS_DIR,
    Config,
)


def test_new_config_uses_defaults():
    cfg = Config("https://example.com")
    assert cfg.base_url == "https://example.com"
    assert cfg.max_depth == DEFAULT_MAX_DEPTH
    assert cfg.parallel_workers == DEFAULT_PARALLEL_WORKERS
    assert cfg.screenshot_delay == DEFAULT_SCREENSHOT_DELAY
    assert cfg.request_delay == DEFAULT_REQUEST_DELAY
    assert cfg.viewport_width == DEFAULT_VIEWPORT_WIDTH
    assert cfg.viewport_height == DEFAULT_VIEWPORT_HEIGHT
    assert cfg.quality == DEFAULT_SCREENSHOT_QUALITY
    assert cfg.check_sitemap is True
    assert cfg.check_robots is True
    assert cfg.user_agent == DEFAULT_USER_AGENT
    assert cfg.output_dir == SCREENSHOTS_DIR


def test_default_values_fixed_by_source():
    cfg = Config("https://example.com")
    assert (cfg.max_depth, cfg.parallel_workers) == (5, 5)
    assert (cfg.viewport_width, cfg.viewport_height) == (1920, 1080)
    assert cfg.quality == 90
    assert cfg.output_dir == "screenshots"


def test_skip_patterns_default_and_independent():
    first = Config("https://example.com")
    second = Config("https://example.com")
    assert first.skip_patterns == list(DEFAULT_SKIP_PATTERNS)
    first.skip_patterns.append("/private")
    assert second.skip_patterns == list(DEFAULT_SKIP_PATTERNS)
    assert "/private" not in DEFAULT_SKIP_PATTERNS


def test_override_keeps_other_defaults():
    cfg = Config("https://example.com", max_depth=2, parallel_workers=1)
    assert cfg.max_depth == 2
    assert cfg.parallel_workers == 1
    assert cfg.quality == DEFAULT_SCREENSHOT_QUALITY