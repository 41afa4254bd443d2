"""Driving a headless Chrome over the DevTools protocol to capture pages."""

from __future__ import annotations

import base64
import binascii
import itertools
import json
import logging
import shutil
import subprocess
import tempfile
import threading
import time
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Any

import websocket

from .config import CHROME_FLAGS, Config
from .models import ScreenshotResult
from .urls import generate_filename, is_valid_url, normalize_url

log = logging.getLogger(__name__)

_CHROME_NAMES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
)

_DEFAULT_FLAGS = (
    "--no-first-run",
    "--no-default-browser-check",
    "--headless",
    "--disable-background-networking",
    "--enable-features=NetworkService,NetworkServiceInProcess",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-breakpad",
    "--disable-client-side-phishing-detection",
    "--disable-default-apps",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-features=site-per-process,Translate,BlinkGenPropertyTrees",
    "--disable-hang-monitor",
    "--disable-ipc-flooding-protection",
    "--disable-popup-blocking",
    "--disable-prompt-on-repost",
    "--disable-renderer-backgrounding",
    "--disable-sync",
    "--force-color-profile=srgb",
    "--metrics-recording-only",
    "--safebrowsing-disable-auto-update",
    "--enable-automation",
    "--use-mock-keychain",
)

_STARTUP_TIMEOUT = 30.0
_LOAD_TIMEOUT = 60.0
_POLL_INTERVAL = 0.1
_BODY_READY = "document.querySelector('body') !== null"
_COLLECT_LINKS = """
(() => {
  const hrefs = [];
  for (const anchor of document.querySelectorAll("a[href]")) {
    try {
      hrefs.push(new URL(anchor.href, location.href).href);
    } catch (error) {}
  }
  return hrefs;
})()
"""


class BrowserError(Exception):
    """Raised when the browser cannot be started or a page cannot be handled."""


def filter_links(links: list[str], base_url: str) -> list[str]:
    """Keep valid same-site links, dropping those whose normalised form was seen."""
    valid: list[str] = []
    seen: set[str] = set()
    for link in links:
        if link in seen or not is_valid_url(link, base_url):
            continue
        normalized = normalize_url(link)
        if normalized not in seen:
            valid.append(link)
            seen.add(normalized)
    return valid


class _DevToolsConnection:
    """A request/response channel to one DevTools endpoint."""

    def __init__(self, url: str, timeout: float) -> None:
        try:
            self._socket = websocket.create_connection(url, timeout=timeout)
        except (websocket.WebSocketException, OSError) as exc:
            raise BrowserError(f"cannot connect to {url}: {exc}") from exc
        self._ids = itertools.count(1)
        self._events: deque[dict[str, Any]] = deque()

    def _receive(self) -> dict[str, Any]:
        try:
            raw = self._socket.recv()
        except (websocket.WebSocketException, OSError) as exc:
            raise BrowserError(f"DevTools connection lost: {exc}") from exc
        try:
            message = json.loads(raw)
        except ValueError as exc:
            raise BrowserError(f"malformed DevTools message: {exc}") from exc
        if not isinstance(message, dict):
            raise BrowserError("malformed DevTools message")
        return message

    def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        ident = next(self._ids)
        payload = json.dumps({"id": ident, "method": method, "params": params or {}})
        try:
            self._socket.send(payload)
        except (websocket.WebSocketException, OSError) as exc:
            raise BrowserError(f"DevTools connection lost: {exc}") from exc
        while True:
            message = self._receive()
            if message.get("id") == ident:
                error = message.get("error")
                if error is not None:
                    detail = error.get("message", error) if isinstance(error, dict) else error
                    raise BrowserError(f"{method}: {detail}")
                return message.get("result") or {}
            if "method" in message:
                self._events.append(message)

    def clear_events(self) -> None:
        self._events.clear()

    def wait_for_event(self, method: str, timeout: float) -> dict[str, Any]:
        deadline = time.monotonic() + timeout
        while True:
            while self._events:
                event = self._events.popleft()
                if event.get("method") == method:
                    return event.get("params") or {}
            if time.monotonic() > deadline:
                raise BrowserError(f"timed out waiting for {method}")
            message = self._receive()
            if "method" in message:
                self._events.append(message)

    def close(self) -> None:
        try:
            self._socket.close()
        except (websocket.WebSocketException, OSError):
            pass


class BrowserService:
    """A headless Chrome, started on first use, that loads and captures pages."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._lock = threading.RLock()
        self._process: subprocess.Popen[bytes] | None = None
        self._data_dir: str | None = None
        self._browser: _DevToolsConnection | None = None
        self._page: _DevToolsConnection | None = None

    def __enter__(self) -> BrowserService:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _command(self, executable: str, data_dir: str) -> list[str]:
        flags = dict.fromkeys((*_DEFAULT_FLAGS, *CHROME_FLAGS))
        return [
            executable,
            *flags,
            f"--user-agent={self.config.user_agent}",
            f"--user-data-dir={data_dir}",
            "--remote-debugging-port=0",
            "--remote-allow-origins=*",
            "about:blank",
        ]

    def _wait_for_devtools(self) -> tuple[str, str]:
        assert self._data_dir is not None and self._process is not None
        marker = Path(self._data_dir) / "DevToolsActivePort"
        deadline = time.monotonic() + _STARTUP_TIMEOUT
        while True:
            try:
                lines = marker.read_text(encoding="utf-8").split("\n")
            except OSError:
                lines = []
            if len(lines) >= 2 and lines[0].strip() and lines[1].strip():
                return lines[0].strip(), lines[1].strip()
            code = self._process.poll()
            if code is not None:
                raise BrowserError(f"browser exited with code {code}")
            if time.monotonic() > deadline:
                raise BrowserError("timed out waiting for the browser to start")
            time.sleep(_POLL_INTERVAL)

    def _start(self) -> _DevToolsConnection:
        if self._page is not None:
            return self._page
        executable = next(filter(None, map(shutil.which, _CHROME_NAMES)), None)
        if executable is None:
            raise BrowserError("no Chrome or Chromium executable found")
        try:
            self._data_dir = tempfile.mkdtemp(prefix="framely-")
            try:
                self._process = subprocess.Popen(
                    self._command(executable, self._data_dir),
                    stdin=subprocess.DEVNULL,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                )
            except OSError as exc:
                raise BrowserError(f"cannot start browser: {exc}") from exc
            port, path = self._wait_for_devtools()
            self._browser = _DevToolsConnection(f"ws://127.0.0.1:{port}{path}", _LOAD_TIMEOUT)
            target = self._browser.call("Target.createTarget", {"url": "about:blank"})
            target_id = target.get("targetId")
            if not target_id:
                raise BrowserError("browser did not create a page")
            page = _DevToolsConnection(
                f"ws://127.0.0.1:{port}/devtools/page/{target_id}", _LOAD_TIMEOUT
            )
            self._page = page
            page.call("Page.enable")
            return page
        except BrowserError:
            self.close()
            raise

    def _evaluate(self, page: _DevToolsConnection, expression: str) -> Any:
        result = page.call(
            "Runtime.evaluate", {"expression": expression, "returnByValue": True}
        )
        details = result.get("exceptionDetails")
        if details is not None:
            text = details.get("text", "exception") if isinstance(details, dict) else details
            raise BrowserError(f"evaluation failed: {text}")
        return (result.get("result") or {}).get("value")

    def _navigate(self, page: _DevToolsConnection, url: str) -> None:
        page.clear_events()
        result = page.call("Page.navigate", {"url": url})
        if result.get("errorText"):
            raise BrowserError(f"page load error {result['errorText']}")
        page.wait_for_event("Page.loadEventFired", _LOAD_TIMEOUT)
        deadline = time.monotonic() + _LOAD_TIMEOUT
        while not self._evaluate(page, _BODY_READY):
            if time.monotonic() > deadline:
                raise BrowserError("timed out waiting for the page body")
            time.sleep(_POLL_INTERVAL)

    def _load(self, url: str) -> _DevToolsConnection:
        page = self._start()
        self._navigate(page, url)
        time.sleep(self.config.screenshot_delay)
        return page

    def _screenshot(self, url: str) -> bytes:
        with self._lock:
            page = self._load(url)
            page.call(
                "Emulation.setDeviceMetricsOverride",
                {
                    "width": self.config.viewport_width,
                    "height": self.config.viewport_height,
                    "deviceScaleFactor": 1,
                    "mobile": False,
                },
            )
            image_format = "png" if self.config.quality == 100 else "jpeg"
            params: dict[str, Any] = {
                "format": image_format,
                "captureBeyondViewport": True,
                "fromSurface": True,
            }
            if image_format == "jpeg":
                params["quality"] = self.config.quality
            data = page.call("Page.captureScreenshot", params).get("data")
        if not isinstance(data, str):
            raise BrowserError("browser returned no screenshot data")
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise BrowserError(f"invalid screenshot data: {exc}") from exc

    def capture_screenshot(self, url: str) -> ScreenshotResult:
        """Load a page, capture it whole and save it; failures are recorded, not raised."""
        started = time.monotonic()
        filename = generate_filename(url)
        path = Path(self.config.output_dir) / filename
        log.info("Capturing screenshot: %s", url)

        result = ScreenshotResult(
            url=url, filename=filename, timestamp=datetime.now().astimezone()
        )
        try:
            data = self._screenshot(url)
        except BrowserError as exc:
            result.duration = int((time.monotonic() - started) * 1000)
            result.error = str(exc)
            log.error("Screenshot failed for %s: %s", url, exc)
            return result
        result.duration = int((time.monotonic() - started) * 1000)

        try:
            path.write_bytes(data)
        except OSError as exc:
            result.error = f"File write error: {exc}"
            log.error("File write failed for %s: %s", filename, exc)
            return result

        try:
            result.file_size = path.stat().st_size
        except OSError:
            pass

        result.success = True
        log.info("Screenshot saved: %s (%.2fKB)", filename, result.file_size / 1024)
        return result

    def extract_links(self, url: str) -> list[str]:
        """Load a page and return its distinct valid same-site links."""
        try:
            with self._lock:
                page = self._load(url)
                value = self._evaluate(page, _COLLECT_LINKS)
            if not isinstance(value, list):
                raise BrowserError("link collection returned no list")
        except BrowserError as exc:
            log.error("Link extraction failed for %s: %s", url, exc)
            raise
        links = [link for link in value if isinstance(link, str)]
        valid = filter_links(links, self.config.base_url)
        log.info("Extracted %d valid links from %s", len(valid), url)
        return valid

    def check_connection(self, url: str) -> None:
        """Raise BrowserError unless the page loads and has a body."""
        try:
            with self._lock:
                self._navigate(self._start(), url)
        except BrowserError as exc:
            raise BrowserError(f"connection test failed: {exc}") from exc
        log.info("Connection test successful for %s", url)

    def close(self) -> None:
        """Shut the browser down and remove its profile directory."""
        with self._lock:
            for connection in (self._page, self._browser):
                if connection is not None:
                    connection.close()
            self._page = None
            self._browser = None
            if self._process is not None:
                self._process.terminate()
                try:
                    self._process.wait(timeout=10)
                except subprocess.TimeoutExpired:
                    self._process.kill()
                    self._process.wait()
                self._process = None
            if self._data_dir is not None:
                shutil.rmtree(self._data_dir, ignore_errors=True)
                self._data_dir = None