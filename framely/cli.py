"""Interactive command that asks for crawl settings and runs a capture session."""

from __future__ import annotations

import argparse
import logging
import re
import subprocess
import sys
from typing import TextIO

from .app import AppError, AppService
from .config import DEFAULT_MAX_DEPTH, DEFAULT_PARALLEL_WORKERS, DOMAIN_REGEX, Config
from .urls import add_https_if_missing, extract_domain

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_RED = "\033[31m"
_BLUE = "\033[34m"
_YELLOW = "\033[33m"
_RESET = "\033[0m"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_MAX_COUNT = 10

_BANNER = (
    "▗▄▄▄▖▗▄▄▖  ▗▄▖ ▗▖  ▗▖▗▄▄▄▖▗▖ ▗▖  ▗▖",
    "▐▌   ▐▌ ▐▌▐▌ ▐▌▐▛▚▞▜▌▐▌   ▐▌  ▝▚▞▘ ",
    "▐▛▀▀▘▐▛▀▚▖▐▛▀▜▌▐▌  ▐▌▐▛▀▀▘▐▌   ▐▌  ",
    "▐▌   ▐▌ ▐▌▐▌ ▐▌▐▌  ▐▌▐▙▄▄▖▐▙▄▄▖▐▌  ",
    "                                       ",
)


class ConfigurationError(Exception):
    """Raised when the user's answers do not make a usable configuration."""


def parse_yes_no(text: str, default_yes: bool) -> bool:
    """Interpret a yes/no answer; anything unrecognised means the default."""
    response = text.lower()
    if default_yes:
        return response not in ("n", "no")
    return response in ("y", "yes")


def validate_target_url(text: str) -> str:
    """Return the target URL with a scheme, raising ConfigurationError if unusable."""
    target = text.strip()
    if not target:
        raise ConfigurationError("URL cannot be empty")

    target = add_https_if_missing(target)
    host = extract_domain(target)
    if not host:
        raise ConfigurationError("URL must have a host")
    if re.fullmatch(DOMAIN_REGEX, host) is None:
        raise ConfigurationError("invalid domain format")
    return target


def parse_count(text: str, default: int, label: str) -> int:
    """Parse a count between 1 and 10; an empty answer gives the default."""
    if not text:
        return default
    if _INTEGER.fullmatch(text) is None:
        raise ConfigurationError(f"invalid {label} value: {text!r}")
    value = int(text)
    if value < 1:
        raise ConfigurationError(f"{label} must be at least 1")
    if value > _MAX_COUNT:
        raise ConfigurationError(f"{label} cannot exceed {_MAX_COUNT} for safety")
    return value


def parse_skip_patterns(text: str) -> list[str]:
    """Split a comma-separated answer into its non-empty, trimmed patterns."""
    stripped = (part.strip() for part in text.split(","))
    return [pattern for pattern in stripped if pattern]


def _ask(stdin: TextIO, stdout: TextIO, prompt: str, what: str) -> str:
    stdout.write(f"{_CYAN}> {prompt}{_RESET}")
    stdout.flush()
    line = stdin.readline()
    if not line.endswith("\n"):
        raise ConfigurationError(f"failed to read {what}: EOF")
    return line.strip()


def _say(stdout: TextIO, colour: str, text: str) -> None:
    stdout.write(f"{colour}> {text}{_RESET}\n")


def collect_user_input(stdin: TextIO, stdout: TextIO) -> Config:
    """Ask every setting in turn and return the resulting configuration."""
    answer = _ask(stdin, stdout, "Enter target website URL: ", "URL")
    base_url = validate_target_url(answer)
    stdout.write(f"{_GREEN}> Target set: {base_url}\n\n{_RESET}")
    config = Config(base_url)

    answer = _ask(
        stdin, stdout, "Check sitemap.xml for additional URLs? (Y/n): ", "sitemap option"
    )
    config.check_sitemap = parse_yes_no(answer, True)
    state = "enabled" if config.check_sitemap else "disabled"
    _say(stdout, _GREEN, f"Sitemap checking {state}")

    answer = _ask(
        stdin, stdout, "Check robots.txt for sitemap references? (Y/n): ", "robots option"
    )
    config.check_robots = parse_yes_no(answer, True)
    state = "enabled" if config.check_robots else "disabled"
    _say(stdout, _GREEN, f"Robots.txt checking {state}")

    answer = _ask(
        stdin,
        stdout,
        f"Maximum crawl depth (default {DEFAULT_MAX_DEPTH}): ",
        "depth option",
    )
    config.max_depth = parse_count(answer, config.max_depth, "depth")
    _say(stdout, _GREEN, f"Max depth set to: {config.max_depth}")

    answer = _ask(stdin, stdout, "Enable parallel processing? (y/N): ", "parallel option")
    if parse_yes_no(answer, False):
        answer = _ask(
            stdin,
            stdout,
            f"Number of parallel workers (default {DEFAULT_PARALLEL_WORKERS}): ",
            "worker count",
        )
        config.parallel_workers = parse_count(
            answer, config.parallel_workers, "worker count"
        )
        _say(
            stdout,
            _GREEN,
            f"Parallel processing enabled with {config.parallel_workers} workers",
        )
    else:
        config.parallel_workers = 1
        _say(stdout, _GREEN, "Sequential processing enabled")

    answer = _ask(
        stdin,
        stdout,
        "Additional URL patterns to skip (comma-separated, optional): ",
        "skip patterns",
    )
    if answer:
        config.skip_patterns.extend(parse_skip_patterns(answer))
        _say(stdout, _GREEN, f"Added {len(answer.split(','))} custom skip patterns")
    else:
        _say(stdout, _GREEN, f"Using {len(config.skip_patterns)} default skip patterns")
    stdout.write("\n")
    return config


def clear_screen() -> None:
    """Clear the terminal with 'clear', falling back to 'cls'."""
    try:
        subprocess.run(["clear"], check=True)
    except (OSError, subprocess.CalledProcessError):
        try:
            subprocess.run(["cls"], check=False)
        except OSError:
            pass


def print_banner(stdout: TextIO) -> None:
    """Set the terminal title and print the banner."""
    stdout.write("\033]0;Framely\007")
    for line in _BANNER:
        stdout.write(line + "\n")
    stdout.write(f"{_GREEN}Capture the Web, Frame by Frame{_RESET}\n")
    stdout.write("\n")
    stdout.write(f"{_BLUE}v0.1 - ALPHA{_RESET}\n")
    stdout.write(f"{_YELLOW}{'=' * 43}{_RESET}\n")
    stdout.write("\n")
    stdout.flush()


def main(argv: list[str] | None = None) -> int:
    """Run the interactive capture session; returns the exit status."""
    parser = argparse.ArgumentParser(
        prog="framely",
        description="Crawl a website and capture a screenshot of every page.",
    )
    parser.parse_args(argv)

    clear_screen()
    print_banner(sys.stdout)

    try:
        config = collect_user_input(sys.stdin, sys.stdout)
    except ConfigurationError as exc:
        print(f"{_RED}> Configuration error: {exc}{_RESET}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(message)s",
        datefmt="%Y/%m/%d %H:%M:%S",
    )
    try:
        AppService(config).run()
    except AppError as exc:
        print(f"{_RED}> Application error: {exc}{_RESET}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())