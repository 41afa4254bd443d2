"""URL checks, normalisation, resolution and screenshot filename generation."""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import datetime
from urllib.parse import quote, unquote, urljoin

from .config import EXCLUDED_EXTENSIONS

_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_HOST_SAFE = "!$&'()*+,;=:[]<>\"-_.~%"
_VALID_ENCODED = "!$&'()*+,;=:@[]%-_.~"
_PATH_SAFE = "$&+,/:;=@"
_FRAGMENT_SAFE = "$&+,/:;=?@!()*"
_UNSAFE_FILENAME = re.compile(r"[^a-zA-Z0-9\-_]")
_UNDERSCORES = re.compile(r"_+")
_MAX_FILENAME = 200


@dataclass(frozen=True)
class _URL:
    scheme: str = ""
    opaque: str = ""
    userinfo: str | None = None
    host: str = ""
    path: str = ""
    raw_path: str = ""
    omit_host: bool = False
    force_query: bool = False
    raw_query: str = ""
    fragment: str = ""
    raw_fragment: str = ""


def _unescape(text: str) -> str:
    if _BAD_ESCAPE.search(text):
        raise ValueError(f"invalid URL escape in {text!r}")
    return unquote(text, errors="replace")


def _split_scheme(raw: str) -> tuple[str, str]:
    for index, char in enumerate(raw):
        if char.isascii() and char.isalpha():
            continue
        if char.isascii() and (char.isdigit() or char in "+-."):
            if index == 0:
                return "", raw
            continue
        if char == ":":
            if index == 0:
                raise ValueError("missing protocol scheme")
            return raw[:index], raw[index + 1:]
        return "", raw
    return "", raw


def _valid_port(port: str) -> bool:
    if not port:
        return True
    return port[0] == ":" and all(char in "0123456789" for char in port[1:])


def _validate_host(host: str) -> None:
    if host.startswith("["):
        close = host.rfind("]")
        if close < 0:
            raise ValueError("missing ']' in host")
        if not _valid_port(host[close + 1:]):
            raise ValueError(f"invalid port in host {host!r}")
        return
    colon = host.rfind(":")
    if colon >= 0 and not _valid_port(host[colon:]):
        raise ValueError(f"invalid port in host {host!r}")
    for char in host:
        if char.isascii() and not (char.isalnum() or char in _HOST_SAFE):
            raise ValueError(f"invalid character {char!r} in host name")
    _unescape(host)


def _parse(raw: str) -> _URL:
    """Split a URL into its parts, raising ValueError where it is malformed."""
    if any(ord(char) < 0x20 or ord(char) == 0x7F for char in raw):
        raise ValueError("invalid control character in URL")

    rest, _, raw_fragment = raw.partition("#")
    fragment = _unescape(raw_fragment)

    scheme, rest = _split_scheme(rest)
    scheme = scheme.lower()

    force_query = False
    raw_query = ""
    if rest.endswith("?") and rest.count("?") == 1:
        rest = rest[:-1]
        force_query = True
    else:
        rest, _, raw_query = rest.partition("?")

    if not rest.startswith("/"):
        if scheme:
            return _URL(
                scheme=scheme,
                opaque=rest,
                force_query=force_query,
                raw_query=raw_query,
                fragment=fragment,
                raw_fragment=raw_fragment,
            )
        if ":" in rest.partition("/")[0]:
            raise ValueError("first path segment in URL cannot contain colon")

    userinfo: str | None = None
    host = ""
    omit_host = False
    if (scheme or not rest.startswith("///")) and rest.startswith("//"):
        authority, slash, tail = rest[2:].partition("/")
        rest = slash + tail
        user, at, host = authority.rpartition("@")
        if at:
            userinfo = user
        _validate_host(host)
    elif scheme and rest.startswith("/"):
        omit_host = True

    return _URL(
        scheme=scheme,
        userinfo=userinfo,
        host=host,
        path=_unescape(rest),
        raw_path=rest,
        omit_host=omit_host,
        force_query=force_query,
        raw_query=raw_query,
        fragment=fragment,
        raw_fragment=raw_fragment,
    )


def _escaped(decoded: str, raw: str, safe: str) -> str:
    if raw and all(char.isascii() and (char.isalnum() or char in _VALID_ENCODED or char in safe) for char in raw):
        try:
            if _unescape(raw) == decoded:
                return raw
        except ValueError:
            pass
    return quote(decoded, safe=safe)


def _to_string(url: _URL) -> str:
    parts: list[str] = []
    if url.opaque:
        parts.append(f"{url.scheme}:{url.opaque}")
    else:
        if url.scheme:
            parts.append(url.scheme + ":")
        if url.scheme or url.host or url.userinfo is not None:
            if not (url.omit_host and not url.host and url.userinfo is None):
                if url.host or url.path or url.userinfo is not None:
                    parts.append("//")
                if url.userinfo is not None:
                    parts.append(url.userinfo + "@")
                parts.append(url.host)
        path = _escaped(url.path, url.raw_path, _PATH_SAFE)
        if path and not path.startswith("/") and url.host:
            parts.append("/")
        if not parts and ":" in path.partition("/")[0]:
            parts.append("./")
        parts.append(path)
    if url.force_query or url.raw_query:
        parts.append("?" + url.raw_query)
    if url.fragment:
        parts.append("#" + _escaped(url.fragment, url.raw_fragment, _FRAGMENT_SAFE))
    return "".join(parts)


def is_valid_url(url: str, base_url: str) -> bool:
    """True if the URL is on the base URL's scheme and host and points at a page."""
    if not url:
        return False
    try:
        parsed = _parse(url)
        base = _parse(base_url)
    except ValueError:
        return False

    if parsed.host != base.host or parsed.scheme != base.scheme:
        return False

    path = parsed.path.lower()
    if any(path.endswith(extension) for extension in EXCLUDED_EXTENSIONS):
        return False

    return not any(marker in url for marker in ("mailto:", "tel:", "javascript:"))


def normalize_url(url: str) -> str:
    """Drop query and fragment and one trailing slash, keeping at least '/'."""
    try:
        parsed = _parse(url)
    except ValueError:
        return url
    path = parsed.path or "/"
    path = path.removesuffix("/") or "/"
    return _to_string(replace(parsed, path=path, raw_query="", fragment="", raw_fragment=""))


def fix_relative_url(link: str, base_url: str) -> str:
    """Resolve a link against the base URL; absolute http(s) links pass through."""
    if link.startswith(("http://", "https://")):
        return link
    try:
        _parse(base_url)
        _parse(link)
    except ValueError:
        return link
    return urljoin(base_url, link)


def should_skip_url(url: str, skip_patterns: list[str]) -> bool:
    """True if any pattern occurs in the URL, ignoring case."""
    lowered = url.lower()
    return any(pattern.lower() in lowered for pattern in skip_patterns)


def _sanitize_filename(name: str) -> str:
    name = _UNSAFE_FILENAME.sub("_", name)
    name = _UNDERSCORES.sub("_", name)
    return name.strip("_")[:_MAX_FILENAME]


def _timestamp_filename() -> str:
    return "page_" + datetime.now().strftime("%Y%m%d_%H%M%S")


def generate_filename(url: str) -> str:
    """Build a safe .png filename from a URL's path and query."""
    try:
        parsed = _parse(url)
    except ValueError:
        return _timestamp_filename() + ".png"

    name = parsed.path.replace("/", "_")
    if name in ("", "_"):
        name = "homepage"

    if parsed.raw_query:
        name += "_" + parsed.raw_query.replace("=", "_").replace("&", "_")

    name = _sanitize_filename(name) or _timestamp_filename()
    return name + ".png"


def extract_domain(url: str) -> str:
    """The host (with port) of a URL, or '' if it cannot be parsed."""
    try:
        return _parse(url).host
    except ValueError:
        return ""


def is_https(url: str) -> bool:
    try:
        return _parse(url).scheme == "https"
    except ValueError:
        return False


def add_https_if_missing(url: str) -> str:
    if not url.startswith(("http://", "https://")):
        return "https://" + url
    return url


def get_path_from_url(url: str) -> str:
    """The decoded path of a URL, or '' if it cannot be parsed."""
    try:
        return _parse(url).path
    except ValueError:
        return ""


def has_query_params(url: str) -> bool:
    try:
        return _parse(url).raw_query != ""
    except ValueError:
        return False