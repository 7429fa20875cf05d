"""
Text and URL helpers shared by the pipeline stages
"""

import hashlib
import re
from typing import List, Optional
from urllib.parse import urlsplit, urlunsplit

from bs4 import BeautifulSoup


EMAIL_PATTERN = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
PHONE_PATTERN = re.compile(r"\+?\d[\d\s().-]{7,}\d")
IPV4_PATTERN = re.compile(r"^\d{1,3}(?:\.\d{1,3}){3}$")
SCHEME_PATTERN = re.compile(r"^https?://", re.IGNORECASE)
ZERO_WIDTH_PATTERN = re.compile("[\u200b-\u200d\ufeff]")


# =============================================================================
# URLs
# =============================================================================

def normalize_url(url: Optional[str]) -> Optional[str]:
    """Trim, strip angle brackets and default to https://. Returns None if unusable."""
    if not url:
        return None
    raw = url.strip()
    if raw.startswith("<"):
        raw = raw[1:]
    if raw.endswith(">"):
        raw = raw[:-1]
    raw = raw.strip()
    if not raw or any(ch.isspace() for ch in raw):
        return None

    if not SCHEME_PATTERN.match(raw):
        raw = f"https://{raw}"

    try:
        parts = urlsplit(raw)
        port = parts.port  # raises on a malformed port
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None

    netloc = parts.netloc
    host = parts.hostname.lower()
    if port is None and "@" not in netloc:
        netloc = host
    path = parts.path or "/"
    return urlunsplit((parts.scheme.lower(), netloc, path, parts.query, parts.fragment))


def is_safe_public_http_url(url: str) -> bool:
    """Block non-http(s), localhost and literal private IPs."""
    try:
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
    except ValueError:
        return False
    if parts.scheme.lower() not in ("http", "https") or not host:
        return False

    if host == "localhost" or host.endswith(".local"):
        return False

    if IPV4_PATTERN.match(host):
        octets = [int(p) for p in host.split(".")]
        if any(o > 255 for o in octets):
            return False
        a, b = octets[0], octets[1]
        if a == 10 or a == 127:
            return False
        if a == 192 and b == 168:
            return False
        if a == 172 and 16 <= b <= 31:
            return False

    return True


# =============================================================================
# TEXT
# =============================================================================

def strip_html_to_text(html: str) -> str:
    """Drop script/style blocks and markup, collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def clamp_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "…"


def redact_potential_contact_details(text: str) -> str:
    """Replace anything that looks like an email or phone number."""
    text = EMAIL_PATTERN.sub("[REDACTED EMAIL]", text)
    return PHONE_PATTERN.sub("[REDACTED PHONE]", text)


def strip_zero_width(text: str) -> str:
    return ZERO_WIDTH_PATTERN.sub("", text)


def null_if_empty(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


# =============================================================================
# EXCLUDE LIST
# =============================================================================

def parse_exclude_list(text: Optional[str]) -> List[str]:
    if not text:
        return []
    return [line.strip() for line in re.split(r"\r?\n", text) if line.strip()]


def is_excluded(candidate_name: str, exclude: List[str]) -> bool:
    name = candidate_name.strip().lower()
    return any(e.strip().lower() == name for e in exclude)
