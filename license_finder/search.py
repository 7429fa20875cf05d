"""
Web search and public page fetching
===================================
Search priority: Serper.dev -> Google Custom Search -> empty (with warning).
Page fetches only reach public http(s) URLs.
"""

import logging
from typing import Optional, List
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel

from .config.settings import SEARCH_CONFIG, FETCH_CONFIG
from .utils import clamp_text, is_safe_public_http_url, strip_html_to_text

logger = logging.getLogger(__name__)


class SearchResult(BaseModel):
    title: str = ""
    url: str = ""
    snippet: str = ""


class FetchResult(BaseModel):
    ok: bool
    text: Optional[str] = None
    error: Optional[str] = None
    content_type: Optional[str] = None


# =============================================================================
# SEARCH
# =============================================================================

class WebSearch:
    """Search client; pass an httpx.Client to control transport."""

    def __init__(
        self,
        serper_api_key: Optional[str] = None,
        google_api_key: Optional[str] = None,
        google_cse_id: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.serper_api_key = serper_api_key if serper_api_key is not None else SEARCH_CONFIG["serper_api_key"]
        self.google_api_key = google_api_key if google_api_key is not None else SEARCH_CONFIG["google_api_key"]
        self.google_cse_id = google_cse_id if google_cse_id is not None else SEARCH_CONFIG["google_cse_id"]
        self.client = client or httpx.Client(timeout=SEARCH_CONFIG["timeout_seconds"])

    @property
    def configured(self) -> bool:
        return bool(self.serper_api_key or (self.google_api_key and self.google_cse_id))

    def search(self, query: str, max_results: int = 3) -> List[SearchResult]:
        if self.serper_api_key:
            return self._serper_search(query, max_results)
        if self.google_api_key and self.google_cse_id:
            return self._google_cse_search(query, max_results)

        logger.warning(
            "No search provider configured (SERPER_API_KEY or GOOGLE_API_KEY/GOOGLE_CSE_ID). Skipping web search."
        )
        return []

    def _serper_search(self, query: str, max_results: int) -> List[SearchResult]:
        try:
            response = self.client.post(
                SEARCH_CONFIG["serper_url"],
                headers={"X-API-KEY": self.serper_api_key, "Content-Type": "application/json"},
                json={"q": query, "num": min(max_results, 10)},
            )
        except httpx.HTTPError as e:
            logger.error("Serper fetch failed: %s", e)
            return []

        if response.is_error:
            logger.error("Serper error %s: %s", response.status_code, response.text[:300])
            return []

        organic = response.json().get("organic") or []
        return [
            SearchResult(
                title=str(item.get("title", "")),
                url=str(item.get("link", "")),
                snippet=str(item.get("snippet", "")),
            )
            for item in organic[:max_results]
        ]

    def _google_cse_search(self, query: str, max_results: int) -> List[SearchResult]:
        params = {
            "key": self.google_api_key,
            "cx": self.google_cse_id,
            "q": query,
            "num": str(min(max_results, 10)),
        }
        try:
            response = self.client.get(SEARCH_CONFIG["google_url"], params=params)
        except httpx.HTTPError as e:
            logger.error("Google CSE fetch failed: %s", e)
            return []

        if response.is_error:
            logger.error("Google CSE error %s: %s", response.status_code, response.text[:300])
            return []

        items = response.json().get("items") or []
        return [
            SearchResult(
                title=str(item.get("title", "")),
                url=str(item.get("link", "")),
                snippet=str(item.get("snippet", "")),
            )
            for item in items[:max_results]
        ]


# =============================================================================
# FETCH
# =============================================================================

class PageFetcher:
    """Fetch the readable text of a public page. Redirect targets are checked too."""

    def __init__(self, client: Optional[httpx.Client] = None):
        self.client = client or httpx.Client(timeout=FETCH_CONFIG["timeout_seconds"])

    def fetch(self, url: str) -> FetchResult:
        headers = {
            "User-Agent": FETCH_CONFIG["user_agent"],
            "Accept": FETCH_CONFIG["accept"],
        }
        response = None
        for _ in range(FETCH_CONFIG["max_redirects"] + 1):
            if not is_safe_public_http_url(url):
                return FetchResult(ok=False, error="URL blocked (only public http(s) allowed)")
            try:
                response = self.client.get(url, headers=headers, follow_redirects=False)
            except httpx.HTTPError as e:
                return FetchResult(ok=False, error=str(e) or e.__class__.__name__)
            if not response.is_redirect:
                break
            url = urljoin(url, response.headers.get("location", ""))
        else:
            return FetchResult(ok=False, error="Too many redirects")

        content_type = response.headers.get("content-type", "")
        if response.is_error:
            return FetchResult(
                ok=False,
                error=f"Fetch failed ({response.status_code})",
                content_type=content_type,
            )

        raw = clamp_text(response.text, FETCH_CONFIG["raw_limit"])
        text = strip_html_to_text(raw) if "text/html" in content_type else raw
        return FetchResult(
            ok=True,
            text=clamp_text(text, FETCH_CONFIG["text_limit"]),
            content_type=content_type,
        )
