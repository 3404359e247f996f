"""
NoteDigest Backend — Web Page Extractor (Firecrawl)
====================================================

What:  Fetches a web page as markdown through the Firecrawl scrape API.
How:   POST {FIRECRAWL_BASE_URL}/v1/scrape with a Bearer key and
       {"url": ..., "formats": ["markdown"]}; reads data.markdown.
Who:   Called by the ingestion service for POST /api/notes/web.

Error Mapping (all surface as 422 ExtractionError):
    no API key configured   → "FireCrawl API key is not configured. ..."
    401 / 403               → "FireCrawl API key is invalid or missing."
    timeout / 408 / 504     → "Request timed out. ..."
    404                     → "Website not found. ..."
    empty markdown          → "Failed to extract content from the website. ..."
    anything else           → "Failed to scrape website. ..."
"""

import logging
import time
from typing import Optional
from urllib.parse import urlparse

import httpx

from notedigest.exceptions import ExtractionError, ValidationError
from notedigest.services.extraction import ExtractedContent

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = (
    "FireCrawl API key is not configured. "
    "Please set FIRECRAWL_API_KEY environment variable."
)
INVALID_KEY_MESSAGE = "FireCrawl API key is invalid or missing."
TIMEOUT_MESSAGE = "Request timed out. The website may be slow or unreachable."
NOT_FOUND_MESSAGE = "Website not found. Please check the URL."
EMPTY_CONTENT_MESSAGE = (
    "Failed to extract content from the website. The page may be empty or inaccessible."
)
GENERIC_FAILURE_MESSAGE = "Failed to scrape website. Please try again later."


def validate_web_url(url: Optional[str]) -> str:
    """
    Check that `url` is an absolute http(s) URL and return it trimmed.

    Raises:
        ValidationError: Missing, malformed, or non-http(s) URL.
    """
    candidate = (url or "").strip()
    if not candidate:
        raise ValidationError("URL is required.", field="url")

    parsed = urlparse(candidate)
    if parsed.scheme and parsed.scheme.lower() not in ("http", "https"):
        raise ValidationError("URL must use http:// or https:// protocol.", field="url")
    if not parsed.scheme or not parsed.netloc:
        raise ValidationError(
            "Invalid URL format. Please provide a valid URL.", field="url"
        )
    return candidate


class WebExtractor:
    """
    Firecrawl client.

    `transport` lets tests plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.firecrawl.dev",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def extract(self, url: str) -> ExtractedContent:
        """
        Scrape `url` (already validated) and return its markdown.

        Raises:
            ExtractionError: See the module error mapping.
        """
        if not self.api_key:
            raise ExtractionError(MISSING_KEY_MESSAGE, context={"url": url})

        start_time = time.time()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.post(
                    "/v1/scrape",
                    json={"url": url, "formats": ["markdown"]},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                payload = response.json() or {}
        except httpx.TimeoutException as e:
            logger.warning("Firecrawl timed out for %s: %s", url, str(e))
            raise ExtractionError(TIMEOUT_MESSAGE, context={"url": url}) from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Firecrawl returned HTTP %d for %s", status, url)
            raise ExtractionError(
                self._message_for_status(status),
                context={"url": url, "status": status},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            # ValueError: response body was not JSON
            logger.warning("Firecrawl request failed for %s: %s", url, str(e))
            raise ExtractionError(
                GENERIC_FAILURE_MESSAGE,
                context={"url": url, "error_type": type(e).__name__},
            ) from e

        data = payload.get("data") if isinstance(payload, dict) else None
        markdown = (data or {}).get("markdown") if isinstance(data, dict) else None
        if not isinstance(markdown, str) or not markdown.strip():
            logger.warning("Firecrawl returned no markdown for %s", url)
            raise ExtractionError(EMPTY_CONTENT_MESSAGE, context={"url": url})

        logger.info(
            "Scraped %s in %.0fms (%d chars)",
            url,
            (time.time() - start_time) * 1000,
            len(markdown),
        )
        return ExtractedContent(text=markdown.strip(), origin=url)

    @staticmethod
    def _message_for_status(status: int) -> str:
        if status in (401, 403):
            return INVALID_KEY_MESSAGE
        if status in (408, 504):
            return TIMEOUT_MESSAGE
        if status == 404:
            return NOT_FOUND_MESSAGE
        return GENERIC_FAILURE_MESSAGE
