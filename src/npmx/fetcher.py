"""HTTP client construction and the jsDelivr file-listing fetcher."""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
import structlog

from npmx.config import UpstreamSettings
from npmx.constants import ERROR_FILE_LIST_FETCH_FAILED
from npmx.errors import ErrorCode, NpmxError
from npmx.models.files import JsDelivrFlatListing

if TYPE_CHECKING:
    from npmx.models.package import PackageVersionQuery

log = structlog.get_logger()


def build_http_client(settings: UpstreamSettings | None = None) -> httpx.AsyncClient:
    """Shared client for upstream calls. Timeouts live here, not in callers."""
    settings = settings or UpstreamSettings()
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": settings.user_agent},
        follow_redirects=True,
    )


def fetch_failed_error() -> NpmxError:
    return NpmxError(
        ErrorCode.UPSTREAM_FETCH_FAILED,
        ERROR_FILE_LIST_FETCH_FAILED,
        status_code=502,
        recoverable=True,
    )


class JsDelivrFetcher:
    """Reads package file listings from jsDelivr's data API.

    Every failure mode (network error, non-2xx status, malformed payload)
    raises the same ``NpmxError``; the detail is only logged.
    """

    def __init__(self, client: httpx.AsyncClient, settings: UpstreamSettings | None = None) -> None:
        self._client = client
        self._settings = settings or UpstreamSettings()

    def listing_url(self, query: PackageVersionQuery) -> str:
        base = self._settings.jsdelivr_url.rstrip("/")
        spec = quote(f"{query.package_name}@{query.version}", safe="@/")
        return f"{base}/packages/npm/{spec}?structure=flat"

    async def fetch_file_listing(self, query: PackageVersionQuery) -> JsDelivrFlatListing:
        url = self.listing_url(query)
        try:
            response = await self._client.get(url)
            response.raise_for_status()
            listing = JsDelivrFlatListing.model_validate(response.json())
        except httpx.HTTPStatusError as exc:
            log.warning(
                "upstream_fetch_failed",
                url=url,
                status_code=exc.response.status_code,
            )
            raise fetch_failed_error() from exc
        except (httpx.HTTPError, ValueError) as exc:  # bad JSON, ValidationError
            log.warning("upstream_fetch_failed", url=url, error=str(exc))
            raise fetch_failed_error() from exc

        log.debug("upstream_fetch_complete", url=url, file_count=len(listing.files))
        return listing
