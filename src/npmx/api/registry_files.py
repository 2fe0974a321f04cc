"""File tree for a package version.

URL patterns:
- /api/registry/files/packageName/v/1.2.3          required version
- /api/registry/files/@scope/packageName/v/1.2.3   scoped package

Files of a published version never change, so responses are cached for a
year and revalidated in the background once stale.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from fastapi import APIRouter, Depends, Response

from npmx.cached_handler import Handler, cached_handler
from npmx.constants import FILES_CACHE_NAMESPACE
from npmx.errors import ErrorCode, NpmxError
from npmx.fetcher import fetch_failed_error
from npmx.file_tree import convert_to_file_tree
from npmx.models.files import PackageFileTreeResponse
from npmx.package_params import (
    InvalidPackageQuery,
    parse_package_params,
    split_pkg_param,
    validate_package_query,
)
from npmx.state import AppState, get_state

if TYPE_CHECKING:
    from npmx.cache import Cache
    from npmx.cached_handler import CachedHandler
    from npmx.fetcher import JsDelivrFetcher

log = structlog.get_logger()

router = APIRouter()

_TRAILING_SLASHES_RE = re.compile(r"/+$")


def files_cache_key(pkg: str) -> str:
    return f"{FILES_CACHE_NAMESPACE}:{_TRAILING_SLASHES_RE.sub('', pkg).strip()}"


def make_file_tree_handler(fetcher: JsDelivrFetcher) -> Handler:
    async def get_package_file_tree(pkg: str) -> PackageFileTreeResponse:
        params = parse_package_params(split_pkg_param(pkg))
        query = validate_package_query(params.raw_package_name, params.raw_version)
        if isinstance(query, InvalidPackageQuery):
            raise NpmxError(ErrorCode.INVALID_INPUT, query.message, status_code=404)

        try:
            listing = await fetcher.fetch_file_listing(query)
            tree = convert_to_file_tree(listing.files)
        except NpmxError:
            raise
        except Exception as exc:
            log.warning(
                "file_tree_build_failed",
                package=query.package_name,
                version=query.version,
                exc_info=True,
            )
            raise fetch_failed_error() from exc

        return PackageFileTreeResponse(
            package=query.package_name,
            version=query.version,
            default=listing.default,
            tree=tree,
        )

    return get_package_file_tree


def build_files_handler(fetcher: JsDelivrFetcher, cache: Cache, max_age: int) -> CachedHandler:
    return cached_handler(
        make_file_tree_handler(fetcher),
        cache=cache,
        max_age=max_age,
        get_key=files_cache_key,
        swr=True,
    )


def cache_control_header(max_age: int) -> str:
    return f"public, max-age={max_age}, stale-while-revalidate={max_age}"


@router.get("/api/registry/files/{pkg:path}")
async def registry_files(pkg: str, state: AppState = Depends(get_state)) -> Response:
    result = await state.files_handler(pkg)
    max_age = state.settings.cache.max_age_seconds
    return Response(
        content=result.body,
        media_type="application/json",
        headers={
            "Cache-Control": cache_control_header(max_age),
            "X-Cache": result.status,
        },
    )
