from __future__ import annotations

CACHE_MAX_AGE_ONE_YEAR = 60 * 60 * 24 * 365

# Bump the version tag when the response shape changes so old entries are ignored.
FILES_CACHE_NAMESPACE = "files:v2"

ERROR_FILE_LIST_FETCH_FAILED = "Failed to fetch file list"
