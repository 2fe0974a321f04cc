from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from npmx.state import AppState, get_state

router = APIRouter()


@router.get("/api/build-info")
async def build_info(state: AppState = Depends(get_state)) -> JSONResponse:
    """Build metadata resolved at startup, camelCase keys for the front end."""
    return JSONResponse(state.app_config.build_info.model_dump(mode="json", by_alias=True))
