"""
FormSheet Export Router - CSV download of the submission store
"""

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from formsheet_core.errors import StoreError
from formsheet_core.export import export_filename, store_to_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/export", tags=["export"])


@router.get("")
async def download_csv(request: Request):
    """Return the whole store as a CSV attachment."""
    store = request.app.state.store
    config = request.app.state.config

    try:
        content = await asyncio.to_thread(store_to_csv, store)
    except StoreError as e:
        logger.error(f"CSV export failed: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)

    filename = export_filename(config.export.filename_prefix, config.tzinfo())
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
