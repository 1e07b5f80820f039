"""
FormSheet Submissions Router - Form submission endpoint

Both ``POST /`` and ``POST /api/submissions`` accept URL-encoded or JSON
bodies. The answer is always HTTP 200; callers branch on ``result``.
"""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from formsheet_core.parser import SubmissionRequest
from formsheet_core.responses import to_response

logger = logging.getLogger(__name__)

router = APIRouter(tags=["submissions"])


@router.post("/")
@router.post("/api/submissions")
async def submit(request: Request):
    """Record one form submission."""
    submission = SubmissionRequest(
        content_type=request.headers.get("content-type"),
        body=await request.body(),
        params=dict(request.query_params),
    )

    coordinator = request.app.state.coordinator
    # The coordinator may block on the store lock; keep the event loop free
    outcome = await asyncio.to_thread(coordinator.handle_submission, submission)

    return JSONResponse(to_response(outcome), status_code=200)
