"""
Submission Parser - Normalize request payloads into a submission record

Accepts URL-encoded form bodies, JSON objects and bare query parameters, and
always returns a flat ``dict`` carrying a ``timestamp``.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl

from .errors import ParseError

logger = logging.getLogger(__name__)

FORM_URLENCODED = "application/x-www-form-urlencoded"
JSON = "application/json"


@dataclass
class SubmissionRequest:
    """Transport-neutral view of an inbound submission."""
    content_type: Optional[str] = None
    body: bytes = b""
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def media_type(self) -> str:
        """Content type without parameters, lower-cased."""
        if not self.content_type:
            return ""
        return self.content_type.split(";", 1)[0].strip().lower()

    @property
    def charset(self) -> str:
        for part in (self.content_type or "").split(";")[1:]:
            name, _, value = part.partition("=")
            if name.strip().lower() == "charset" and value.strip():
                return value.strip().strip('"')
        return "utf-8"


def utc_now_iso(now: Optional[datetime] = None) -> str:
    """Current instant as ISO-8601 UTC with milliseconds, e.g. ``2025-10-19T08:30:00.000Z``."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _decode(request: SubmissionRequest) -> str:
    try:
        return request.body.decode(request.charset)
    except (UnicodeDecodeError, LookupError) as e:
        raise ParseError() from e


def _parse_json(request: SubmissionRequest) -> Dict[str, Any]:
    try:
        payload = json.loads(_decode(request))
    except json.JSONDecodeError as e:
        logger.warning(f"Error parsing form data: {e}")
        raise ParseError() from e
    if not isinstance(payload, dict):
        logger.warning(f"JSON body is a {type(payload).__name__}, expected an object")
        raise ParseError()
    return payload


def _parse_form(request: SubmissionRequest) -> Dict[str, Any]:
    return dict(parse_qsl(_decode(request), keep_blank_values=True))


def parse_submission(
    request: SubmissionRequest,
    now: Optional[Callable[[], datetime]] = None,
) -> Dict[str, Any]:
    """
    Build the submission record for a request.

    Args:
        request: Inbound request
        now: Clock used for the default timestamp (defaults to UTC now)

    Returns:
        Mapping of field name to value, always including ``timestamp``

    Raises:
        ParseError: the body is JSON-typed but not a decodable JSON object
    """
    data: Dict[str, Any] = {}

    if request.body:
        media_type = request.media_type
        if media_type == FORM_URLENCODED:
            data.update(_parse_form(request))
        elif media_type == JSON:
            data.update(_parse_json(request))
        else:
            logger.info(f"Ignoring body with unsupported content type '{request.content_type}'")
    elif request.params:
        data.update(request.params)

    if not data.get("timestamp"):
        data["timestamp"] = utc_now_iso(now() if now else None)

    logger.info(f"Parsed form data keys: {', '.join(data.keys())}")
    return data


def request_from_fields(fields: Mapping[str, Any]) -> SubmissionRequest:
    """Wrap already-decoded fields (CLI, tests) as a parameter-only request."""
    return SubmissionRequest(params={k: str(v) for k, v in fields.items()})
