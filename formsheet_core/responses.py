"""
Submission outcomes and their wire representation

The coordinator returns a ``SubmissionSuccess`` or a ``SubmissionFailure``;
``to_response`` turns either into the JSON body sent to the caller. The wire
shape never carries tracebacks or internal identifiers.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel

from .parser import utc_now_iso


@dataclass
class SubmissionSuccess:
    row: int
    message: str
    record: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class SubmissionFailure:
    error: str
    error_type: str = "Error"
    timestamp: str = field(default_factory=utc_now_iso)


SubmissionResult = Union[SubmissionSuccess, SubmissionFailure]


class SubmissionResponse(BaseModel):
    """JSON body returned for every submission (always with HTTP 200)."""
    result: Literal["success", "error"]
    timestamp: str
    row: Optional[int] = None
    message: Optional[str] = None
    error: Optional[str] = None


def to_response(outcome: SubmissionResult) -> Dict[str, Any]:
    """Wire representation of a submission outcome."""
    if isinstance(outcome, SubmissionSuccess):
        response = SubmissionResponse(
            result="success",
            row=outcome.row,
            timestamp=outcome.timestamp,
            message=outcome.message,
        )
    else:
        response = SubmissionResponse(
            result="error",
            error=outcome.error,
            timestamp=outcome.timestamp,
        )
    return response.model_dump(exclude_none=True)
