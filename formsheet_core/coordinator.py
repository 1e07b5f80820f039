"""
Append Coordinator - Serialized, self-healing submission pipeline
=================================================================

One submission runs entirely under the store's exclusive lock:

    lock -> parse -> ensure header -> project -> append -> format -> release

Only one request at a time can read the last row and write the next one, so
concurrent submissions can neither overwrite each other nor interleave. Any
error inside the locked region is turned into a ``SubmissionFailure``; the
lock is released on every path.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from .config import FormSheetConfig
from .errors import FormSheetError
from .logging_utils import SubmissionLogger
from .parser import SubmissionRequest, parse_submission
from .projector import project_row
from .responses import SubmissionFailure, SubmissionResult, SubmissionSuccess
from .schema import ensure_schema
from .store import HeaderStyle, RowStyle, TabularStore

logger = logging.getLogger(__name__)


class SubmissionCoordinator:
    """
    Primary entry point for recording form submissions.

    Args:
        store: Shared tabular store
        config: Configuration (defaults to ``FormSheetConfig()``)
        submission_logger: Optional file trail of submissions
        clock: Clock used for server-generated timestamps
    """

    def __init__(
        self,
        store: TabularStore,
        config: Optional[FormSheetConfig] = None,
        submission_logger: Optional[SubmissionLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.config = config or FormSheetConfig()
        self.submission_logger = submission_logger
        self.clock = clock
        self.header_style = HeaderStyle(column_width=self.config.store.column_width)
        self.row_style = RowStyle()
        self._tz = self.config.tzinfo()

    @property
    def lock_timeout(self) -> float:
        return float(self.config.store.lock_timeout)

    def handle_submission(self, request: SubmissionRequest) -> SubmissionResult:
        """
        Record one submission.

        Returns:
            ``SubmissionSuccess`` with the 1-based row index written, or
            ``SubmissionFailure`` with a user-facing message
        """
        try:
            with self.store.exclusive(self.lock_timeout):
                record = parse_submission(request, now=self.clock)

                headers = ensure_schema(
                    self.store,
                    style=self.header_style,
                    destructive_reset=self.config.store.destructive_reset,
                )

                row = project_row(headers, record, self._tz)

                next_row = self.store.last_row_index() + 1
                self.store.write_row(next_row, row)

                self._format_row(next_row)

        except FormSheetError as e:
            logger.error(f"Error in handle_submission: {type(e).__name__}: {e.message}")
            return self._failure(e.message, type(e).__name__)

        except Exception as e:
            logger.exception(f"Error in handle_submission: {e}")
            return self._failure(FormSheetError.default_message, type(e).__name__, detail=str(e))

        self._log_submission(record, next_row)

        return SubmissionSuccess(
            row=next_row,
            message=self.config.form.success_message,
            record=record,
        )

    def _format_row(self, index: int) -> None:
        # Presentation only: a failure here must not lose the row
        try:
            width = self.store.last_column_index()
            self.store.apply_row_style(index, width, self.row_style)
        except Exception as e:
            logger.warning(f"Could not format row {index}: {e}")

    def _log_submission(self, record, row: int) -> None:
        logger.info(f"New submission stored at row {row}")
        if self.submission_logger is None:
            return
        try:
            self.submission_logger.log_submission(record, row)
        except OSError as e:
            logger.warning(f"Could not write submission log: {e}")

    def _failure(self, message: str, error_type: str, detail: Optional[str] = None) -> SubmissionFailure:
        if self.submission_logger is not None:
            details = {"error_type": error_type}
            if detail:
                details["detail"] = detail
            try:
                self.submission_logger.log_failure(message, details)
            except OSError as e:
                logger.warning(f"Could not write submission log: {e}")
        return SubmissionFailure(error=message, error_type=error_type)
