"""
FormSheet Core - Concurrency-safe recording of form submissions in a shared sheet
"""

from .version import __version__

from .errors import (
    FormSheetError,
    LockTimeoutError,
    ParseError,
    SchemaInvalidError,
    StoreError,
    NotificationDeliveryError,
)
from .config import (
    FormSheetConfig,
    StoreConfig,
    FormConfig,
    NotifyConfig,
    ExportConfig,
    WebConfig,
    LoggingConfig,
    load_config,
    save_config,
    get_config,
    reload_config,
)
from .logging_utils import SubmissionLogger, LogLevel, mask_secrets, setup_logging
from .locking import ExclusiveLock
from .store import (
    TabularStore,
    InMemoryStore,
    WorkbookStore,
    HeaderStyle,
    RowStyle,
    RowWritten,
    create_store,
)
from .schema import (
    CANONICAL_SCHEMA,
    FIELD_MAPPING,
    LABEL_FOR_KEY,
    ensure_schema,
    initialize_schema,
    key_for_label,
    label_for_key,
)
from .parser import SubmissionRequest, parse_submission, request_from_fields, utc_now_iso
from .projector import format_timestamp, project_row
from .responses import (
    SubmissionSuccess,
    SubmissionFailure,
    SubmissionResult,
    SubmissionResponse,
    to_response,
)
from .coordinator import SubmissionCoordinator
from .notifier import Mailer, SmtpMailer, SubmissionNotifier, render_notification, build_message
from .export import export_csv, rows_to_csv, store_to_csv, export_filename

__all__ = [
    "__version__",
    # Errors
    "FormSheetError",
    "LockTimeoutError",
    "ParseError",
    "SchemaInvalidError",
    "StoreError",
    "NotificationDeliveryError",
    # Config
    "FormSheetConfig",
    "StoreConfig",
    "FormConfig",
    "NotifyConfig",
    "ExportConfig",
    "WebConfig",
    "LoggingConfig",
    "load_config",
    "save_config",
    "get_config",
    "reload_config",
    # Logging
    "SubmissionLogger",
    "LogLevel",
    "mask_secrets",
    "setup_logging",
    # Store
    "ExclusiveLock",
    "TabularStore",
    "InMemoryStore",
    "WorkbookStore",
    "HeaderStyle",
    "RowStyle",
    "RowWritten",
    "create_store",
    # Schema
    "CANONICAL_SCHEMA",
    "FIELD_MAPPING",
    "LABEL_FOR_KEY",
    "ensure_schema",
    "initialize_schema",
    "key_for_label",
    "label_for_key",
    # Pipeline
    "SubmissionRequest",
    "parse_submission",
    "request_from_fields",
    "utc_now_iso",
    "format_timestamp",
    "project_row",
    "SubmissionSuccess",
    "SubmissionFailure",
    "SubmissionResult",
    "SubmissionResponse",
    "to_response",
    "SubmissionCoordinator",
    # Side effects
    "Mailer",
    "SmtpMailer",
    "SubmissionNotifier",
    "render_notification",
    "build_message",
    "export_csv",
    "rows_to_csv",
    "store_to_csv",
    "export_filename",
]
