"""
FormSheet Unified Configuration System
======================================

Loads and manages configuration from formsheet.yaml with environment variable overrides.
"""

import os
import yaml
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

_TRUE_VALUES = ("true", "1", "yes")


# =============================================================================
# Configuration Data Classes
# =============================================================================

@dataclass
class StoreConfig:
    """Tabular store configuration."""
    backend: str = "workbook"  # "workbook" (.xlsx on disk) or "memory"
    path: str = "data/reponses.xlsx"
    sheet_name: str = "Réponses"
    lock_timeout: float = 30.0  # seconds
    timezone: str = "Africa/Tunis"
    destructive_reset: bool = False  # Clear data rows when healing a blank header
    column_width: int = 150  # pixels


@dataclass
class FormConfig:
    """Form identity and user-facing texts."""
    title: str = "Code Arena 2025"
    subtitle: str = "Formulaire Ambassadeurs"
    contact: str = "acm@esprit.tn"
    success_message: str = "Candidature enregistrée avec succès"


@dataclass
class NotifyConfig:
    """Email notification configuration."""
    enabled: bool = False
    recipient: str = "acm@esprit.tn"
    sender: str = "noreply@localhost"
    subject: str = "🚀 Nouvelle candidature ambassadeur Code Arena 2025"
    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    use_tls: bool = False
    timeout: float = 10.0
    logo_path: Optional[str] = None  # Inline image for the HTML body
    store_url: Optional[str] = None  # Link shown in the message (defaults to the store path)


@dataclass
class ExportConfig:
    """CSV export configuration."""
    directory: str = "exports"
    filename_prefix: str = "Code_Arena_2025"


@dataclass
class WebConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = ".formsheet_logs"
    submissions_log: str = "submissions.log"
    events_log: str = "events.jsonl"
    mask_secrets: bool = True


@dataclass
class FormSheetConfig:
    """Root configuration container."""
    store: StoreConfig = field(default_factory=StoreConfig)
    form: FormConfig = field(default_factory=FormConfig)
    notify: NotifyConfig = field(default_factory=NotifyConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    version: str = "1.1"

    def tzinfo(self) -> ZoneInfo:
        """Time zone used for displayed timestamps and export file names."""
        return ZoneInfo(self.store.timezone)


# =============================================================================
# Configuration Loader
# =============================================================================

def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """
    Find formsheet.yaml by searching upward from start_path.

    Search order:
    1. start_path / formsheet.yaml
    2. start_path / .formsheet / formsheet.yaml
    3. Parent directories (recursive)
    4. ~/.config/formsheet/formsheet.yaml
    5. /etc/formsheet/formsheet.yaml

    Args:
        start_path: Starting directory (defaults to cwd)

    Returns:
        Path to config file or None if not found
    """
    if start_path is None:
        start_path = Path.cwd()

    start_path = Path(start_path).resolve()

    current = start_path
    for _ in range(10):  # Max 10 levels up
        candidates = [
            current / "formsheet.yaml",
            current / ".formsheet" / "formsheet.yaml",
        ]
        for candidate in candidates:
            if candidate.exists():
                return candidate

        parent = current.parent
        if parent == current:
            break
        current = parent

    user_config = Path.home() / ".config" / "formsheet" / "formsheet.yaml"
    if user_config.exists():
        return user_config

    system_config = Path("/etc/formsheet/formsheet.yaml")
    if system_config.exists():
        return system_config

    return None


def load_config(config_path: Optional[Path] = None) -> FormSheetConfig:
    """
    Load configuration from YAML file with environment variable overrides.

    Environment variables override config file values:
    - FORMSHEET_STORE_BACKEND -> store.backend
    - FORMSHEET_STORE_PATH -> store.path
    - FORMSHEET_SHEET_NAME -> store.sheet_name
    - FORMSHEET_LOCK_TIMEOUT -> store.lock_timeout
    - FORMSHEET_TIMEZONE -> store.timezone
    - FORMSHEET_NOTIFY_ENABLED -> notify.enabled
    - FORMSHEET_NOTIFY_RECIPIENT -> notify.recipient
    - FORMSHEET_SMTP_HOST / _PORT / _USER / _PASSWORD -> notify.smtp_*
    - FORMSHEET_WEB_HOST / FORMSHEET_WEB_PORT -> web.host / web.port
    - FORMSHEET_LOG_LEVEL -> logging.level
    - FORMSHEET_EXPORT_DIR -> export.directory

    Args:
        config_path: Path to config file (auto-detected if None)

    Returns:
        FormSheetConfig instance
    """
    config = FormSheetConfig()

    if config_path is None:
        config_path = find_config_file()

    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
            config = _parse_config_dict(data)
        except (OSError, yaml.YAMLError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load config: {e}, using defaults")
    else:
        logger.info("No config file found, using defaults")

    config = _apply_env_overrides(config)

    _validate_config(config)

    return config


def _parse_config_dict(data: Dict[str, Any]) -> FormSheetConfig:
    """Parse configuration dictionary into FormSheetConfig."""
    config = FormSheetConfig()

    if "store" in data:
        store = data["store"]
        config.store = StoreConfig(
            backend=store.get("backend", config.store.backend),
            path=store.get("path", config.store.path),
            sheet_name=store.get("sheet_name", config.store.sheet_name),
            lock_timeout=store.get("lock_timeout", config.store.lock_timeout),
            timezone=store.get("timezone", config.store.timezone),
            destructive_reset=store.get("destructive_reset", config.store.destructive_reset),
            column_width=store.get("column_width", config.store.column_width),
        )

    if "form" in data:
        form = data["form"]
        config.form = FormConfig(
            title=form.get("title", config.form.title),
            subtitle=form.get("subtitle", config.form.subtitle),
            contact=form.get("contact", config.form.contact),
            success_message=form.get("success_message", config.form.success_message),
        )

    if "notify" in data:
        notify = data["notify"]
        config.notify = NotifyConfig(
            enabled=notify.get("enabled", config.notify.enabled),
            recipient=notify.get("recipient", config.notify.recipient),
            sender=notify.get("sender", config.notify.sender),
            subject=notify.get("subject", config.notify.subject),
            smtp_host=notify.get("smtp_host", config.notify.smtp_host),
            smtp_port=notify.get("smtp_port", config.notify.smtp_port),
            smtp_user=notify.get("smtp_user"),
            smtp_password=notify.get("smtp_password"),
            use_tls=notify.get("use_tls", config.notify.use_tls),
            timeout=notify.get("timeout", config.notify.timeout),
            logo_path=notify.get("logo_path"),
            store_url=notify.get("store_url"),
        )

    if "export" in data:
        export = data["export"]
        config.export = ExportConfig(
            directory=export.get("directory", config.export.directory),
            filename_prefix=export.get("filename_prefix", config.export.filename_prefix),
        )

    if "web" in data:
        web = data["web"]
        config.web = WebConfig(
            host=web.get("host", config.web.host),
            port=web.get("port", config.web.port),
            cors_origins=web.get("cors_origins", config.web.cors_origins),
        )

    if "logging" in data:
        log = data["logging"]
        config.logging = LoggingConfig(
            level=log.get("level", config.logging.level),
            log_dir=log.get("log_dir", config.logging.log_dir),
            submissions_log=log.get("submissions_log", config.logging.submissions_log),
            events_log=log.get("events_log", config.logging.events_log),
            mask_secrets=log.get("mask_secrets", config.logging.mask_secrets),
        )

    config.version = str(data.get("version", config.version))

    return config


def _apply_env_overrides(config: FormSheetConfig) -> FormSheetConfig:
    """Apply environment variable overrides to config."""

    if os.environ.get("FORMSHEET_STORE_BACKEND"):
        config.store.backend = os.environ["FORMSHEET_STORE_BACKEND"]

    if os.environ.get("FORMSHEET_STORE_PATH"):
        config.store.path = os.environ["FORMSHEET_STORE_PATH"]

    if os.environ.get("FORMSHEET_SHEET_NAME"):
        config.store.sheet_name = os.environ["FORMSHEET_SHEET_NAME"]

    if os.environ.get("FORMSHEET_LOCK_TIMEOUT"):
        try:
            config.store.lock_timeout = float(os.environ["FORMSHEET_LOCK_TIMEOUT"])
        except ValueError:
            logger.warning(f"Invalid FORMSHEET_LOCK_TIMEOUT '{os.environ['FORMSHEET_LOCK_TIMEOUT']}', ignored")

    if os.environ.get("FORMSHEET_TIMEZONE"):
        config.store.timezone = os.environ["FORMSHEET_TIMEZONE"]

    if os.environ.get("FORMSHEET_NOTIFY_ENABLED"):
        config.notify.enabled = os.environ["FORMSHEET_NOTIFY_ENABLED"].lower() in _TRUE_VALUES

    if os.environ.get("FORMSHEET_NOTIFY_RECIPIENT"):
        config.notify.recipient = os.environ["FORMSHEET_NOTIFY_RECIPIENT"]

    if os.environ.get("FORMSHEET_SMTP_HOST"):
        config.notify.smtp_host = os.environ["FORMSHEET_SMTP_HOST"]

    if os.environ.get("FORMSHEET_SMTP_PORT"):
        config.notify.smtp_port = int(os.environ["FORMSHEET_SMTP_PORT"])

    if os.environ.get("FORMSHEET_SMTP_USER"):
        config.notify.smtp_user = os.environ["FORMSHEET_SMTP_USER"]

    if os.environ.get("FORMSHEET_SMTP_PASSWORD"):
        config.notify.smtp_password = os.environ["FORMSHEET_SMTP_PASSWORD"]

    if os.environ.get("FORMSHEET_WEB_HOST"):
        config.web.host = os.environ["FORMSHEET_WEB_HOST"]

    if os.environ.get("FORMSHEET_WEB_PORT"):
        config.web.port = int(os.environ["FORMSHEET_WEB_PORT"])

    if os.environ.get("FORMSHEET_LOG_LEVEL"):
        config.logging.level = os.environ["FORMSHEET_LOG_LEVEL"].upper()

    if os.environ.get("FORMSHEET_EXPORT_DIR"):
        config.export.directory = os.environ["FORMSHEET_EXPORT_DIR"]

    return config


def _validate_config(config: FormSheetConfig) -> None:
    """Validate configuration and log warnings."""

    valid_backends = ("workbook", "memory")
    if config.store.backend not in valid_backends:
        logger.warning(f"Unknown store backend '{config.store.backend}', defaulting to 'workbook'")
        config.store.backend = "workbook"

    try:
        ZoneInfo(config.store.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown time zone '{config.store.timezone}', defaulting to 'UTC'")
        config.store.timezone = "UTC"

    try:
        timeout = float(config.store.lock_timeout)
    except (TypeError, ValueError):
        timeout = 0
    if timeout <= 0:
        logger.warning(f"Invalid lock timeout '{config.store.lock_timeout}', defaulting to 30s")
        timeout = 30.0
    config.store.lock_timeout = timeout

    valid_levels = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    if str(config.logging.level).upper() not in valid_levels:
        logger.warning(f"Unknown log level '{config.logging.level}', defaulting to 'INFO'")
        config.logging.level = "INFO"
    config.logging.level = str(config.logging.level).upper()


def config_to_dict(config: FormSheetConfig, mask_secrets: bool = True) -> Dict[str, Any]:
    """Serialize a configuration into a plain dictionary."""
    data = {
        "version": config.version,
        "store": {
            "backend": config.store.backend,
            "path": config.store.path,
            "sheet_name": config.store.sheet_name,
            "lock_timeout": config.store.lock_timeout,
            "timezone": config.store.timezone,
            "destructive_reset": config.store.destructive_reset,
            "column_width": config.store.column_width,
        },
        "form": {
            "title": config.form.title,
            "subtitle": config.form.subtitle,
            "contact": config.form.contact,
            "success_message": config.form.success_message,
        },
        "notify": {
            "enabled": config.notify.enabled,
            "recipient": config.notify.recipient,
            "sender": config.notify.sender,
            "subject": config.notify.subject,
            "smtp_host": config.notify.smtp_host,
            "smtp_port": config.notify.smtp_port,
            "smtp_user": config.notify.smtp_user,
            "use_tls": config.notify.use_tls,
            "timeout": config.notify.timeout,
            "logo_path": config.notify.logo_path,
            "store_url": config.notify.store_url,
        },
        "export": {
            "directory": config.export.directory,
            "filename_prefix": config.export.filename_prefix,
        },
        "web": {
            "host": config.web.host,
            "port": config.web.port,
            "cors_origins": config.web.cors_origins,
        },
        "logging": {
            "level": config.logging.level,
            "log_dir": config.logging.log_dir,
            "submissions_log": config.logging.submissions_log,
            "events_log": config.logging.events_log,
            "mask_secrets": config.logging.mask_secrets,
        },
    }

    # Don't write SMTP passwords to disk
    if config.notify.smtp_password:
        data["notify"]["smtp_password"] = (
            "*** SET VIA ENVIRONMENT VARIABLE ***" if mask_secrets else config.notify.smtp_password
        )

    return data


def save_config(config: FormSheetConfig, path: Path) -> None:
    """
    Save configuration to YAML file.

    Args:
        config: FormSheetConfig instance
        path: Output path
    """
    data = config_to_dict(config)

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    logger.info(f"Configuration saved to: {path}")


# =============================================================================
# Global Config Instance
# =============================================================================

_global_config: Optional[FormSheetConfig] = None


def get_config() -> FormSheetConfig:
    """Get the global configuration instance (lazy-loaded)."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reload_config(config_path: Optional[Path] = None) -> FormSheetConfig:
    """Reload configuration from file."""
    global _global_config
    _global_config = load_config(config_path)
    return _global_config
