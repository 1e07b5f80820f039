"""
FastAPI Server for FormSheet

Receives form submissions over HTTP and records them in the shared store.
Notifications, when enabled, are sent out-of-band by a store subscriber.
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from formsheet_core.config import FormSheetConfig, load_config
from formsheet_core.coordinator import SubmissionCoordinator
from formsheet_core.logging_utils import SubmissionLogger, setup_logging
from formsheet_core.notifier import Mailer, SubmissionNotifier
from formsheet_core.store import TabularStore, create_store
from formsheet_core.version import __version__ as FORMSHEET_VERSION

from formsheet_web.routers import export_router, submissions_router

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[FormSheetConfig] = None,
    store: Optional[TabularStore] = None,
    mailer: Optional[Mailer] = None,
    submission_logger: Optional[SubmissionLogger] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Configuration (loaded from formsheet.yaml when None)
        store: Store to write to (built from ``config.store`` when None)
        mailer: Mailer for notifications (SMTP from ``config.notify`` when None)
        submission_logger: Submission trail (under ``config.logging.log_dir`` when None)
    """
    config = config or load_config()
    store = store or create_store(config)
    if submission_logger is None:
        submission_logger = SubmissionLogger(
            Path(config.logging.log_dir),
            mask_secrets_enabled=config.logging.mask_secrets,
            text_name=config.logging.submissions_log,
            json_name=config.logging.events_log,
        )

    coordinator = SubmissionCoordinator(store, config, submission_logger)

    notifier = None
    if config.notify.enabled:
        notifier = SubmissionNotifier(store, config, mailer=mailer).attach()
        logger.info(f"Email notifications enabled for {config.notify.recipient}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if notifier is not None:
            notifier.shutdown(wait=True)

    app = FastAPI(
        title="FormSheet",
        description=f"{config.form.title} - {config.form.subtitle}",
        version=FORMSHEET_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.web.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.store = store
    app.state.coordinator = coordinator
    app.state.notifier = notifier

    app.include_router(submissions_router)
    app.include_router(export_router)

    @app.get("/api/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "ok",
            "version": FORMSHEET_VERSION,
            "rows": await asyncio.to_thread(store.last_row_index),
        }

    @app.get("/api/about")
    async def about():
        """Form identity and contact."""
        return {
            "title": config.form.title,
            "subtitle": config.form.subtitle,
            "version": FORMSHEET_VERSION,
            "contact": config.form.contact,
        }

    return app


def run_server(config: FormSheetConfig) -> None:
    """Serve the application with uvicorn."""
    uvicorn.run(
        create_app(config),
        host=config.web.host,
        port=config.web.port,
        log_level=config.logging.level.lower(),
    )


def main():
    """Main entry point for formsheet-web."""
    parser = argparse.ArgumentParser(
        prog="formsheet-web",
        description="FormSheet - form submission server"
    )
    parser.add_argument("--config", help="Path to formsheet.yaml")
    parser.add_argument("--host", help="Host to bind to (default: from config)")
    parser.add_argument("--port", type=int, help="Port to bind to (default: from config)")
    args = parser.parse_args()

    config = load_config(Path(args.config) if args.config else None)
    setup_logging(config.logging.level)
    if args.host:
        config.web.host = args.host
    if args.port:
        config.web.port = args.port

    print("=" * 60)
    print(f"FormSheet v{FORMSHEET_VERSION} - {config.form.title}")
    print("=" * 60)
    print(f"Server: http://{config.web.host}:{config.web.port}")
    print(f"Store: {config.store.backend} ({config.store.path})")
    print(f"Notifications: {'on' if config.notify.enabled else 'off'}")
    print("=" * 60)
    print("\nPress Ctrl+C to stop")
    print()

    run_server(config)


if __name__ == "__main__":
    main()
