"""
src/main.py
FastAPI application for the GitHub Actions SRE agent.
Endpoints: POST /webhook, GET /health, GET /status, GET /
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any
import json
import logging
import sys

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.agent.dispatcher import SREAgentDispatcher
from src.common.signature import verify_signature
from src.config import AppSettings, load_settings
from src.handlers.workflow_run import WorkflowRunHandler
from src.integrations.composio_provider import get_external_github_tools
from src.schemas import RepoConfig, WorkflowRunEvent
from src.services.github_client import GitHubClient
from src.services.status import StatusCache
from src.shared import SERVICE_NAME, SERVICE_VERSION
from src.stores.json_file import utc_now_iso
from src.stores.notes import NoteStore
from src.stores.tracker import WorkflowTracker
from src.tools.sre_toolbox import SREToolbox

logger = logging.getLogger(__name__)
load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


@dataclass
class AppComponents:
    """Process-wide collaborators shared by every request."""

    settings: AppSettings
    handler: WorkflowRunHandler
    notes: NoteStore
    tracker: WorkflowTracker


def build_components(settings: AppSettings) -> AppComponents:
    """Wire stores, clients, dispatcher and handler from settings."""
    github = GitHubClient(settings.github_token, settings.github_api_url)
    status = StatusCache()
    notes = NoteStore(settings.notes_path)
    tracker = WorkflowTracker(settings.tracker_path)

    def toolbox_factory(config: RepoConfig) -> SREToolbox:
        return SREToolbox(github=github, status=status, notes=notes, tracker=tracker, policy=config)

    dispatcher = SREAgentDispatcher(
        model=settings.model,
        timeout_seconds=settings.agent_timeout_seconds,
        toolbox_factory=toolbox_factory,
        external_tools=lambda: get_external_github_tools(settings.composio_enabled),
        verbose=settings.environment == "development",
    )
    handler = WorkflowRunHandler(
        dispatcher=dispatcher,
        tracker=tracker,
        config_reader=github if settings.repo_config_enabled else None,
    )
    return AppComponents(settings=settings, handler=handler, notes=notes, tracker=tracker)


def _settings_or_exit() -> AppSettings:
    try:
        return load_settings()
    except RuntimeError:
        logger.exception("Invalid configuration; refusing to start.")
        sys.exit(1)


def _validation_details(exc: ValidationError) -> list[dict[str, str]]:
    return [
        {"path": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in exc.errors()
    ]


def create_app(components: AppComponents | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        components: Pre-built collaborators (tests); resolved from the environment at startup when omitted.
    Returns:
        Configured FastAPI instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Resolve settings, build components and load the persisted stores."""
        if app.state.components is None:
            settings = _settings_or_exit()
            configure_logging(settings.log_level)
            app.state.components = build_components(settings)
        resolved: AppComponents = app.state.components
        resolved.notes.load()
        resolved.tracker.load()
        logger.info(
            "%s started: environment=%s model=%s",
            SERVICE_NAME,
            resolved.settings.environment,
            resolved.settings.model,
        )
        yield
        logger.info("%s shutting down.", SERVICE_NAME)

    app = FastAPI(title=SERVICE_NAME, version=SERVICE_VERSION, lifespan=lifespan)
    app.state.components = components

    @app.post("/webhook")
    async def github_webhook(request: Request) -> JSONResponse:
        """
        Receive GitHub webhooks.

        Returns:
            200 with processing outcome, ping reply or acknowledgement.
            401 bad signature, 400 bad JSON or payload, 500 agent failure.
        """
        resolved: AppComponents = request.app.state.components
        body = await request.body()
        event_type = request.headers.get("X-GitHub-Event", "")
        delivery_id = request.headers.get("X-GitHub-Delivery", "unknown")

        if not verify_signature(
            resolved.settings.webhook_secret, body, request.headers.get("X-Hub-Signature-256")
        ):
            logger.warning("Rejected webhook %s: invalid signature.", delivery_id)
            return JSONResponse({"error": "Invalid signature"}, status_code=401)

        try:
            payload: Any = json.loads(body)
        except ValueError:
            logger.warning("Rejected webhook %s: invalid JSON.", delivery_id)
            return JSONResponse({"error": "Invalid JSON"}, status_code=400)

        logger.info("Received webhook: event=%s delivery=%s", event_type, delivery_id)
        if event_type == "ping":
            return JSONResponse({"success": True, "message": "Pong!"})
        if event_type != "workflow_run":
            return JSONResponse(
                {"success": True, "message": f"Event '{event_type}' acknowledged but not processed"}
            )

        try:
            event = WorkflowRunEvent.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Rejected webhook %s: invalid workflow_run payload.", delivery_id)
            return JSONResponse(
                {"error": "Invalid payload", "details": _validation_details(exc)}, status_code=400
            )

        try:
            result = await run_in_threadpool(resolved.handler.handle, event)
        except Exception as exc:
            logger.exception("Failed to process workflow_run delivery %s.", delivery_id)
            return JSONResponse({"error": "Processing failed", "message": str(exc)}, status_code=500)

        return JSONResponse(
            {
                "success": True,
                "processed": result.processed,
                "message": "Workflow run processed by SRE agent"
                if result.processed
                else "Workflow run acknowledged (no action needed)",
            }
        )

    @app.get("/health")
    def health_check() -> dict[str, str]:
        return {"status": "healthy", "timestamp": utc_now_iso(), "version": SERVICE_VERSION}

    @app.get("/status")
    def service_status(request: Request) -> dict[str, str]:
        settings: AppSettings = request.app.state.components.settings
        return {
            "status": "running",
            "environment": settings.environment,
            "model": settings.model,
            "timestamp": utc_now_iso(),
        }

    @app.get("/")
    def index() -> dict[str, Any]:
        return {
            "name": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "endpoints": {"webhook": "POST /webhook", "health": "GET /health", "status": "GET /status"},
        }

    return app


app = create_app()


def run() -> None:
    """Console entry point: start uvicorn on the configured port."""
    import uvicorn

    settings = _settings_or_exit()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(build_components(settings)), host="0.0.0.0", port=settings.port)
