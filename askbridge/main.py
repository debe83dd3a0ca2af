"""
FastAPI application: the askbridge HTTP entry point.

  POST /ask      run one ask cycle (validate → orchestrate → JSON)
  GET  /healthz  liveness + CORS echo

Collaborators are created in the lifespan from ServerConfig and kept on
app.state (one set per app instance, nothing module-global). A background
task purges idle conversations every purge interval.
"""

import asyncio
import json
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime, timezone
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from askbridge import __version__
from askbridge.backends.router import ClientRouter
from askbridge.config import ServerConfig, load_server_config
from askbridge.errors import (
    INTERNAL_ERROR,
    INVALID_REQUEST,
    AskBridgeError,
    InvalidRequestError,
    UnsupportedToolError,
    error_body,
)
from askbridge.models import RejectedRequest, parse_ask_request
from askbridge.orchestrator import AskOrchestrator
from askbridge.prompt_builder import PromptBuilderRegistry
from askbridge.storage.conversation_store import InMemoryConversationStore

logger = logging.getLogger(__name__)


def _setup_logging(config: ServerConfig):
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.log_file:
        Path(config.log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


async def _purge_loop(store: InMemoryConversationStore, ttl_seconds: float, interval_seconds: float):
    """Evict idle conversations until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await store.purge_expired(ttl_seconds)
        except Exception as e:
            logger.warning("Conversation purge failed: %s", e)


def _error_response(error: Exception) -> JSONResponse:
    if isinstance(error, (InvalidRequestError, UnsupportedToolError)):
        return JSONResponse(error_body(error.code, str(error)), status_code=error.status_code)
    message = str(error) or "unexpected error"
    return JSONResponse(error_body(INTERNAL_ERROR, message), status_code=500)


def create_app(
    config: ServerConfig | None = None,
    orchestrator: AskOrchestrator | None = None,
    store: InMemoryConversationStore | None = None,
) -> FastAPI:
    """
    Build the app. Anything not injected is built from config at startup,
    so tests can pass a fake orchestrator and skip the real CLIs.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = config or load_server_config()
        _setup_logging(cfg)

        conv_store = store or InMemoryConversationStore()
        router = None
        orch = orchestrator
        if orch is None:
            router = ClientRouter.from_config(cfg)
            orch = AskOrchestrator(
                chat_service=router,
                prompt_builders=PromptBuilderRegistry(),
                conversations=conv_store,
                max_history=cfg.max_history,
            )

        app.state.config = cfg
        app.state.store = conv_store
        app.state.orchestrator = orch

        purge_task = asyncio.create_task(
            _purge_loop(conv_store, cfg.conversation_ttl_seconds, cfg.purge_interval_seconds)
        )

        logger.info("askbridge %s started on %s:%s", __version__, cfg.host, cfg.port)
        logger.info("Max history: %d messages, TTL: %.0fs", cfg.max_history, cfg.conversation_ttl_seconds)
        if router is not None:
            logger.info(
                "Backends: codex=%s (fallback %s), claude=%s model=%s (fallback %s)",
                cfg.codex_command, "on" if cfg.codex_fallback else "off",
                cfg.claude_command, cfg.claude_model, "on" if cfg.claude_fallback else "off",
            )
            logger.info("Codex MCP servers disabled: %s", ", ".join(cfg.codex_disabled_mcp_servers) or "none")

        yield

        purge_task.cancel()
        with suppress(asyncio.CancelledError):
            await purge_task
        logger.info("askbridge shutting down")

    app = FastAPI(
        title="askbridge",
        description="AI chat backend for design-tool plugins.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With"],
        allow_credentials=False,
        max_age=86400,
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(
            "%s %s origin=%s ua=%s",
            request.method, request.url.path,
            request.headers.get("origin", "null"),
            request.headers.get("user-agent", "unknown"),
        )
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("%s %s failed", request.method, request.url.path)
            raise
        logger.info("%s %s → %d", request.method, request.url.path, response.status_code)
        return response

    @app.post("/ask")
    async def ask(request: Request):
        """Validate once at the edge, then hand a typed request to the orchestrator."""
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return JSONResponse(
                error_body(INVALID_REQUEST, "Failed to parse request body as JSON."),
                status_code=400,
            )

        parsed = parse_ask_request(body)
        if isinstance(parsed, RejectedRequest):
            return _error_response(parsed.error)

        try:
            result = await request.app.state.orchestrator.execute(parsed.request)
        except AskBridgeError as e:
            if e.status_code >= 500:
                logger.error("POST /ask failed: %s", e)
            return _error_response(e)
        except Exception as e:
            logger.exception("POST /ask unexpected error")
            return _error_response(e)

        return JSONResponse(result.to_dict())

    @app.get("/healthz")
    async def healthz(request: Request):
        return JSONResponse({
            "status": "ok",
            "cors": {
                "origin": request.headers.get("origin", "unknown"),
                "allowed": True,
            },
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return app


app = create_app()
