import logging
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError

from .chat import ChatPipeline, get_chat_pipeline
from .errors import ConfigurationError, RelayTransportError, ReplyUnavailableError
from .models import ChatRequest, RelayRequest
from .services.keep_alive import start_keep_alive, stop_keep_alive
from .services.llm import close_model_client
from .services.relay import RelayForwarder, close_relay_forwarder, get_relay_forwarder
from .settings import get_settings


def setup_server_logging() -> logging.Logger:
    """Configure and return the server logger."""
    logs_dir = Path("logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("guruspeaks")
    if logger.handlers:
        return logging.getLogger("guruspeaks.server")

    logger.setLevel(get_settings().log_level)
    fmt = logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s")

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    fh = RotatingFileHandler(logs_dir / "server.log", maxBytes=5_000_000, backupCount=3)
    fh.setFormatter(fmt)
    logger.addHandler(fh)

    return logging.getLogger("guruspeaks.server")


def _cors_origins_list(origins: str) -> list[str]:
    """Parse CORS_ORIGINS into a list."""
    if not origins or origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in origins.split(",") if o.strip()]


def resolve_session_id(payload: ChatRequest, request: Request) -> str:
    """Explicit sessionId, else the caller's address, else "default"."""
    if payload.session_id:
        return payload.session_id
    if request.client is not None and request.client.host:
        return request.client.host
    return "default"


async def _json_object(request: Request) -> Dict[str, Any] | None:
    """Return the request body as a JSON object, or None if it is not one."""
    try:
        raw = await request.json()
    except ValueError:
        return None
    return raw if isinstance(raw, dict) else None


LOGGER = setup_server_logging()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Check credentials and the persona payload, start the keep-alive task; close outbound clients on shutdown."""
    missing = settings.missing_credentials()
    if missing:
        LOGGER.error("Missing required configuration: %s", ", ".join(missing))
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    try:
        settings.load_persona()
    except (OSError, UnicodeDecodeError) as e:
        LOGGER.error("Persona prompt unreadable at %s: %s", settings.persona_prompt_path, e)
        raise ConfigurationError(f"Persona prompt unreadable: {settings.persona_prompt_path}") from e

    keep_alive = start_keep_alive(settings.keep_alive_url, settings.keep_alive_interval_seconds)
    LOGGER.info("The Guru Speaks server ready")

    yield

    LOGGER.info("Shutting down...")
    await stop_keep_alive(keep_alive)
    await close_relay_forwarder()
    await close_model_client()


app = FastAPI(
    title="The Guru Speaks",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.static_dir.is_dir():
    app.mount("/static", StaticFiles(directory=settings.static_dir), name="static")


@app.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "The Guru Speaks: Prototype server is running."


@app.get("/health", response_class=PlainTextResponse)
async def health() -> str:
    """Liveness probe for the hosting platform."""
    return "OK"


@app.get("/ping")
async def ping() -> Dict[str, Any]:
    return {"ok": True, "message": "Server responding fine"}


@app.post("/chat")
async def chat(
    request: Request,
    pipeline: ChatPipeline = Depends(get_chat_pipeline),
) -> JSONResponse:
    """Run one conversation turn.

    Expected Input (JSON):
        {
            "message": str - user message (required),
            "sessionId": str - optional session identifier,
            "userName": str - optional display name
        }

    Returns:
        {"reply": str} on success, {"error": str} with 400 or 500 otherwise.
    """
    raw = await _json_object(request)
    try:
        payload = ChatRequest.model_validate(raw) if raw is not None else None
    except ValidationError as e:
        LOGGER.info("Invalid chat payload: %s", e.error_count())
        payload = None
    if payload is None or not payload.message:
        return JSONResponse(status_code=400, content={"error": "No message received."})

    session_id = resolve_session_id(payload, request)
    LOGGER.info("Chat turn session_id=%s user_name=%s", session_id, payload.user_name)

    try:
        result = await pipeline.run_turn(session_id, payload.message)
    except ReplyUnavailableError:
        return JSONResponse(status_code=500, content={"error": settings.reply_unavailable_message})
    return JSONResponse(content={"reply": result.reply})


@app.post("/supabase")
async def supabase_relay(
    request: Request,
    forwarder: RelayForwarder = Depends(get_relay_forwarder),
) -> JSONResponse:
    """Forward {url, method, body} to the backend API with server-held credentials."""
    raw = await _json_object(request)
    try:
        payload = RelayRequest.model_validate(raw) if raw is not None else None
    except ValidationError as e:
        LOGGER.info("Invalid relay payload: %s", e.error_count())
        payload = None
    if payload is None or not payload.url:
        return JSONResponse(status_code=400, content={"error": "No relay url received."})

    try:
        result = await forwarder.relay(payload.url, method=payload.method, body=payload.body)
    except ValueError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except RelayTransportError:
        return JSONResponse(status_code=500, content={"error": "Supabase relay failed"})
    return JSONResponse(status_code=result.status_code, content=result.payload)
