import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.config import Settings
from backend.routes import router
from backend.services import build_services
from backend.speech import SpeechError
from dark_stories.game import GameError
from dark_stories.llm import LLMError

load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger(__name__)


def _fail(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"success": False, "message": message})


def _validation_message(exc: RequestValidationError) -> str:
    """Name the first broken rule the way the client expects it."""
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        if "messages" not in loc:
            continue
        if loc[-1] == "role" and err.get("type") == "literal_error":
            return "Message role must be user, assistant, or system"
        if len(loc) > loc.index("messages") + 1:
            return "Each message must have role and content"
        return "Messages array is required and must not be empty"
    if any(tuple(err.get("loc", ())) == ("body",) for err in exc.errors()):
        return "Messages array is required and must not be empty"
    return "Invalid request body"


def create_app(settings: Settings | None = None, **overrides) -> FastAPI:
    """Build the API. `overrides` (store, llm, speech, rng) replace built collaborators."""
    settings = settings or Settings.from_env()
    logging.getLogger("dark_stories").setLevel(settings.log_level)
    logging.getLogger("backend").setLevel(settings.log_level)

    app = FastAPI(title="Dark Stories")
    app.state.services = build_services(settings, **overrides)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "xi-api-key"],
    )
    app.include_router(router)

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return _fail(400, _validation_message(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return _fail(exc.status_code, str(exc.detail))

    @app.exception_handler(GameError)
    async def game_error(request: Request, exc: GameError):
        logger.error("Turn failed on %s: %s", request.url.path, exc)
        return _fail(500, str(exc))

    @app.exception_handler(LLMError)
    async def llm_error(request: Request, exc: LLMError):
        logger.error("LLM call failed on %s: %s", request.url.path, exc)
        return _fail(502, str(exc))

    @app.exception_handler(SpeechError)
    async def speech_error(request: Request, exc: SpeechError):
        logger.error("Speech call failed on %s: %s", request.url.path, exc)
        return _fail(502, str(exc))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return _fail(500, str(exc) or "Internal server error")

    return app
