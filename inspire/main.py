import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .config import APP_NAME, CORS_ORIGINS, LOG_LEVEL, SECRET_KEY, SEED_DATA
from .generation import QuoteGenerator
from .routes import router
from .storage import MemStorage
from .utils import json_error

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
}


def _field_name(loc) -> str:
    parts = [str(p) for p in loc if p not in ("body", "query", "path")]
    return ".".join(parts) or "body"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        response = json_error(ERROR_CODES.get(exc.status_code, "error"), str(exc.detail), exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        fields = [{"field": _field_name(err.get("loc", ())), "message": err.get("msg", "")} for err in exc.errors()]
        return json_error("validation_error", "Validation error", status.HTTP_400_BAD_REQUEST, fields=fields)

    @app.exception_handler(Exception)
    async def internal_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return json_error("internal_error", "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def create_app(
    storage: Optional[MemStorage] = None,
    generator: Optional[QuoteGenerator] = None,
    seed: bool = SEED_DATA,
    secret_key: str = SECRET_KEY,
) -> FastAPI:
    app = FastAPI(title=APP_NAME, version=__version__)
    app.add_middleware(SessionMiddleware, secret_key=secret_key, https_only=False)
    if CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=CORS_ORIGINS,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.storage = storage if storage is not None else MemStorage(seed=seed)
    app.state.generator = generator if generator is not None else QuoteGenerator(app.state.storage)

    @app.middleware("http")
    async def add_default_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        return response

    @app.on_event("shutdown")
    async def close_provider_clients():
        await app.state.generator.aclose()

    install_error_handlers(app)
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    logger.info(
        "%s started (%d quotes, provider %s)",
        APP_NAME,
        len(app.state.storage.quotes),
        "configured" if app.state.generator.api_key else "not configured",
    )
    return app


app = create_app()
