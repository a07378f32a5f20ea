"""FastAPI application entry point"""
import logging
import uuid
from pathlib import Path
import tomllib

from fastapi import FastAPI, HTTPException, Request
from fastapi.exception_handlers import (
    http_exception_handler as fastapi_http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .database import store
from .api import moods_router
from .api.moods import repository
from .utils.errors import exception_summary

logger = logging.getLogger(__name__)

# 默认降低 SQLAlchemy 的日志噪声；排查 SQL 时再用 SQL_ECHO=true 打开
if not settings.sql_echo:
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)


def _read_app_version() -> str:
    """尽量从仓库根目录的 pyproject.toml 读取版本，避免多处硬编码导致不一致。"""
    try:
        repo_root = Path(__file__).resolve().parents[2]
        pyproject = repo_root / "pyproject.toml"
        if not pyproject.exists():
            return "1.0.0"
        data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        version = ((data.get("project") or {}).get("version") or "").strip()
        return version or "1.0.0"
    except (OSError, tomllib.TOMLDecodeError):
        return "1.0.0"


APP_VERSION = _read_app_version()

app = FastAPI(
    title="Daily Mood Tracker API",
    description="One emoji and an optional note per day, stored in an encrypted SQLite database",
    version=APP_VERSION,
)


# CORS middleware
def _split_csv(value: str) -> list[str]:
    return [v.strip() for v in (value or "").split(",") if v.strip()]


cors_origins = _split_csv(settings.cors_allow_origins)
if not cors_origins or cors_origins == ["*"]:
    cors_origins = ["*"]
    cors_allow_credentials = False
else:
    cors_allow_credentials = bool(settings.cors_allow_credentials)

cors_methods = _split_csv(settings.cors_allow_methods)
if not cors_methods or cors_methods == ["*"]:
    cors_methods = ["*"]

cors_headers = _split_csv(settings.cors_allow_headers)
if not cors_headers or cors_headers == ["*"]:
    cors_headers = ["*"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_allow_credentials,
    allow_methods=cors_methods,
    allow_headers=cors_headers,
)


def _normalize_request_id(value: str | None) -> str | None:
    """对外部传入的 request id 做一次简单归一化，避免日志注入/过长字符串。"""
    if not value or not isinstance(value, str):
        return None
    s = value.strip()
    if not s or len(s) > 64:
        return None
    if any(ord(ch) < 32 for ch in s):
        return None
    return s


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """为每个请求生成/透传 X-Request-Id，并写入响应头。

    当发生异常时，会由 exception handler 补齐响应头（中间件拿不到 response）。
    """
    incoming = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")
    rid = _normalize_request_id(incoming) or uuid.uuid4().hex
    request.state.request_id = rid

    response = await call_next(request)
    response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler_with_request_id(request: Request, exc: HTTPException):
    response = await fastapi_http_exception_handler(request, exc)
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler_with_request_id(request: Request, exc: RequestValidationError):
    response = await request_validation_exception_handler(request, exc)
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        response.headers["X-Request-Id"] = rid
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = getattr(getattr(request, "state", None), "request_id", None)
    logger.exception("[UNHANDLED] request_id=%s", rid or "-")

    # 对外默认不泄露内部异常细节；debug 时给一个可读摘要便于定位
    detail = "INTERNAL_ERROR"
    if settings.debug:
        detail = exception_summary(exc, max_len=200)

    payload: dict[str, object] = {"detail": detail}
    if rid:
        payload["request_id"] = rid

    headers = {"X-Request-Id": rid} if rid else None
    return JSONResponse(payload, status_code=500, headers=headers)


# Register API routers
app.include_router(moods_router, prefix=settings.api_prefix)


@app.on_event("startup")
async def startup_event():
    """Open the store and make sure the schema exists"""
    await store.connect()
    await store.initialize_schema()
    logger.info("[STARTUP] Mood store ready (encryption=%s)", store.encryption_enabled)


@app.on_event("shutdown")
async def shutdown_event():
    """Close the store on shutdown"""
    await store.close()


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Daily Mood Tracker API", "version": APP_VERSION}


@app.get("/health")
async def health_check():
    """Health check endpoint（包含 DB 可用性与加密状态）。"""
    health = await repository.health_check()
    if health.get("status") != "healthy":
        logger.error("[HEALTH] Database check failed: %s", health.get("error"))
        raise HTTPException(status_code=503, detail="DB_UNAVAILABLE")

    return {"status": "healthy", "db": "ok", "encryption": health.get("encryption")}
