import logging
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root wherever uvicorn is started from
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from xenostore.admin import admin_router
from xenostore.api.coupons import router as coupons_router
from xenostore.api.orders import router as orders_router
from xenostore.core.config import cors_origins_list, settings
from xenostore.core.database import database_ok, init_db
from xenostore.core.rate_limit import limiter
from xenostore.logging import setup_logging
from xenostore.services.errors import CouponError, StorageUnavailable

setup_logging(level=settings.log_level, sql_echo=settings.log_sql)
log = logging.getLogger("xenostore")


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info(
        "XenoStore API started: environment=%s admin=%s",
        settings.environment,
        "configured" if settings.admin_secret else "NOT configured (set ADMIN_SECRET)",
    )
    yield


app = FastAPI(
    title="XenoStore API",
    description="Gaming top-up storefront: coupons, orders, finance",
    lifespan=lifespan,
)
app.state.limiter = limiter


def _error_response(request: Request, status_code: int, detail: str) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("rate limit exceeded: path=%s detail=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute and try again.")


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = list(first.get("loc") or [])
    field = str(loc[-1]) if len(loc) > 0 else None
    if first.get("type") == "missing":
        if field == "code":
            return "Please enter a coupon code."
        if field == "user_id":
            return "Please sign in to use a coupon."
        if field == "cart_total":
            return "Cart total is missing."
        return f"Missing field: {field}" if field else "Invalid request."
    msg = first.get("msg") or "Invalid request."
    return f"{field}: {msg}" if field and field != "body" else msg


def jsonable_errors(errs) -> list[dict]:
    # ctx may hold exception instances (e.g. ValueError from validators)
    return [{k: (str(v) if k == "ctx" else v) for k, v in e.items() if k != "input"} for e in errs]


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning(
        "Request validation error (422): path=%s method=%s detail=%s",
        request.url.path,
        request.method,
        errs,
    )
    rid = getattr(request.state, "request_id", None)
    body = {"error": _validation_error_message(exc), "status_code": 422, "detail": jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(HTTPException)
def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return _error_response(request, exc.status_code, exc.detail if isinstance(exc.detail, str) else str(exc.detail))


@app.exception_handler(CouponError)
def coupon_error_handler(request: Request, exc: CouponError) -> JSONResponse:
    """Coupon does not apply: structured body the checkout renders as-is."""
    log.info("coupon rejected: path=%s error_type=%s", request.url.path, exc.error_type)
    body = exc.to_dict()
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(StorageUnavailable)
def storage_error_handler(request: Request, exc: StorageUnavailable) -> JSONResponse:
    log.error("storage unavailable: path=%s error_type=%s", request.url.path, exc.error_type)
    body = exc.to_dict()
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"error": "Unexpected server error."})


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(coupons_router)
app.include_router(orders_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok", "database": "ok" if database_ok() else "error"}


@app.get("/")
def index():
    return {"status": "ready", "service": "xenostore-api", "store": settings.store_name}
