"""
建筑图纸商城 API 入口：生命周期、中间件、异常处理、路由挂载与健康检查
"""
import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from archplans.api.routes import api_router
from archplans.core.config import settings
from archplans.core.database import Base, engine
from archplans.core.exceptions import ServiceError
from archplans.core.health import check_db, check_minio, check_redis
from archplans.core.logging import setup_logging
import archplans.models  # noqa: F401  注册全部模型到 Base.metadata

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"
SLOW_REQUEST_SECONDS = 2.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(
        "%s 启动 db=%s cache=%s rate_limit=%s email=%s",
        settings.PROJECT_NAME,
        engine.dialect.name,
        settings.CACHE_ENABLED,
        settings.RATE_LIMIT_ENABLED,
        settings.EMAIL_ENABLED,
    )
    yield
    await engine.dispose()
    logger.info("%s 已停止", settings.PROJECT_NAME)


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="建筑图纸商城API：目录、授权、结算、下载与管理后台",
    version=APP_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def request_context(request: Request, call_next):
    """透传或生成 X-Request-ID；慢请求记警告"""
    rid = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = rid
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Request-ID"] = rid
    if elapsed >= SLOW_REQUEST_SECONDS:
        logger.warning("慢请求 %s %s %.2fs rid=%s", request.method, request.url.path, elapsed, rid)
    return response


def _error_body(request: Request, detail: str) -> dict:
    body = {"detail": detail}
    rid = getattr(request.state, "request_id", None)
    if rid:
        body["request_id"] = rid
    return body


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    """业务异常按类型映射状态码"""
    if exc.status_code >= 500:
        logger.error("外部服务异常 %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=exc.status_code, content=_error_body(request, exc.detail or str(exc)))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, detail),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """422：detail 取第一条错误，errors 给出完整列表"""
    errors = exc.errors()
    body = _error_body(request, errors[0].get("msg", "请求参数校验失败") if errors else "请求参数校验失败")
    body["errors"] = jsonable_encoder(errors)
    return JSONResponse(status_code=422, content=body)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("未处理异常 %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body(request, "服务器内部错误"))


app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    return {
        "message": settings.PROJECT_NAME,
        "version": APP_VERSION,
        "api": settings.API_PREFIX,
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """
    依赖连通状态。数据库不可用返回 503；Redis、MinIO 不可用只标记 degraded，
    此时缓存与限流降级放行，下载链接可能无法生成。
    """
    checks = {
        "database": await check_db(),
        "redis": check_redis(),
        "minio": check_minio(),
    }
    if all(ok for ok, _ in checks.values()):
        overall = "healthy"
    elif checks["database"][0]:
        overall = "degraded"
    else:
        overall = "unhealthy"
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content={
            "status": overall,
            "service": "archplans-api",
            "version": APP_VERSION,
            "dependencies": {name: {"ok": ok, "message": msg} for name, (ok, msg) in checks.items()},
        },
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("archplans.main:app", host="0.0.0.0", port=8000, reload=True)
