import logging

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from access_backend import __version__
from access_backend.core.conf import settings
from access_backend.database.db import async_engine, create_tables
from access_backend.src.lifecycle.shared.exceptions import LifecycleError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def register_init(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    启动初始化

    :param app: FastAPI 应用实例
    :return:
    """
    if settings.DATABASE_AUTO_CREATE:
        # 创建数据库表
        await create_tables()
        logger.info('[APP] Database tables ensured')

    yield

    # 释放数据库连接
    await async_engine.dispose()


def register_app() -> FastAPI:
    """注册 FastAPI 应用"""
    app = FastAPI(
        title=settings.FASTAPI_TITLE,
        version=__version__,
        description=settings.FASTAPI_DESCRIPTION,
        docs_url=settings.FASTAPI_DOCS_URL,
        redoc_url=settings.FASTAPI_REDOC_URL,
        openapi_url=settings.FASTAPI_OPENAPI_URL,
        lifespan=register_init,
    )

    # 注册组件
    register_logger()
    register_middleware(app)
    register_router(app)
    register_exception(app)

    return app


def register_logger() -> None:
    """注册日志"""
    logging.basicConfig(level=settings.LOG_STD_LEVEL, format=settings.LOG_FORMAT)


def register_middleware(app: FastAPI) -> None:
    """
    注册中间件（执行顺序从下往上）

    :param app: FastAPI 应用实例
    :return:
    """
    # CORS 中间件（必须放在最后，也会应答预检 OPTIONS 请求）
    if settings.MIDDLEWARE_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=['*'],
            allow_headers=['*'],
        )


def register_router(app: FastAPI) -> None:
    """
    注册路由

    :param app: FastAPI 应用实例
    :return:
    """
    from access_backend.app.router import router

    app.include_router(router)


def register_exception(app: FastAPI) -> None:
    """
    注册全局异常处理

    :param app: FastAPI 应用实例
    :return:
    """

    @app.exception_handler(LifecycleError)
    async def lifecycle_exception_handler(request: Request, exc: LifecycleError) -> JSONResponse:
        logger.info(f'[APP] {request.method} {request.url.path} -> {exc.status_code} {exc.code}')
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
