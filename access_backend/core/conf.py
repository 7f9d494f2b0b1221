from functools import lru_cache
from typing import Any, Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from access_backend.core.path_conf import BASE_PATH


class Settings(BaseSettings):
    """全局配置"""

    model_config = SettingsConfigDict(
        env_file=f'{BASE_PATH}/.env',
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=True,
    )

    # .env 当前环境
    ENVIRONMENT: Literal['dev', 'prod'] = 'dev'

    # FastAPI
    FASTAPI_API_V1_PATH: str = '/api/v1'
    FASTAPI_TITLE: str = 'AccessLifecycleBackend'
    FASTAPI_DESCRIPTION: str = 'Access & lifecycle orchestration for Axie Studio'
    FASTAPI_DOCS_URL: str = '/docs'
    FASTAPI_REDOC_URL: str = '/redoc'
    FASTAPI_OPENAPI_URL: str | None = '/openapi'

    # .env 数据库
    DATABASE_TYPE: Literal['postgresql', 'sqlite'] = 'postgresql'
    DATABASE_HOST: str = '127.0.0.1'
    DATABASE_PORT: int = 5432
    DATABASE_USER: str = 'postgres'
    DATABASE_PASSWORD: str = ''

    # 数据库
    DATABASE_ECHO: bool | Literal['debug'] = False
    DATABASE_POOL_ECHO: bool | Literal['debug'] = False
    # PostgreSQL database name, or the file path (':memory:' allowed) for SQLite
    DATABASE_SCHEMA: str = 'access_backend'
    DATABASE_AUTO_CREATE: bool = True

    # .env Token
    TOKEN_SECRET_KEY: str = ''  # 密钥 secrets.token_urlsafe(32)

    # Token
    TOKEN_ALGORITHM: str = 'HS256'
    TOKEN_AUDIENCE: str | None = None  # e.g. 'authenticated' for Supabase-issued tokens

    # .env Stripe
    STRIPE_SECRET_KEY: str = ''
    STRIPE_WEBHOOK_SECRET: str = ''

    # Stripe
    STRIPE_WEBHOOK_TOLERANCE: int = 300  # 5 分钟
    STRIPE_TEAM_PRICE_IDS: list[str] = [
        'price_1RwP9cBacFXEnBmNsM3xVLL2',
        'price_1RwOhVBacFXEnBmNIeWQ1wQe',
    ]

    # .env Axie Studio (workspace product)
    AXIESTUDIO_APP_URL: str = ''
    AXIESTUDIO_USERNAME: str = ''
    AXIESTUDIO_PASSWORD: str = ''

    # Axie Studio
    AXIESTUDIO_TIMEOUT_SECONDS: float = 30.0
    AXIESTUDIO_API_KEY_NAME: str = 'access-backend'

    # 访问控制
    ADMIN_USER_IDS: list[str] = []  # The protected super admin is always included

    # .env Cron
    CRON_SECRET: str = ''  # Shared secret for the external scheduler (x-cron-secret)

    # CORS
    CORS_ALLOWED_ORIGINS: list[str] = [  # 末尾不带斜杠
        'http://127.0.0.1:8000',
        'http://localhost:5173',
    ]

    # 中间件配置
    MIDDLEWARE_CORS: bool = True

    # 日志（控制台）
    LOG_STD_LEVEL: str = 'INFO'
    LOG_FORMAT: str = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'

    @model_validator(mode='before')
    @classmethod
    def check_env(cls, values: Any) -> Any:
        """检查环境变量"""
        if values.get('ENVIRONMENT') == 'prod':
            # FastAPI
            values['FASTAPI_OPENAPI_URL'] = None

        return values


@lru_cache
def get_settings() -> Settings:
    """获取全局配置单例"""
    return Settings()


# 创建全局配置实例
settings = get_settings()
