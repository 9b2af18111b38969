"""
应用配置：从环境变量读取配置
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """应用配置类"""

    # 项目根目录
    PROJECT_ROOT: Path = Path(__file__).parent.parent.parent

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT.parent / ".env"),  # 从项目根目录读取 .env
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # API配置
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Pulse Architects Plan Store"
    CORS_ORIGINS: List[str] = ["*"]  # CORS允许的源
    SITE_URL: str = "http://localhost:3000"  # 支付成功/取消跳转、邮件链接的站点地址

    # 数据库配置（生产环境使用 postgresql+asyncpg://...）
    DATABASE_URL: str = "sqlite+aiosqlite:///./archplans.db"
    DATABASE_ECHO: bool = False

    # Redis配置
    REDIS_URL: str = "redis://localhost:6379/0"

    # 缓存配置（使用同一 Redis，key 前缀区分）
    CACHE_ENABLED: bool = True
    CACHE_KEY_PREFIX: str = "cache:"
    CACHE_TTL_STATS: int = 60          # 管理后台统计 60 秒
    CACHE_TTL_LIST: int = 60           # 目录列表 60 秒
    CACHE_TTL_DETAIL: int = 60         # 单条详情 60 秒

    # Celery配置（不填则与 REDIS_URL 一致）
    CELERY_BROKER_URL: str = ""
    CELERY_RESULT_BACKEND: str = ""

    # MinIO配置：图纸文件、图库图片
    MINIO_ENDPOINT: str = "localhost:9000"
    MINIO_ACCESS_KEY: str = "minioadmin"
    MINIO_SECRET_KEY: str = "minioadmin"
    MINIO_SECURE: bool = False
    MINIO_BUCKET_NAME: str = "plan-assets"
    MINIO_REGION: str = "us-east-1"  # 指定后生成预签名链接无需查询桶位置
    MINIO_PUBLIC_URL: str = ""  # 对外访问前缀，为空时用 http(s)://MINIO_ENDPOINT
    DOWNLOAD_URL_EXPIRE_SECONDS: int = 900  # 预签名下载链接有效期

    # 安全配置
    JWT_SECRET_KEY: str = "your-jwt-secret-key-change-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    SESSION_REFRESH_INTERVAL_SECONDS: int = 840  # 客户端主动刷新间隔（14 分钟）

    # 支付配置（Stripe Checkout 托管支付页）
    STRIPE_SECRET_KEY: str = ""
    STRIPE_PUBLISHABLE_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    CURRENCY: str = "usd"

    # 邮件配置（关闭时只记日志）
    EMAIL_ENABLED: bool = False
    SMTP_SERVER: str = "localhost"
    SMTP_PORT: int = 465
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = "Pulse Architects <noreply@pulse-architects.com>"
    ADMIN_NOTIFY_EMAIL: str = ""

    # 文件上传配置
    MAX_UPLOAD_SIZE: int = 52428800  # 50MB
    ALLOWED_IMAGE_TYPES: str = "jpg,jpeg,png,webp"
    ALLOWED_PLAN_FILE_TYPES: str = "pdf,dwg,dxf,zip,jpg,jpeg,png"

    @property
    def allowed_image_types_list(self) -> List[str]:
        """允许上传的图库图片类型"""
        return [x.strip().lower() for x in self.ALLOWED_IMAGE_TYPES.split(",") if x.strip()]

    @property
    def allowed_plan_file_types_list(self) -> List[str]:
        """允许上传的图纸文件类型"""
        return [x.strip().lower() for x in self.ALLOWED_PLAN_FILE_TYPES.split(",") if x.strip()]

    # 日志配置
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Path = PROJECT_ROOT / "logs" / "app.log"

    # 限流（按用户，匿名按 IP）
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_CHECKOUT_PER_HOUR: int = 20
    RATE_LIMIT_DOWNLOAD_PER_HOUR: int = 100
    RATE_LIMIT_LOGIN_PER_MINUTE: int = 10

    # 操作审计
    AUDIT_LOG_ENABLED: bool = True


# 创建全局配置实例
settings = Settings()
