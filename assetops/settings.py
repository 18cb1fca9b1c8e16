"""配置管理模块 - 使用Pydantic进行配置验证和管理"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """对象存储（Cloudflare R2，S3 兼容）配置类"""

    model_config = SettingsConfigDict(
        env_prefix="R2_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    account_id: Optional[str] = Field(default=None, description="R2 账户ID")
    access_key_id: Optional[str] = Field(default=None, description="访问密钥ID")
    secret_access_key: Optional[str] = Field(default=None, description="访问密钥")
    bucket_name: str = Field(default="moodb-assets", description="存储桶名称")
    public_url: str = Field(default="https://assets.moodb.com", description="公开访问域名")
    endpoint_url: Optional[str] = Field(default=None, description="自定义 S3 端点（默认由账户ID推导）")

    @field_validator("public_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """公开域名去掉结尾的 /，拼 key 时统一加"""
        return v.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key_id and self.secret_access_key and (self.account_id or self.endpoint_url))

    def get_endpoint_url(self) -> str:
        """获取 S3 端点"""
        if self.endpoint_url:
            return self.endpoint_url
        return f"https://{self.account_id}.r2.cloudflarestorage.com"


class EngineSettings(BaseSettings):
    """引擎运行配置类"""

    model_config = SettingsConfigDict(
        env_prefix="ASSETOPS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    database_url: str = Field(default="sqlite:///./data/assets.db", description="记录库连接串")
    log_level: str = Field(default="INFO", description="日志级别")
    concurrency: int = Field(default=1, description="并发处理的记录数（1 为顺序执行）")
    reports_dir: Path = Field(default=Path("./data/reports"), description="运行报告目录")

    @field_validator("concurrency")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """验证并发度"""
        if v < 1 or v > 32:
            raise ValueError("并发度必须在1到32之间")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"未知日志级别: {v}")
        return v

    def get_database_url(self) -> str:
        """获取数据库URL"""
        if self.database_url.startswith("sqlite:///") and ":memory:" not in self.database_url:
            # 确保SQLite数据库目录存在
            db_path = Path(self.database_url.replace("sqlite:///", ""))
            db_path.parent.mkdir(parents=True, exist_ok=True)
        return self.database_url


# 全局配置实例
storage_settings = StorageSettings()
engine_settings = EngineSettings()


def get_storage_settings() -> StorageSettings:
    """获取存储配置"""
    return storage_settings


def get_engine_settings() -> EngineSettings:
    """获取引擎配置"""
    return engine_settings


def reload_settings():
    """重新加载配置"""
    global storage_settings, engine_settings
    storage_settings = StorageSettings()
    engine_settings = EngineSettings()
