"""对象存储适配层（Cloudflare R2，S3 兼容，走 boto3）。

引擎只依赖 BlobStore 协议的三个能力：list / copy / public_url。
每次调用本身视为原子，但多次调用之间没有事务：
copy 成功而随后记录库更新失败时，会留下已复制但未关联的对象，
下一次 recovery / reorganize 会把它重新发现出来。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import SetupError, StoreIOError
from .settings import StorageSettings, get_storage_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlobObject:
    key: str
    url: str


class BlobStore(Protocol):
    def list(self, prefix: str) -> List[BlobObject]: ...

    def copy(self, source_key: str, dest_key: str, delete_source: bool = False) -> str: ...

    def public_url(self, key: str) -> str: ...


def key_from_url(url: str, public_base: Optional[str] = None) -> str:
    """从公开 URL 还原 key；解析失败时认为传入的就是 key。"""
    if public_base and url.startswith(public_base.rstrip("/") + "/"):
        return url[len(public_base.rstrip("/")) + 1:]
    parsed = urlparse(url)
    if not parsed.scheme:
        return url.lstrip("/")
    return parsed.path.lstrip("/")


def filename_of(key_or_url: str) -> str:
    return key_or_url.rstrip("/").rsplit("/", 1)[-1]


class R2BlobStore:
    """基于 boto3 S3 客户端的 R2 实现"""

    def __init__(self, client, bucket: str, public_base: str):
        self.client = client
        self.bucket = bucket
        self.public_base = public_base.rstrip("/")

    @classmethod
    def from_settings(cls, settings: Optional[StorageSettings] = None) -> "R2BlobStore":
        settings = settings or get_storage_settings()
        if not settings.has_credentials:
            raise SetupError("R2 凭证未配置（R2_ACCOUNT_ID / R2_ACCESS_KEY_ID / R2_SECRET_ACCESS_KEY）")
        client = boto3.client(
            "s3",
            endpoint_url=settings.get_endpoint_url(),
            aws_access_key_id=settings.access_key_id,
            aws_secret_access_key=settings.secret_access_key,
            region_name="auto",
        )
        return cls(client, settings.bucket_name, settings.public_url)

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key.lstrip('/')}"

    def list(self, prefix: str) -> List[BlobObject]:
        out: List[BlobObject] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for obj in page.get("Contents", []) or []:
                    key = obj["Key"]
                    if key.endswith("/"):
                        continue  # 目录占位对象
                    out.append(BlobObject(key=key, url=self.public_url(key)))
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"列举 {prefix} 失败: {e}") from e
        logger.debug(f"列举 {prefix}: {len(out)} 个对象")
        return out

    def copy(self, source_key: str, dest_key: str, delete_source: bool = False) -> str:
        try:
            self.client.copy_object(
                Bucket=self.bucket,
                Key=dest_key,
                CopySource={"Bucket": self.bucket, "Key": source_key},
            )
            if delete_source:
                self.client.delete_object(Bucket=self.bucket, Key=source_key)
        except (ClientError, BotoCoreError) as e:
            raise StoreIOError(f"复制 {source_key} → {dest_key} 失败: {e}") from e
        return self.public_url(dest_key)


def build_blob_store(settings: Optional[StorageSettings] = None) -> R2BlobStore:
    """按配置创建对象存储；凭证缺失抛 SetupError。"""
    return R2BlobStore.from_settings(settings)
