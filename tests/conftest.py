"""测试公共夹具：内存记录库 + 内存对象存储"""

from typing import Dict, List, Optional, Set

import pytest
from sqlmodel import Session

from assetops.errors import StoreIOError
from assetops.models import ImageAsset, ImageCategory, Style, StyleImage, Tier
from assetops.records import SqlRecordStore, init_db, make_engine
from assetops.storage import BlobObject

PUBLIC = "https://assets.test"


class FakeBlobStore:
    """按 key 字典序列举，行为与 S3 list_objects_v2 一致"""

    def __init__(self, keys=(), public_base: str = PUBLIC):
        self.public_base = public_base
        self.objects: Set[str] = set(keys)
        self.copies: List[tuple] = []
        self.fail_on: Set[str] = set()

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key.lstrip('/')}"

    def list(self, prefix: str) -> List[BlobObject]:
        return [BlobObject(k, self.public_url(k)) for k in sorted(self.objects) if k.startswith(prefix)]

    def copy(self, source_key: str, dest_key: str, delete_source: bool = False) -> str:
        if source_key in self.fail_on or source_key not in self.objects:
            raise StoreIOError(f"copy failed: {source_key}")
        self.objects.add(dest_key)
        if delete_source:
            self.objects.discard(source_key)
        self.copies.append((source_key, dest_key, delete_source))
        return self.public_url(dest_key)


@pytest.fixture
def engine():
    eng = make_engine("sqlite:///:memory:")
    init_db(eng)
    return eng


@pytest.fixture
def record_store(engine):
    return SqlRecordStore(engine)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def add_style(engine):
    """插入一条风格（可带已有图片 URL）"""

    def _add(style_id: str, slug: Optional[str] = None, gallery=None, tier: Optional[Tier] = None,
             images: Optional[List[str]] = None, name: Optional[str] = None):
        with Session(engine) as sess:
            sess.add(Style(id=style_id, slug=slug or style_id, name=name,
                           legacy_gallery=list(gallery or []), tier=tier))
            for i, url in enumerate(images or []):
                sess.add(StyleImage(style_id=style_id, url=url, key=url.split(PUBLIC + "/")[-1],
                                    category=None, display_order=i))
            sess.commit()

    return _add


def asset(url: str, order: int, owner: str = "s1", category: Optional[ImageCategory] = None) -> ImageAsset:
    return ImageAsset(key=url.split(PUBLIC + "/")[-1], public_url=url, category=category,
                      owner_record_id=owner, display_order=order)


def urls_of(records: Dict[str, object], record_id: str) -> List[str]:
    return [img.public_url for img in records[record_id].images]
