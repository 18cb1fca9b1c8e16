"""记录库适配层（SQLModel）。

更新都是整字段替换而不是元素级补丁：调用方必须先读出完整列表、
修改后整体写回。引擎按约定离线运行，不加锁。
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Protocol, Sequence

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from .errors import NotFoundError, StoreIOError
from .models import ImageAsset, Style, StyleImage, StyleRecord, Tier
from .settings import EngineSettings, get_engine_settings

logger = logging.getLogger(__name__)


class RecordStore(Protocol):
    def find_many(
        self,
        ids: Optional[Sequence[str]] = None,
        has_images: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[StyleRecord]: ...

    def update_images(self, record_id: str, images: List[ImageAsset]) -> None: ...

    def update_tier(self, record_id: str, tier: Tier) -> None: ...


def make_engine(database_url: str):
    """创建引擎；内存 SQLite 用 StaticPool 保证多会话共享同一个库"""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)
    return create_engine(database_url, echo=False, pool_pre_ping=True)


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)


def _to_asset(row: StyleImage) -> ImageAsset:
    return ImageAsset(
        key=row.key,
        public_url=row.url,
        category=row.category,
        owner_record_id=row.style_id,
        display_order=row.display_order,
        tags=list(row.tags or []),
        description=row.description,
    )


def _to_record(style: Style, rows: Iterable[StyleImage]) -> StyleRecord:
    return StyleRecord(
        id=style.id,
        slug=style.slug,
        name=style.name,
        legacy_gallery=list(style.legacy_gallery or []),
        images=[_to_asset(r) for r in rows],
        tier=style.tier,
    )


class SqlRecordStore:
    """每次调用开一个 Session，可在线程间共享"""

    def __init__(self, engine):
        self.engine = engine

    @classmethod
    def from_settings(cls, settings: Optional[EngineSettings] = None) -> "SqlRecordStore":
        settings = settings or get_engine_settings()
        engine = make_engine(settings.get_database_url())
        init_db(engine)
        return cls(engine)

    def _images_of(self, sess: Session, style_ids: Sequence[str]) -> dict:
        by_style: dict = {sid: [] for sid in style_ids}
        if not style_ids:
            return by_style
        rows = sess.exec(
            select(StyleImage)
            .where(StyleImage.style_id.in_(list(style_ids)))
            .order_by(StyleImage.style_id, StyleImage.display_order, StyleImage.id)
        ).all()
        for r in rows:
            by_style.setdefault(r.style_id, []).append(r)
        return by_style

    def find_many(
        self,
        ids: Optional[Sequence[str]] = None,
        has_images: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> List[StyleRecord]:
        try:
            with Session(self.engine) as sess:
                q = select(Style).order_by(Style.id)
                if ids:
                    q = q.where(Style.id.in_(list(ids)))
                if has_images is not None:
                    with_images = select(StyleImage.style_id).distinct()
                    q = q.where(Style.id.in_(with_images) if has_images else Style.id.not_in(with_images))
                if limit:
                    q = q.limit(limit)
                styles = sess.exec(q).all()
                images = self._images_of(sess, [s.id for s in styles])
                return [_to_record(s, images.get(s.id, [])) for s in styles]
        except SQLAlchemyError as e:
            raise StoreIOError(f"查询风格记录失败: {e}") from e

    def find_one(self, record_id: str) -> StyleRecord:
        found = self.find_many(ids=[record_id])
        if not found:
            raise NotFoundError(f"风格 {record_id} 不存在")
        return found[0]

    def update_images(self, record_id: str, images: List[ImageAsset]) -> None:
        """整体替换某风格的 images 列表（单事务）"""
        try:
            with Session(self.engine) as sess:
                if sess.get(Style, record_id) is None:
                    raise NotFoundError(f"风格 {record_id} 不存在")
                sess.exec(delete(StyleImage).where(StyleImage.style_id == record_id))
                for img in images:
                    sess.add(StyleImage(
                        style_id=record_id,
                        url=img.public_url,
                        key=img.key,
                        category=img.category,
                        display_order=img.display_order,
                        tags=list(img.tags or []),
                        description=img.description,
                    ))
                sess.commit()
        except SQLAlchemyError as e:
            raise StoreIOError(f"更新风格 {record_id} 的图片失败: {e}") from e

    def update_tier(self, record_id: str, tier: Tier) -> None:
        try:
            with Session(self.engine) as sess:
                style = sess.get(Style, record_id)
                if style is None:
                    raise NotFoundError(f"风格 {record_id} 不存在")
                style.tier = tier
                sess.add(style)
                sess.commit()
        except SQLAlchemyError as e:
            raise StoreIOError(f"更新风格 {record_id} 的档位失败: {e}") from e


def build_record_store(settings: Optional[EngineSettings] = None) -> SqlRecordStore:
    return SqlRecordStore.from_settings(settings)
