"""对账：某风格在对象存储里的对象 vs. 记录上登记的图片 URL（只读，不做修改）。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from .models import StyleRecord
from .storage import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileDiff:
    record_id: str
    listed: List[str] = field(default_factory=list)
    missing_from_record: List[str] = field(default_factory=list)
    recorded_but_absent: List[str] = field(default_factory=list)
    room_images: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def room_image_count(self) -> int:
        return sum(len(v) for v in self.room_images.values())


class Reconciler:
    """
    对比“对象存储里某风格命名空间下的对象”和“记录上登记的 URL”。
    - 命名空间：{styles_prefix}/{record_id}/
    - 主图：命名空间下直接的对象；房型图：{namespace}{rooms_dir}/{房型}/ 下的对象
    - missing_from_record：主图里记录没有的 URL（保持列举顺序）
    - recorded_but_absent：记录里指向本命名空间、但存储里找不到的 URL
    只按 URL 字符串做集合比较，不做其它去重。
    """

    def __init__(self, blob_store: BlobStore, styles_prefix: str = "styles", rooms_dir: str = "rooms"):
        self.blob_store = blob_store
        self.styles_prefix = styles_prefix.strip("/")
        self.rooms_dir = rooms_dir.strip("/")

    def namespace(self, record_id: str) -> str:
        return f"{self.styles_prefix}/{record_id}/"

    def diff(self, record: StyleRecord) -> ReconcileDiff:
        ns = self.namespace(record.id)
        rooms_ns = f"{ns}{self.rooms_dir}/"
        out = ReconcileDiff(record_id=record.id)

        for obj in self.blob_store.list(ns):
            rest = obj.key[len(ns):]
            if obj.key.startswith(rooms_ns):
                room_type = obj.key[len(rooms_ns):].split("/", 1)[0]
                out.room_images.setdefault(room_type, []).append(obj.url)
            elif "/" not in rest:
                out.listed.append(obj.url)
            # 其它更深的子目录不属于本引擎的职责范围

        recorded = set(record.image_urls)
        listed = set(out.listed)
        out.missing_from_record = [u for u in out.listed if u not in recorded]

        ns_url = self.blob_store.public_url(ns)
        out.recorded_but_absent = [
            u for u in record.image_urls
            if u.startswith(ns_url) and "/" not in u[len(ns_url):] and u not in listed
        ]
        logger.debug(
            f"{record.id}: 存储 {len(out.listed)}，记录 {len(recorded)}，"
            f"缺失 {len(out.missing_from_record)}，失效 {len(out.recorded_but_absent)}"
        )
        return out
