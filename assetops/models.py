"""数据模型定义。

两层：
- 表模型（SQLModel）：Style / StyleImage，记录库的持久化结构
- 领域对象（dataclass）：StyleRecord / ImageAsset / MatchGroup，runner 之间传递

Style 的 images 字段 = 按 display_order 排好的 StyleImage 行。
引擎只负责写 images / tier，其余字段对它只读。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class ImageCategory(str, Enum):
    OVERVIEW = "OVERVIEW"
    DETAIL = "DETAIL"
    MATERIAL = "MATERIAL"
    TEXTURE = "TEXTURE"
    COMPOSITE = "COMPOSITE"
    ANCHOR = "ANCHOR"


class Tier(str, Enum):
    REGULAR = "REGULAR"
    LUXURY = "LUXURY"


class Style(SQLModel, table=True):
    """风格记录。

    字段说明：
    - id: 记录ID（字符串，沿用文档库的 ObjectId）
    - slug: 规范化名称，唯一，用于与文件名匹配
    - name: 展示名称
    - legacy_gallery: 迁移前的画廊（URL 字符串或 {"url": ...} 对象列表）
    - tier: 档位，可为空，迁移时补默认值
    """

    id: str = Field(primary_key=True)
    slug: str = Field(index=True, unique=True)
    name: Optional[str] = None
    legacy_gallery: List[Any] = Field(default_factory=list, sa_column=Column(JSON))
    tier: Optional[Tier] = None


class StyleImage(SQLModel, table=True):
    """风格图片（迁移后的 images 表示）"""

    __tablename__ = "style_image"

    id: Optional[int] = Field(default=None, primary_key=True)
    style_id: str = Field(foreign_key="style.id", index=True)
    url: str
    key: str
    category: Optional[ImageCategory] = None
    display_order: int = 0
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    description: Optional[str] = None


# ---------- 领域对象 ----------
@dataclass
class ImageAsset:
    key: str
    public_url: str
    category: Optional[ImageCategory] = None
    owner_record_id: Optional[str] = None  # None 表示孤儿
    display_order: int = 0
    tags: List[str] = field(default_factory=list)
    description: Optional[str] = None

    @property
    def is_orphan(self) -> bool:
        return self.owner_record_id is None


@dataclass
class StyleRecord:
    id: str
    slug: str
    name: Optional[str] = None
    legacy_gallery: List[Any] = field(default_factory=list)
    images: List[ImageAsset] = field(default_factory=list)
    tier: Optional[Tier] = None

    @property
    def is_migrated(self) -> bool:
        """images 非空即视为已迁移，不再从 legacy_gallery 推导"""
        return bool(self.images)

    @property
    def image_urls(self) -> List[str]:
        return [img.public_url for img in self.images]

    @property
    def label(self) -> str:
        return self.name or self.slug or self.id


@dataclass
class MatchGroup:
    """一次整理运行内的临时分组，不落库。"""

    candidate_name: str
    normalized_name: str
    urls: List[str] = field(default_factory=list)
