"""运行报告。

每个 runner 对每个条目产出一个 ItemOutcome，RunReport 按输入顺序累加。
报告只打印 / 写 JSON 文件，不写回数据库；errors 为空时退出码为 0。
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List

from .errors import ErrorKind, classify_exception

logger = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class ItemError:
    item_id: str
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(cls, item_id: str, exc: BaseException) -> "ItemError":
        return cls(item_id=item_id, kind=classify_exception(exc), message=str(exc) or exc.__class__.__name__)


@dataclass
class UnsupportedItem:
    """引擎明确不处理的条目（例如房型图片），只上报不写入"""

    item_id: str
    detail: str
    count: int
    reason: str


@dataclass
class ItemOutcome:
    item_id: str
    status: ItemStatus
    assets_created: int = 0
    assets_copied: int = 0
    assets_deleted: int = 0
    errors: List[ItemError] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unsupported: List[UnsupportedItem] = field(default_factory=list)
    info: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def failed(cls, item_id: str, exc: BaseException) -> "ItemOutcome":
        return cls(item_id=item_id, status=ItemStatus.FAILED, errors=[ItemError.from_exception(item_id, exc)])


@dataclass
class RunReport:
    runner: str
    dry_run: bool = True
    items_processed: int = 0
    items_updated: int = 0
    items_skipped: int = 0
    assets_created: int = 0
    assets_copied: int = 0
    assets_deleted: int = 0
    errors: List[ItemError] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unsupported: List[UnsupportedItem] = field(default_factory=list)
    info: Dict[str, int] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1

    def add(self, outcome: ItemOutcome) -> None:
        """累加单个条目的结果"""
        self.items_processed += 1
        if outcome.status == ItemStatus.UPDATED:
            self.items_updated += 1
        elif outcome.status == ItemStatus.SKIPPED:
            self.items_skipped += 1
        self.assets_created += outcome.assets_created
        self.assets_copied += outcome.assets_copied
        self.assets_deleted += outcome.assets_deleted
        self.errors.extend(outcome.errors)
        self.orphans.extend(outcome.orphans)
        self.warnings.extend(outcome.warnings)
        self.unsupported.extend(outcome.unsupported)
        for k, v in outcome.info.items():
            self.bump(k, v)

    def add_error(self, item_id: str, exc: BaseException) -> None:
        """记录不属于任何已处理条目的错误（例如指定ID不存在）"""
        self.errors.append(ItemError.from_exception(item_id, exc))

    def bump(self, key: str, n: int = 1) -> None:
        self.info[key] = self.info.get(key, 0) + n

    def counts(self) -> Dict[str, int]:
        """只含计数的视图，用于 dry-run / execute 对比"""
        return {
            "items_processed": self.items_processed,
            "items_updated": self.items_updated,
            "items_skipped": self.items_skipped,
            "assets_created": self.assets_created,
            "assets_copied": self.assets_copied,
            "assets_deleted": self.assets_deleted,
            "orphans": len(self.orphans),
            **self.info,
        }

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["errors"] = [
            {"item_id": e.item_id, "kind": e.kind.value, "message": e.message} for e in self.errors
        ]
        d["success"] = self.ok
        return d

    def render(self) -> str:
        mode = "[DRY RUN] " if self.dry_run else ""
        lines = [
            "=" * 60,
            f"{mode}{self.runner} 汇总",
            "=" * 60,
            f"处理条目: {self.items_processed}",
            f"更新条目: {self.items_updated}",
            f"跳过条目: {self.items_skipped}",
        ]
        if self.assets_created:
            lines.append(f"新建图片: {self.assets_created}")
        if self.assets_copied or self.assets_deleted:
            lines.append(f"复制对象: {self.assets_copied}")
            lines.append(f"删除对象: {self.assets_deleted}")
        for k in sorted(self.info):
            lines.append(f"{k}: {self.info[k]}")
        if self.orphans:
            lines.append(f"孤儿对象: {len(self.orphans)}")
            lines.extend(f"   - {u.rsplit('/', 1)[-1]}" for u in self.orphans)
        if self.unsupported:
            lines.append(f"未支持的条目: {len(self.unsupported)}")
            lines.extend(f"   - {u.item_id} {u.detail}: {u.count} ({u.reason})" for u in self.unsupported)
        if self.warnings:
            lines.append(f"警告: {len(self.warnings)}")
            lines.extend(f"   - {w}" for w in self.warnings)
        lines.append(f"错误: {len(self.errors)}")
        for i, e in enumerate(self.errors, 1):
            lines.append(f"   {i}. [{e.kind.value}] {e.item_id}: {e.message}")
        if self.dry_run:
            lines.append("这是 DRY RUN，未做任何修改；加 --execute 执行")
        return "\n".join(lines)

    def save(self, reports_dir: Path) -> Path:
        reports_dir.mkdir(parents=True, exist_ok=True)
        out = reports_dir / f"{self.runner}_{int(time.time())}.json"
        with open(out, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"报告已写入 {out}")
        return out

