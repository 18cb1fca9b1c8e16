"""
旧画廊 → 分类图片实体的 schema 迁移（可重复运行）

每条风格记录的状态：
- NeedsMigration：images 为空且 legacy_gallery 非空 → 每个画廊条目生成一张图片，
  前 overview_count 张（默认 3）为 OVERVIEW，其余为 DETAIL，display_order = 原下标；
  一次 update_images 整体写入，再在 tier 为空时补默认值
- Migrated：images 非空，不再从画廊推导，只检查 / 补 tier（TierMissing → TierDefaulted）

dry-run 与 execute 走同一份计划，只是不落库，所以两者计数一致。
单条记录失败记入报告并继续下一条。

命令行：
  python -m assetops.migration                  # dry run
  python -m assetops.migration --execute
  python -m assetops.migration --execute --ids a,b --limit 10
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from .errors import InvalidRecordError, NotFoundError
from .models import ImageAsset, ImageCategory, StyleRecord, Tier
from .report import ItemOutcome, ItemStatus, RunReport
from .runner import BaseRunner, run_items
from .storage import key_from_url

logger = logging.getLogger(__name__)


def categorize_by_index(index: int, overview_count: int = 3) -> ImageCategory:
    """按位置分类：前几张是全景，其余是细节"""
    return ImageCategory.OVERVIEW if index < overview_count else ImageCategory.DETAIL


def gallery_url(item: Any) -> str:
    """画廊条目可能是字符串，也可能是 {"url": ...} 对象"""
    if isinstance(item, str) and item.strip():
        return item.strip()
    if isinstance(item, dict) and isinstance(item.get("url"), str) and item["url"].strip():
        return item["url"].strip()
    raise InvalidRecordError(f"无法识别的画廊条目: {item!r}")


def derive_images(
    record: StyleRecord,
    overview_count: int = 3,
    tags: Optional[List[str]] = None,
    description: str = "Migrated from gallery - Image {n}",
    public_base: Optional[str] = None,
) -> List[ImageAsset]:
    images: List[ImageAsset] = []
    for index, item in enumerate(record.legacy_gallery):
        url = gallery_url(item)
        images.append(ImageAsset(
            key=key_from_url(url, public_base),
            public_url=url,
            category=categorize_by_index(index, overview_count),
            owner_record_id=record.id,
            display_order=index,
            tags=list(tags or []),
            description=description.format(n=index + 1),
        ))
    return images


@dataclass
class MigrationPlan:
    record_id: str
    images: List[ImageAsset] = field(default_factory=list)
    set_tier: Optional[Tier] = None

    @property
    def is_noop(self) -> bool:
        return not self.images and self.set_tier is None


class MigrationRunner(BaseRunner):
    name = "migration"

    def __init__(self, record_store, dry_run: bool = True, concurrency: int = 1, config=None,
                 public_base: Optional[str] = None):
        super().__init__(record_store, None, dry_run=dry_run, concurrency=concurrency, config=config)
        cfg = self.config["migration"]
        self.default_tier = Tier(cfg["default_tier"])
        self.overview_count = int(cfg["overview_count"])
        self.tags = list(cfg.get("tags") or [])
        self.description = cfg.get("description") or "Migrated from gallery - Image {n}"
        self.public_base = public_base

    def plan(self, record: StyleRecord) -> MigrationPlan:
        plan = MigrationPlan(record_id=record.id)
        if not record.is_migrated and record.legacy_gallery:
            plan.images = derive_images(
                record, self.overview_count, self.tags, self.description, self.public_base
            )
        if record.tier is None:
            plan.set_tier = self.default_tier
        return plan

    def migrate_record(self, record: StyleRecord) -> ItemOutcome:
        plan = self.plan(record)
        if plan.is_noop:
            logger.info(f"{record.label}: 已迁移（{len(record.images)} 张图片），档位 {record.tier.value}，跳过")
            return ItemOutcome(record.id, ItemStatus.SKIPPED)

        if plan.images:
            logger.info(f"{record.label}: 迁移 {len(plan.images)} 张画廊图片")
            if not self.dry_run:
                self.record_store.update_images(record.id, plan.images)
        if plan.set_tier is not None:
            logger.info(f"{record.label}: 档位设为 {plan.set_tier.value}")
            if not self.dry_run:
                self.record_store.update_tier(record.id, plan.set_tier)

        return ItemOutcome(record.id, ItemStatus.UPDATED, assets_created=len(plan.images))

    def run(self, ids: Optional[Sequence[str]] = None, limit: Optional[int] = None) -> RunReport:
        report = self.new_report()
        self.log_start(f"{len(ids)} 个指定风格" if ids else "全部风格")

        records = self.record_store.find_many(ids=ids, limit=None if ids else limit)
        if ids:
            found = {r.id for r in records}
            for missing in [i for i in ids if i not in found]:
                logger.warning(f"风格 {missing} 不存在")
                report.add_error(missing, NotFoundError(f"风格 {missing} 不存在"))
            if limit:
                records = records[:limit]

        logger.info(f"共 {len(records)} 条风格待检查")
        outcomes = run_items(records, self.migrate_record, lambda r: r.id, self.concurrency)
        self.collect(report, outcomes)
        logger.info(
            f"迁移结束：处理 {report.items_processed}，更新 {report.items_updated}，"
            f"跳过 {report.items_skipped}，新建图片 {report.assets_created}，错误 {len(report.errors)}"
        )
        return report


def main(argv=None, stores=None) -> int:
    from .cli import build_parser, run_cli

    ap = build_parser("旧画廊 → 分类图片迁移")
    args = ap.parse_args(argv)
    return run_cli(args, lambda stores: MigrationRunner(
        stores.records,
        dry_run=not args.execute,
        concurrency=args.concurrency,
        public_base=stores.public_base,
    ).run(ids=args.ids, limit=args.limit), stores)


if __name__ == "__main__":
    raise SystemExit(main())
