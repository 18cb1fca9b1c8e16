"""
找回孤儿图片：对象存储里已经上传、但没有挂到风格记录上的主图
（生成过程中 schema 报错或进程崩溃导致）。

- 逐条风格列举 styles/{id}/ 下的对象，与记录上的 images 求差
- execute 模式下把缺失的 URL 按列举顺序追加到现有 images 之后（原顺序不变）
- 房型图片（styles/{id}/rooms/{房型}/）只计数上报：把路径里的房型文字映射回
  房型ID尚未实现，不做猜测，也不写入
- 记录上有、存储里已不存在的 URL 只做提示，不删除

命令行：
  python -m assetops.recovery --ids 691b4e90a247c7828180030d
  python -m assetops.recovery --execute
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .errors import NotFoundError
from .models import ImageAsset, StyleRecord
from .reconciler import Reconciler
from .report import ItemOutcome, ItemStatus, RunReport, UnsupportedItem
from .runner import BaseRunner, run_items
from .storage import BlobStore, key_from_url

logger = logging.getLogger(__name__)

ROOM_TYPE_UNSUPPORTED = "room-type mapping not supported"


class RecoveryRunner(BaseRunner):
    name = "recovery"

    def __init__(self, record_store, blob_store: BlobStore, dry_run: bool = True,
                 concurrency: int = 1, config=None):
        super().__init__(record_store, blob_store, dry_run=dry_run, concurrency=concurrency, config=config)
        storage_cfg = self.config["storage"]
        self.reconciler = Reconciler(blob_store, storage_cfg["styles_prefix"], storage_cfg["rooms_dir"])

    def recovered_assets(self, record: StyleRecord, urls: List[str]) -> List[ImageAsset]:
        """新找回的图片接在现有最大 display_order 之后，类别留空"""
        start = max((img.display_order for img in record.images), default=-1) + 1
        base = self.blob_store.public_url("")
        return [
            ImageAsset(
                key=key_from_url(u, base),
                public_url=u,
                category=None,
                owner_record_id=record.id,
                display_order=start + i,
            )
            for i, u in enumerate(urls)
        ]

    def recover_record(self, record: StyleRecord) -> ItemOutcome:
        diff = self.reconciler.diff(record)
        outcome = ItemOutcome(record.id, ItemStatus.SKIPPED)

        logger.info(
            f"{record.label}: 记录 {len(record.images)} 张，存储 {len(diff.listed)} 张，"
            f"缺失 {len(diff.missing_from_record)} 张"
        )

        for room_type, urls in diff.room_images.items():
            logger.info(f"   房型 {room_type}: {len(urls)} 张（需人工处理）")
            outcome.unsupported.append(UnsupportedItem(
                item_id=record.id,
                detail=f"rooms/{room_type}",
                count=len(urls),
                reason=ROOM_TYPE_UNSUPPORTED,
            ))
        if diff.room_image_count:
            outcome.info["room_images_found"] = diff.room_image_count

        if diff.recorded_but_absent:
            logger.warning(f"   {len(diff.recorded_but_absent)} 个已登记 URL 在存储中不存在")
            outcome.info["recorded_but_absent"] = len(diff.recorded_but_absent)

        if not diff.missing_from_record:
            return outcome

        new_images = record.images + self.recovered_assets(record, diff.missing_from_record)
        if self.dry_run:
            logger.info(f"   [DRY RUN] 将找回 {len(diff.missing_from_record)} 张主图")
        else:
            self.record_store.update_images(record.id, new_images)
            logger.info(f"   已追加 {len(diff.missing_from_record)} 张主图，共 {len(new_images)} 张")

        outcome.status = ItemStatus.UPDATED
        outcome.assets_created = len(diff.missing_from_record)
        return outcome

    def run(self, ids: Optional[Sequence[str]] = None, limit: Optional[int] = None) -> RunReport:
        report = self.new_report()
        self.log_start(f"{len(ids)} 个指定风格" if ids else "全部风格")

        records = self.record_store.find_many(ids=ids, limit=None if ids else limit)
        if ids:
            found = {r.id for r in records}
            for missing in [i for i in ids if i not in found]:
                report.add_error(missing, NotFoundError(f"风格 {missing} 不存在"))
            if limit:
                records = records[:limit]

        logger.info(f"共 {len(records)} 条风格待检查")
        outcomes = run_items(records, self.recover_record, lambda r: r.id, self.concurrency)
        self.collect(report, outcomes)
        logger.info(
            f"找回结束：处理 {report.items_processed}，更新 {report.items_updated}，"
            f"主图 {report.assets_created}，房型图 {report.info.get('room_images_found', 0)}（未自动找回），"
            f"错误 {len(report.errors)}"
        )
        return report


def recover_orphaned_images(record_store, blob_store, style_id: Optional[str] = None,
                            dry_run: bool = True) -> RunReport:
    """单风格 / 全部风格的便捷入口（admin API 使用）"""
    runner = RecoveryRunner(record_store, blob_store, dry_run=dry_run)
    return runner.run(ids=[style_id] if style_id else None)


def main(argv=None, stores=None) -> int:
    from .cli import build_parser, run_cli

    ap = build_parser("从对象存储找回未关联的风格图片")
    args = ap.parse_args(argv)
    return run_cli(args, lambda stores: RecoveryRunner(
        stores.records,
        stores.blobs,
        dry_run=not args.execute,
        concurrency=args.concurrency,
    ).run(ids=args.ids, limit=args.limit), stores)


if __name__ == "__main__":
    raise SystemExit(main())
