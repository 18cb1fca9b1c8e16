"""整理完成后，清掉记录里仍指向 seed-generated 目录的旧 URL（默认 dry run）。"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from .models import StyleRecord
from .report import ItemOutcome, ItemStatus, RunReport
from .runner import BaseRunner, run_items

logger = logging.getLogger(__name__)


class UrlCleanupRunner(BaseRunner):
    name = "url-cleanup"

    def __init__(self, record_store, blob_store, dry_run: bool = True, concurrency: int = 1, config=None):
        super().__init__(record_store, blob_store, dry_run=dry_run, concurrency=concurrency, config=config)
        self.stale_prefix = self.blob_store.public_url(self.config["storage"]["ungrouped_prefix"])

    def clean_record(self, record: StyleRecord) -> ItemOutcome:
        keep = [img for img in record.images if not img.public_url.startswith(self.stale_prefix)]
        removed = len(record.images) - len(keep)
        if not removed:
            return ItemOutcome(record.id, ItemStatus.SKIPPED)

        logger.info(f"{record.label}: 共 {len(record.images)} 张，移除旧 URL {removed} 个，保留 {len(keep)} 个")
        if not self.dry_run:
            self.record_store.update_images(record.id, keep)
        return ItemOutcome(record.id, ItemStatus.UPDATED, info={"urls_removed": removed})

    def run(self, ids: Optional[Sequence[str]] = None, limit: Optional[int] = None) -> RunReport:
        report = self.new_report()
        self.log_start(self.stale_prefix)
        records = self.record_store.find_many(ids=ids, has_images=True, limit=limit)
        return self.collect(report, run_items(records, self.clean_record, lambda r: r.id, self.concurrency))


def main(argv=None, stores=None) -> int:
    from .cli import build_parser, run_cli

    ap = build_parser("清理记录中指向 seed-generated 的旧 URL")
    args = ap.parse_args(argv)
    return run_cli(args, lambda stores: UrlCleanupRunner(
        stores.records,
        stores.blobs,
        dry_run=not args.execute,
        concurrency=args.concurrency,
    ).run(ids=args.ids, limit=args.limit), stores)


if __name__ == "__main__":
    raise SystemExit(main())
