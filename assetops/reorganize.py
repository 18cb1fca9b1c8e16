"""
把集中存放的生成图片整理到各风格自己的目录

流程：
1. 列举 ungrouped 前缀（默认 styles/seed-generated/）下的顶层对象
2. 按文件名解析出的候选风格名分组；解析不出名字的直接进孤儿列表
3. 读取全部风格记录（id / slug / 现有 images）
4. 每组：规范化候选名，找 slug 相等的风格；找不到 → 整组进孤儿列表；
   多条风格 slug 相同 → 取第一条，并在报告里记警告
5. 每个对象复制到 {styles_prefix}/{风格ID}/{文件名}（dry run 只算出目标 URL），
   追加到以现有 images 为起点的列表上；已经挂在记录上的目标不重复追加
6. 每组结束后 update_images 一次（dry run 跳过）

单个对象复制失败：记错误，组内其余对象继续。写库失败时该组记为 FAILED，
已复制 / 已删除的计数和逐个对象的错误都保留在报告里，其它组继续。
--ids 只限定处理范围：命中范围外风格的分组计入 groups_out_of_scope，不算孤儿。
copy 成功但写库失败时对象会处于“已复制未关联”状态，重跑 recovery / reorganize 即可重新发现。

命令行：
  python -m assetops.reorganize [--execute] [--cleanup]
  --execute: 真正执行（默认 dry run）
  --cleanup: 复制成功后删除 seed-generated 下的原对象
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from .models import ImageAsset, MatchGroup, StyleRecord
from .name_matcher import matches, normalize, parse_candidate_name
from .report import ItemError, ItemOutcome, ItemStatus, RunReport
from .runner import BaseRunner
from .storage import BlobStore, filename_of, key_from_url

logger = logging.getLogger(__name__)


def group_blobs(urls: Sequence[str]) -> Tuple[List[MatchGroup], List[str]]:
    """按候选名分组（保持首次出现的顺序）；返回 (分组, 无法解析的 URL)"""
    groups: "OrderedDict[str, MatchGroup]" = OrderedDict()
    unparsable: List[str] = []
    for url in urls:
        candidate = parse_candidate_name(filename_of(url))
        if not candidate:
            unparsable.append(url)
            continue
        g = groups.get(candidate)
        if g is None:
            g = groups[candidate] = MatchGroup(candidate, normalize(candidate))
        g.urls.append(url)
    return list(groups.values()), unparsable


def index_by_slug(records: Sequence[StyleRecord]) -> Dict[str, List[StyleRecord]]:
    idx: Dict[str, List[StyleRecord]] = {}
    for r in records:
        idx.setdefault(r.slug, []).append(r)
    return idx


class ReorganizationRunner(BaseRunner):
    name = "reorganize"

    def __init__(self, record_store, blob_store: BlobStore, dry_run: bool = True,
                 cleanup: bool = False, config=None):
        # 同一风格可能被多个分组命中，各组依次在前一组的结果上累加，所以这里不并发
        super().__init__(record_store, blob_store, dry_run=dry_run, concurrency=1, config=config)
        storage_cfg = self.config["storage"]
        self.styles_prefix = storage_cfg["styles_prefix"].strip("/")
        self.ungrouped_prefix = storage_cfg["ungrouped_prefix"]
        self.cleanup = cleanup

    def dest_key(self, record_id: str, filename: str) -> str:
        return f"{self.styles_prefix}/{record_id}/{filename}"

    def list_ungrouped(self) -> List[str]:
        """只取前缀下的顶层对象，子目录不动"""
        prefix = self.ungrouped_prefix
        return [
            obj.url for obj in self.blob_store.list(prefix)
            if "/" not in obj.key[len(prefix):]
        ]

    def process_group(self, group: MatchGroup, record: StyleRecord) -> Tuple[ItemOutcome, List[ImageAsset]]:
        outcome = ItemOutcome(record.id, ItemStatus.SKIPPED)
        images = list(record.images)
        linked = set(record.image_urls)
        next_order = max((img.display_order for img in images), default=-1) + 1
        base = self.blob_store.public_url("")

        logger.info(f"   {record.label}（{record.id}）: {len(group.urls)} 张")

        for i, source_url in enumerate(group.urls):
            source_key = key_from_url(source_url, base)
            filename = filename_of(source_key) or f"image-{i + 1}.png"
            dest = self.dest_key(record.id, filename)
            dest_url = self.blob_store.public_url(dest)

            if dest_url in linked:
                # 上次已复制并关联；只在需要清理时补删原对象
                outcome.info["already_linked"] = outcome.info.get("already_linked", 0) + 1
                if self.cleanup:
                    if not self.dry_run:
                        try:
                            self.blob_store.copy(source_key, dest, delete_source=True)
                        except Exception as e:
                            logger.warning(f"      清理 {filename} 失败: {e}")
                            outcome.errors.append(ItemError.from_exception(source_url, e))
                            continue
                    outcome.assets_deleted += 1
                continue

            if self.dry_run:
                new_url = dest_url
            else:
                try:
                    new_url = self.blob_store.copy(source_key, dest, delete_source=self.cleanup)
                except Exception as e:
                    logger.warning(f"      复制 {filename} 失败: {e}")
                    outcome.errors.append(ItemError.from_exception(source_url, e))
                    continue

            images.append(ImageAsset(
                key=dest,
                public_url=new_url,
                category=None,
                owner_record_id=record.id,
                display_order=next_order,
            ))
            linked.add(new_url)
            next_order += 1
            outcome.assets_copied += 1
            if self.cleanup:
                outcome.assets_deleted += 1

        if outcome.assets_copied:
            if self.dry_run:
                logger.info(f"      [DRY RUN] 将把记录更新为 {len(images)} 张")
            else:
                try:
                    self.record_store.update_images(record.id, images)
                except Exception as e:
                    # 对象已复制（cleanup 时原对象也已删除）但未关联，计数照常保留
                    logger.error(f"      更新记录 {record.id} 失败（{outcome.assets_copied} 张已复制未关联）: {e}")
                    outcome.errors.append(ItemError.from_exception(record.id, e))
                    outcome.status = ItemStatus.FAILED
                    return outcome, list(record.images)
                logger.info(f"      已更新记录，共 {len(images)} 张")
            outcome.status = ItemStatus.UPDATED
        elif outcome.errors:
            outcome.status = ItemStatus.FAILED
        return outcome, images

    def run(self, ids: Optional[Sequence[str]] = None, limit: Optional[int] = None) -> RunReport:
        report = self.new_report()
        self.log_start(f"{self.ungrouped_prefix}（cleanup={'是' if self.cleanup else '否'}）")

        urls = self.list_ungrouped()
        logger.info(f"步骤1：{self.ungrouped_prefix} 下共 {len(urls)} 个对象")
        if not urls:
            return report

        groups, unparsable = group_blobs(urls)
        report.orphans.extend(unparsable)
        logger.info(f"步骤2：分成 {len(groups)} 组，{len(unparsable)} 个无法解析")

        # 匹配总是针对全部风格；--ids 只限定要处理的风格
        records = self.record_store.find_many()
        in_scope = set(ids) if ids else None
        slug_index = index_by_slug(records)
        by_id = {r.id: r for r in records}
        logger.info(f"步骤3：读取 {len(records)} 条风格")

        processed = 0
        for group in groups:
            candidates = [
                r for r in slug_index.get(group.normalized_name, [])
                if matches(group.normalized_name, r.slug)
            ]
            if not candidates:
                logger.info(f"   未匹配: {group.candidate_name}（{len(group.urls)} 张 → 孤儿）")
                report.orphans.extend(group.urls)
                continue
            if in_scope is not None and candidates[0].id not in in_scope:
                report.bump("groups_out_of_scope")
                continue
            if limit and processed >= limit:
                # 超出 limit 的已匹配分组留到下次；未匹配的仍照常进孤儿列表
                report.bump("groups_deferred")
                continue
            processed += 1

            record = by_id[candidates[0].id]
            if len(candidates) > 1:
                msg = (f"slug '{group.normalized_name}' 对应 {len(candidates)} 条风格 "
                       f"({', '.join(c.id for c in candidates)})，取第一条 {record.id}")
                logger.warning(msg)
                report.warnings.append(msg)

            try:
                outcome, images = self.process_group(group, record)
            except Exception as e:
                logger.error(f"   处理分组 {group.candidate_name} 失败: {e}")
                report.add(ItemOutcome.failed(group.candidate_name, e))
                continue
            report.add(outcome)
            # 后续命中同一风格的分组在本次结果上继续累加
            by_id[record.id] = StyleRecord(
                id=record.id, slug=record.slug, name=record.name,
                legacy_gallery=record.legacy_gallery, images=images, tier=record.tier,
            )

        logger.info(
            f"整理结束：处理 {report.items_processed} 组，复制 {report.assets_copied}，"
            f"删除 {report.assets_deleted}，孤儿 {len(report.orphans)}，错误 {len(report.errors)}"
        )
        return report


def main(argv=None, stores=None) -> int:
    from .cli import build_parser, run_cli

    ap = build_parser("把 seed-generated 下的图片整理到各风格目录")
    ap.add_argument("--cleanup", action="store_true", help="复制成功后删除原对象")
    args = ap.parse_args(argv)
    return run_cli(args, lambda stores: ReorganizationRunner(
        stores.records,
        stores.blobs,
        dry_run=not args.execute,
        cleanup=args.cleanup,
    ).run(ids=args.ids, limit=args.limit), stores)


if __name__ == "__main__":
    raise SystemExit(main())
