"""runner 公共部分：依赖注入、逐条执行与部分失败语义。

条目之间相互独立。concurrency == 1 时顺序执行；大于 1 时用固定大小的
线程池并发处理，结果仍按输入顺序汇总，报告内容与顺序执行一致。
不支持中途取消，也没有断点续跑：被杀掉的运行重新跑一遍即可（各 runner 幂等）。
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TypeVar

from .config import load_engine_config
from .records import RecordStore
from .report import ItemOutcome, RunReport
from .storage import BlobStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _guarded(fn: Callable[[T], ItemOutcome], id_of: Callable[[T], str]) -> Callable[[T], ItemOutcome]:
    def call(item: T) -> ItemOutcome:
        try:
            return fn(item)
        except Exception as e:
            item_id = id_of(item)
            logger.error(f"处理 {item_id} 失败: {e}")
            return ItemOutcome.failed(item_id, e)
    return call


def run_items(
    items: Sequence[T],
    fn: Callable[[T], ItemOutcome],
    id_of: Callable[[T], str],
    concurrency: int = 1,
) -> List[ItemOutcome]:
    """对每个条目执行 fn；单条异常转为 FAILED 结果，不影响其他条目"""
    call = _guarded(fn, id_of)
    if concurrency <= 1 or len(items) <= 1:
        return [call(it) for it in items]
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        return list(pool.map(call, items))


class BaseRunner:
    name = "runner"

    def __init__(
        self,
        record_store: RecordStore,
        blob_store: Optional[BlobStore] = None,
        dry_run: bool = True,
        concurrency: int = 1,
        config: Optional[Dict[str, Any]] = None,
    ):
        self.record_store = record_store
        self.blob_store = blob_store
        self.dry_run = dry_run
        self.concurrency = max(1, int(concurrency or 1))
        self.config = config or load_engine_config()

    def new_report(self) -> RunReport:
        return RunReport(runner=self.name, dry_run=self.dry_run)

    def collect(self, report: RunReport, outcomes: Iterable[ItemOutcome]) -> RunReport:
        for outcome in outcomes:
            report.add(outcome)
        return report

    def log_start(self, target: str) -> None:
        mode = "[DRY RUN] " if self.dry_run else ""
        logger.info(f"{mode}{self.name} 开始，目标: {target}")
