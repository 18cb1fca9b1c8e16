"""命令行公共部分：参数、日志、存储构建、报告输出与退出码。

退出码：0 无错误；1 有条目级错误；2 初始化失败或存储整体不可用（运行中止）。
"""

from __future__ import annotations

import argparse
import logging
from typing import Callable, List, Optional

from .errors import AssetOpsError
from .records import SqlRecordStore, build_record_store
from .report import RunReport
from .settings import get_engine_settings, get_storage_settings
from .storage import R2BlobStore, build_blob_store

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')


def _id_list(value: str) -> List[str]:
    ids = [v.strip() for v in value.split(",") if v.strip()]
    if not ids:
        raise argparse.ArgumentTypeError("--ids 不能为空；处理全部风格时不要传 --ids")
    return ids


def build_parser(description: str) -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description=description)
    ap.add_argument("--execute", action="store_true", help="真正执行（默认 dry run，只报告）")
    ap.add_argument("--limit", type=int, help="最多处理的条目数")
    ap.add_argument("--ids", type=_id_list, help="只处理这些风格ID（逗号分隔）")
    ap.add_argument("--concurrency", type=int, default=None, help="并发处理的记录数（默认顺序执行）")
    ap.add_argument("--report", action="store_true", help="把报告写成 JSON 文件")
    ap.add_argument("--log-level", default=None, help="日志级别")
    return ap


class Stores:
    """按需构建两个存储；只用记录库的 runner 不要求 R2 凭证"""

    def __init__(self, records: Optional[SqlRecordStore] = None, blobs: Optional[R2BlobStore] = None):
        self._records = records
        self._blobs = blobs

    @property
    def records(self) -> SqlRecordStore:
        if self._records is None:
            self._records = build_record_store(get_engine_settings())
        return self._records

    @property
    def blobs(self) -> R2BlobStore:
        if self._blobs is None:
            self._blobs = build_blob_store(get_storage_settings())
        return self._blobs

    @property
    def public_base(self) -> str:
        if self._blobs is not None:
            return self._blobs.public_url("").rstrip("/")
        return get_storage_settings().public_url


def run_cli(args: argparse.Namespace, make_run: Callable[[Stores], RunReport],
            stores: Optional[Stores] = None) -> int:
    settings = get_engine_settings()
    setup_logging(args.log_level or settings.log_level)
    if args.concurrency is None:
        args.concurrency = settings.concurrency

    try:
        report = make_run(stores or Stores())
    except AssetOpsError as e:
        logger.error(f"运行中止（{e.error_type}）: {e.message}")
        return 2

    print(report.render())
    if args.report:
        report.save(settings.reports_dir)
    return report.exit_code
