"""迁移结果核对（只读）：档位覆盖、已迁移风格数、图片类别分布。"""

from __future__ import annotations

import argparse
from collections import Counter
from typing import Any, Dict

from .records import RecordStore


def verify_migration(record_store: RecordStore) -> Dict[str, Any]:
    records = record_store.find_many()
    categories: Counter = Counter()
    total_images = 0
    for r in records:
        total_images += len(r.images)
        for img in r.images:
            categories[img.category.value if img.category else "UNSET"] += 1

    return {
        "total_styles": len(records),
        "styles_with_tier": sum(1 for r in records if r.tier is not None),
        "styles_with_images": sum(1 for r in records if r.is_migrated),
        "total_images": total_images,
        "categories": dict(sorted(categories.items())),
        "styles": [
            {"id": r.id, "name": r.label, "images": len(r.images),
             "tier": r.tier.value if r.tier else None}
            for r in records if r.is_migrated
        ],
    }


def render(summary: Dict[str, Any]) -> str:
    lines = [
        "=" * 60,
        "迁移核对",
        "=" * 60,
        f"风格总数: {summary['total_styles']}",
        f"已设置档位: {summary['styles_with_tier']}",
        f"已有图片实体: {summary['styles_with_images']}",
        f"图片总数: {summary['total_images']}",
        "类别分布:",
    ]
    lines.extend(f"   - {k}: {v}" for k, v in summary["categories"].items())
    for i, s in enumerate(summary["styles"], 1):
        lines.append(f"   {i}. {s['name']} - {s['images']} 张 ({s['tier'] or 'NO_TIER'})")
    return "\n".join(lines)


def main(argv=None) -> int:
    from .cli import Stores, setup_logging

    ap = argparse.ArgumentParser(description="核对迁移结果")
    ap.add_argument("--log-level", default="INFO")
    args = ap.parse_args(argv)
    setup_logging(args.log_level)
    print(render(verify_migration(Stores().records)))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
