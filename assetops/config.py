"""路径与配置加载工具。

负责：
- 定义工程路径（根、配置、数据、报告）
- 确保数据目录存在
- 加载引擎配置（YAML）：存储前缀、默认档位、分类规则等
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml

BASE_DIR = Path(__file__).resolve().parent.parent
CONFIG_DIR = BASE_DIR / "config"
DATA_DIR = BASE_DIR / "data"
REPORTS_DIR = DATA_DIR / "reports"

# 确保数据相关目录存在
for p in (DATA_DIR, REPORTS_DIR):
    p.mkdir(parents=True, exist_ok=True)

# 配置文件缺失时的兜底值（与 config/engine.yaml 保持一致）
DEFAULTS: Dict[str, Any] = {
    "storage": {
        "styles_prefix": "styles",
        "ungrouped_prefix": "styles/seed-generated/",
        "rooms_dir": "rooms",
    },
    "migration": {
        "default_tier": "REGULAR",
        "overview_count": 3,
        "tags": ["migrated", "legacy"],
        "description": "Migrated from gallery - Image {n}",
    },
    "name_matcher": {
        "image_extensions": ["png", "jpg", "jpeg", "webp"],
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


@lru_cache(maxsize=8)
def load_engine_config(path: str = "") -> Dict[str, Any]:
    """加载引擎配置 `config/engine.yaml`，缺省字段用 DEFAULTS 补齐。"""
    cfg_path = Path(path) if path else CONFIG_DIR / "engine.yaml"
    if not cfg_path.exists():
        return _merge(DEFAULTS, {})
    with open(cfg_path, "r", encoding="utf-8") as f:
        return _merge(DEFAULTS, yaml.safe_load(f) or {})
