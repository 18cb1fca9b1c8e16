"""
文件名 → 风格 slug 的匹配规则。

上传文件名格式：{时间戳}-{8位hex}-{风格名}-{序号}.png
例：1763377700619-d3d484ee-modern-_-material-design-timeless-in-off-white-1.png

解析与规范化都拆成一串纯函数步骤，按顺序套用；每一步单独可测，
新增规则时往 PARSE_STEPS / NORMALIZE_STEPS 里追加即可。
匹配只做精确相等，不做模糊打分。
"""

from __future__ import annotations

import re
from typing import Callable, Iterable, Optional, Sequence

from .config import load_engine_config

Step = Callable[[str], str]

UPLOAD_PREFIX_RE = re.compile(r"^\d+-[0-9a-fA-F]{8}-")
ORDINAL_SUFFIX_RE = re.compile(r"-\d+$")
IN_OFF_WHITE_RE = re.compile(r"-in-off-white$")
IN_INFIX_RE = re.compile(r"-in(?=-)")


def _extension_re(exts: Iterable[str]) -> re.Pattern:
    alts = "|".join(re.escape(e.lstrip(".")) for e in exts)
    return re.compile(rf"\.({alts})$", re.IGNORECASE)


_EXT_RE = _extension_re(load_engine_config()["name_matcher"]["image_extensions"])


# ---------- 解析步骤 ----------
def strip_extension(s: str) -> str:
    return _EXT_RE.sub("", s)


def strip_upload_prefix(s: str) -> str:
    """去掉 `{digits}-{8 hex}-` 前缀；没有前缀时原样返回"""
    return UPLOAD_PREFIX_RE.sub("", s)


def strip_ordinal_suffix(s: str) -> str:
    return ORDINAL_SUFFIX_RE.sub("", s)


# ---------- 规范化步骤 ----------
def lowercase(s: str) -> str:
    return s.lower()


def collapse_ampersand_token(s: str) -> str:
    # 文件名里 "&" 被替换成了 "-_-"，slug 里则什么都没有
    return s.replace("-_-", "-")


def drop_in_before_off_white(s: str) -> str:
    return IN_OFF_WHITE_RE.sub("-off-white", s)


def drop_in_infixes(s: str) -> str:
    return IN_INFIX_RE.sub("", s)


PARSE_STEPS: Sequence[Step] = (strip_extension, strip_upload_prefix, strip_ordinal_suffix)
NORMALIZE_STEPS: Sequence[Step] = (
    lowercase,
    collapse_ampersand_token,
    drop_in_before_off_white,
    drop_in_infixes,
)


def apply_steps(s: str, steps: Iterable[Step]) -> str:
    for step in steps:
        s = step(s)
    return s


def parse_candidate_name(filename: Optional[str]) -> Optional[str]:
    """从文件名中取出候选风格名；剥离后为空返回 None。"""
    if not filename:
        return None
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    candidate = apply_steps(name, PARSE_STEPS)
    return candidate or None


def normalize(candidate_name: Optional[str]) -> str:
    """候选名 → 可与 slug 直接比较的 token。"""
    if not candidate_name:
        return ""
    return apply_steps(candidate_name, NORMALIZE_STEPS)


def matches(normalized_name: str, slug: Optional[str]) -> bool:
    return bool(normalized_name) and normalized_name == slug
