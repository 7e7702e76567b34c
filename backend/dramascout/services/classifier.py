"""Short-form drama classification by title/description heuristics.

Decision order (first match wins):
  1. any long-form keyword in title+description  -> reject
  2. any short-form or themed keyword            -> accept
  3. short titles (<= pattern_title_max_len)     -> accept iff a naming pattern matches
  4. otherwise                                   -> accept iff len(title) <= default_max_title_len

Thresholds and lists are heuristics tuned against the sources; they are
tunable per source but the defaults below are the expected behaviour.
"""

import re
from dataclasses import dataclass, field

EXCLUDED_KEYWORDS = [
    "电视剧", "连续剧", "大剧", "年代剧", "历史剧",
    "古装大剧", "现代都市剧", "家庭伦理剧",
    "抗战剧", "谍战剧", "宫廷剧", "武侠剧",
    "仙侠剧", "玄幻剧", "科幻剧", "悬疑剧",
]

INCLUDED_KEYWORDS = [
    "短剧", "微剧", "竖屏剧", "小剧场", "迷你剧",
    "网络短剧", "竖屏短剧", "微短剧", "小短剧",
    "都市短剧", "古装短剧", "现代短剧", "甜宠短剧",
]

THEMED_KEYWORDS = [
    "霸总", "重生", "穿越", "逆袭", "复仇",
    "豪门", "契约", "闪婚", "暖婚", "甜妻",
    "神医", "战神", "龙王", "赘婿", "神豪",
]

TITLE_PATTERNS = [
    r"^.{1,6}(总裁|老公|老婆|夫人|先生|小姐)$",
    r"^(重生|穿越|逆袭|复仇).{1,8}$",
    r"^.{1,6}(归来|回归|重来)$",
    r"^(霸道|冷酷|腹黑|温柔).{1,8}$",
    r"^.{1,6}(契约|闪婚|暖婚|甜婚)$",
]


@dataclass
class ClassifierConfig:
    excluded_keywords: list[str] = field(default_factory=lambda: list(EXCLUDED_KEYWORDS))
    included_keywords: list[str] = field(default_factory=lambda: list(INCLUDED_KEYWORDS))
    themed_keywords: list[str] = field(default_factory=lambda: list(THEMED_KEYWORDS))
    title_patterns: list[str] = field(default_factory=lambda: list(TITLE_PATTERNS))
    pattern_title_max_len: int = 10
    default_max_title_len: int = 15


class ContentClassifier:
    def __init__(self, config: ClassifierConfig | None = None):
        self.config = config or ClassifierConfig()
        self._patterns = [re.compile(p) for p in self.config.title_patterns]

    def is_target_category(self, title: str, description: str = "") -> bool:
        cfg = self.config
        title = title or ""
        text = f"{title} {description or ''}".lower()

        if any(k in text for k in cfg.excluded_keywords):
            return False
        if any(k in text for k in cfg.included_keywords) or any(
            k in text for k in cfg.themed_keywords
        ):
            return True

        if len(title) <= cfg.pattern_title_max_len:
            return any(p.search(title) for p in self._patterns)
        return len(title) <= cfg.default_max_title_len
