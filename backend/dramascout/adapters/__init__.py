from typing import Callable

from dramascout.adapters import douyin, iqiyi, tencent, youku
from dramascout.adapters.base import SourceAdapter, SourceProfile

AdapterFactory = Callable[..., SourceAdapter]

# Registry of source name -> adapter factory. Order is the default run order.
ADAPTER_FACTORIES: dict[str, AdapterFactory] = {
    "tencent": tencent.create_adapter,
    "youku": youku.create_adapter,
    "iqiyi": iqiyi.create_adapter,
    "douyin": douyin.create_adapter,
}

PROFILES: dict[str, SourceProfile] = {
    "tencent": tencent.PROFILE,
    "youku": youku.PROFILE,
    "iqiyi": iqiyi.PROFILE,
    "douyin": douyin.PROFILE,
}

__all__ = ["ADAPTER_FACTORIES", "PROFILES", "SourceAdapter", "SourceProfile"]
