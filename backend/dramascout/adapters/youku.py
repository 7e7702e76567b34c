"""Youku short-drama channel.

Youku needs a few first-party cookies before it serves content, and the
landing page often has no items until the "片单广场" control is clicked.
Its blocking pages are recognised by redirect targets, short bodies and
a longer keyword list than the default.
"""

import time

from dramascout.adapters.base import SourceAdapter, SourceProfile, TwoStageLanding
from dramascout.services.anti_bot import CHALLENGE_SELECTORS, DetectionConfig
from dramascout.services.browser import SessionConfig
from dramascout.services.selector_extraction import (
    DEFAULT_TITLE,
    IMAGE_ATTRS,
    DetailSelectors,
    FieldLocator,
    SelectorChain,
)

BASE_URL = "https://www.youku.com"
LIST_URL = "https://www.youku.com/ku/webduanju"
COOKIE_DOMAIN = ".youku.com"


def session_cookies() -> list[dict]:
    """Visitor cookies, stamped with the current time."""
    ts = str(int(time.time() * 1000))
    values = {
        "__ysuid": f"{ts}faM",
        "__ayft": ts,
        "__aysid": f"{ts}zfv",
        "__ayscnt": "1",
        "xlly_s": "1",
    }
    return [
        {"name": name, "value": value, "domain": COOKIE_DOMAIN, "path": "/"}
        for name, value in values.items()
    ]


DETECTION = DetectionConfig(
    selectors=CHALLENGE_SELECTORS + [
        ".yk-error-page",
        ".error-page",
        ".access-denied",
        ".anti-robot",
        ".challenge-page",
        ".login-required",
        ".permission-denied",
        ".loading-error",
        ".network-error",
        ".page-error",
        ".pay-wall",
        ".payment-required",
        "#pay-verification",
    ],
    redirect_patterns=[
        "pay", "login", "auth", "verify", "captcha", "security",
        "支付", "登录", "验证", "安全检查", "机器人检测",
    ],
    keywords=[
        "验证码", "人机验证", "安全验证", "访问被拒绝", "请稍后再试",
        "系统繁忙", "网络异常", "加载失败", "页面不存在", "服务暂不可用",
        "captcha", "verify", "robot", "security check", "access denied",
        "permission denied",
    ],
)

LIST_CHAIN = SelectorChain(
    containers=[
        ".pack-film-card",
        ".categorypack_pack_film_card",
        ".g-col",
        ".yk-pack",
        ".video-card",
        ".drama-item",
        ".list-item",
        ".video-item",
        ".card-item",
    ],
    title=[
        FieldLocator(".pack-title"),
        FieldLocator(".info-list .title"),
        *DEFAULT_TITLE,
    ],
    cover=[FieldLocator("img", IMAGE_ATTRS)],
    description=[FieldLocator(".pack-subtitle"), FieldLocator(".info-list .subtitle"), FieldLocator(".desc")],
    play_count=[FieldLocator(".pack-ptag"), FieldLocator(".play-count")],
)

DETAIL_SELECTORS = DetailSelectors(
    title=[FieldLocator(".title-wrap .title"), FieldLocator("h1"), FieldLocator(".title")],
    description=[FieldLocator(".intro-more .desc"), FieldLocator(".summary"), FieldLocator(".desc")],
    cover=[FieldLocator(".poster img", IMAGE_ATTRS), FieldLocator("img", IMAGE_ATTRS)],
    score=[FieldLocator(".score")],
    play_count=[FieldLocator(".play-count")],
    tags=".tag-list .tag",
    cast_item=".actor-list .actor-item",
    cast_name=[FieldLocator(".actor-name"), FieldLocator(".name")],
    cast_role=[FieldLocator(".actor-role"), FieldLocator(".role")],
    default_tags=["短剧"],
)

PROFILE = SourceProfile(
    name="youku",
    display_name="优酷",
    base_url=BASE_URL,
    list_url=LIST_URL,
    ranking_urls={"hot": LIST_URL},
    detail_url_template="{base}/v_show/id_{id}.html",
    list_chain=LIST_CHAIN,
    detail_selectors=DETAIL_SELECTORS,
    description_fallback="优酷短剧：{title}",
    session=SessionConfig(cookies=session_cookies),
    detection=DETECTION,
    wait_selectors=[".pack-film-card", ".g-col", ".video-card", ".list-item"],
    detail_wait_selectors=[".title-wrap", "h1"],
    landing=TwoStageLanding(control_text="片单广场"),
)


def create_adapter(**overrides) -> SourceAdapter:
    return SourceAdapter(PROFILE, **overrides)
