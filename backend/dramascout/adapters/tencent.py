"""Tencent Video (v.qq.com) mini-drama channel.

The channel likes to bounce automated desktop sessions to the mobile site
or to a search page. Requests to those targets are blocked at the route
level, and the landing guard re-navigates / rewrites to the desktop host.
"""

from dramascout.adapters.base import DesktopRedirectGuard, SourceAdapter, SourceProfile
from dramascout.services.browser import CHROME_USER_AGENTS, SessionConfig
from dramascout.services.selector_extraction import (
    DEFAULT_DESCRIPTION,
    DEFAULT_TITLE,
    IMAGE_ATTRS,
    DetailSelectors,
    FieldLocator,
    SelectorChain,
)

BASE_URL = "https://v.qq.com"
CHANNEL_URL = "https://v.qq.com/channel/mini_drama"

MOBILE_REDIRECT_PATTERNS = ("m.v.qq.com", "search.html", "hippysearch")

# Desktop-only UA pool: anything mobile-looking triggers the redirect
DESKTOP_USER_AGENTS = [ua for ua in CHROME_USER_AGENTS if "Mobile" not in ua]

LIST_CHAIN = SelectorChain(
    containers=[
        ".list_item",
        ".mod_figure",
        ".mod_list_pic",
        ".video-card",
        ".drama-card",
        ".channel-list .item",
        'a[href*="/x/cover/"]',
        'a[href*="/x/page/"]',
        "[data-cid]",
        ".list-item",
        ".video-item",
        ".card-item",
    ],
    title=[
        FieldLocator(".figure_title"),
        FieldLocator(".figure_detail_title"),
        *DEFAULT_TITLE,
    ],
    link=[
        FieldLocator('a[href*="/x/cover/"]', ("href",)),
        FieldLocator("a[href]", ("href",)),
        FieldLocator("", ("href",)),
    ],
    cover=[
        FieldLocator("img", IMAGE_ATTRS),
        FieldLocator(".figure_pic", ("src", "data-src")),
    ],
    description=[FieldLocator(".figure_desc"), *DEFAULT_DESCRIPTION],
    score=[FieldLocator(".figure_score")],
    play_count=[FieldLocator(".figure_count")],
)

DETAIL_SELECTORS = DetailSelectors(
    title=[FieldLocator(".video_title"), FieldLocator("h1"), FieldLocator(".title")],
    description=[FieldLocator(".video_summary"), FieldLocator(".summary"), FieldLocator(".desc")],
    cover=[FieldLocator(".video_cover img", IMAGE_ATTRS), FieldLocator("img", IMAGE_ATTRS)],
    score=[FieldLocator(".video_score")],
    play_count=[FieldLocator(".video_play_count")],
    tags=".video_tags .tag",
    cast_item=".video_cast .cast_item",
    cast_name=[FieldLocator(".cast_name")],
    cast_role=[FieldLocator(".cast_role")],
    default_tags=["短剧"],
)

PROFILE = SourceProfile(
    name="tencent",
    display_name="腾讯视频",
    base_url=BASE_URL,
    list_url=CHANNEL_URL,
    ranking_urls={
        "hot": f"{CHANNEL_URL}?tab=hot",
        "new": f"{CHANNEL_URL}?tab=new",
        "recommend": CHANNEL_URL,
    },
    detail_url_template="{base}/x/cover/{id}.html",
    list_chain=LIST_CHAIN,
    detail_selectors=DETAIL_SELECTORS,
    description_fallback="腾讯视频短剧：{title}",
    session=SessionConfig(
        blocked_url_patterns=MOBILE_REDIRECT_PATTERNS,
        user_agents=DESKTOP_USER_AGENTS,
    ),
    wait_selectors=[".list_item", ".mod_figure", ".list-item", ".video-item", ".card-item"],
    detail_wait_selectors=[".video_title", "h1"],
    landing=DesktopRedirectGuard(
        redirect_markers=("m.v.qq.com", "search.html"),
        mobile_host="m.v.qq.com",
        desktop_host="v.qq.com",
    ),
)


def create_adapter(**overrides) -> SourceAdapter:
    return SourceAdapter(PROFILE, **overrides)
