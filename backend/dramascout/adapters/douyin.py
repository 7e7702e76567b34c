"""Douyin series pages.

Douyin is the most aggressive about automation, so pacing is slower and
navigation is retried more. Hot-list entries are mostly clips, so the
ranking keeps anything that mentions drama instead of running the
short-form classifier.
"""

from dramascout.adapters.base import SourceAdapter, SourceProfile
from dramascout.services.navigation import DelayRange, NavigationPolicy
from dramascout.services.selector_extraction import (
    DEFAULT_TITLE,
    IMAGE_ATTRS,
    DetailSelectors,
    FieldLocator,
    SelectorChain,
)

BASE_URL = "https://www.douyin.com"


def is_drama_entry(title: str, description: str) -> bool:
    return "剧" in title or "短剧" in description


LIST_CHAIN = SelectorChain(
    containers=[
        '[data-e2e="search-result"] li',
        '[data-e2e="video-feed-item"]',
        ".aweme-video-item",
        ".series-card",
        ".video-item",
        ".list-item",
        ".card-item",
    ],
    title=[
        FieldLocator('[data-e2e="video-title"]'),
        FieldLocator(".series-title"),
        *DEFAULT_TITLE,
    ],
    cover=[FieldLocator("img", IMAGE_ATTRS)],
    description=[FieldLocator('[data-e2e="video-desc"]'), FieldLocator(".desc")],
    play_count=[FieldLocator('[data-e2e="video-play-count"]'), FieldLocator(".play-count")],
)

RANKING_CHAIN = SelectorChain(
    containers=[
        '[data-e2e="hot-list"] li',
        ".hot-list li",
        ".rank-list li",
        ".trending-list li",
        ".video-item",
    ],
    title=[FieldLocator('[data-e2e="video-title"]'), FieldLocator(".title"), *DEFAULT_TITLE],
    cover=[FieldLocator("img", IMAGE_ATTRS)],
    description=[FieldLocator('[data-e2e="video-desc"]'), FieldLocator(".desc")],
    play_count=[FieldLocator(".hot-value"), FieldLocator(".play-count")],
)

DETAIL_SELECTORS = DetailSelectors(
    title=[FieldLocator('[data-e2e="video-title"]'), FieldLocator("h1")],
    description=[FieldLocator('[data-e2e="video-desc"]')],
    cover=[FieldLocator('[data-e2e="video-cover"] img', IMAGE_ATTRS)],
    play_count=[FieldLocator('[data-e2e="video-play-count"]')],
    like_count=[FieldLocator('[data-e2e="video-like-count"]')],
    comment_count=[FieldLocator('[data-e2e="video-comment-count"]')],
    tags='[data-e2e="video-tag"]',
    cast_item='[data-e2e="video-author"]',
    cast_name=[FieldLocator('[data-e2e="video-author-name"]')],
    cast_avatar=[FieldLocator('[data-e2e="video-author-avatar"] img', IMAGE_ATTRS)],
    default_tags=["短剧", "抖音"],
)

PROFILE = SourceProfile(
    name="douyin",
    display_name="抖音",
    base_url=BASE_URL,
    list_url="https://www.douyin.com/series",
    ranking_urls={"hot": "https://www.douyin.com/hot/短剧"},
    detail_url_template="{base}/video/{id}",
    list_chain=LIST_CHAIN,
    ranking_chain=RANKING_CHAIN,
    detail_selectors=DETAIL_SELECTORS,
    ranking_filter=is_drama_entry,
    description_fallback="抖音短剧：{title}",
    navigation=NavigationPolicy(max_retries=5, request_delay=DelayRange(3000, 8000)),
    wait_selectors=[
        '[data-e2e="search-result"]',
        ".video-item",
        ".aweme-video-item",
        '[data-e2e="video-feed-item"]',
    ],
    detail_wait_selectors=['[data-e2e="video-title"]'],
)


def create_adapter(**overrides) -> SourceAdapter:
    return SourceAdapter(PROFILE, **overrides)
