from dramascout.adapters.base import SourceAdapter, SourceProfile
from dramascout.services.selector_extraction import (
    IMAGE_ATTRS,
    DetailSelectors,
    FieldLocator,
    SelectorChain,
)

BASE_URL = "https://www.iqiyi.com"

CONTAINERS = [
    ".results-wrap .result-item",
    ".search-results .item",
    ".drama-item",
    ".mini-drama-item",
    ".wrapper-piclist li",
    ".site-piclist li",
    ".qy-mod-poster li",
    ".album-item",
    ".pic-item",
    ".rank-list li",
    ".search-item",
    ".result-item",
    ".video-item",
    ".list-item",
    ".card-item",
]

TITLE = [
    FieldLocator(".site-piclist_info_title a"),
    FieldLocator(".album-title"),
    FieldLocator(".pic-text"),
    FieldLocator(".title"),
    FieldLocator(".video-title"),
    FieldLocator(".drama-title"),
    FieldLocator(".card-title"),
    FieldLocator(".item-title"),
    *[FieldLocator(f"h{i}") for i in range(1, 7)],
    FieldLocator("[title]", ("title",)),
    FieldLocator("[alt]", ("alt",)),
    FieldLocator("img", ("alt", "title")),
]

LIST_CHAIN = SelectorChain(
    containers=CONTAINERS,
    title=TITLE,
    cover=[FieldLocator("img", IMAGE_ATTRS)],
    description=[FieldLocator(".site-piclist_info_describe"), FieldLocator(".album-desc"), FieldLocator(".desc")],
    score=[FieldLocator(".score")],
    play_count=[FieldLocator(".play-count"), FieldLocator(".count")],
)

RANKING_CHAIN = SelectorChain(
    containers=[
        ".rank-list li",
        ".rank-item",
        ".wrapper-piclist li",
        ".site-piclist li",
        ".qy-mod-poster li",
        ".album-item",
        ".pic-item",
    ],
    title=TITLE,
    cover=[FieldLocator("img", IMAGE_ATTRS)],
    description=[FieldLocator(".site-piclist_info_describe"), FieldLocator(".desc")],
    score=[FieldLocator(".score")],
    play_count=[FieldLocator(".play-count"), FieldLocator(".count")],
)

DETAIL_SELECTORS = DetailSelectors(
    title=[FieldLocator(".lib-album-detail__info .album-title")],
    description=[FieldLocator(".lib-album-detail__info .album-intro")],
    cover=[FieldLocator(".lib-album-detail__poster img", ("src", "data-src"))],
    score=[FieldLocator(".lib-album-detail__score .score-num")],
    play_count=[FieldLocator(".lib-album-detail__count")],
    tags=".lib-album-detail__tag .tag-item",
    cast_item=".lib-album-detail__actor .actor-item",
    cast_name=[FieldLocator(".actor-name")],
    cast_avatar=[FieldLocator(".actor-avatar img", ("src", "data-src"))],
    cast_role=[FieldLocator(".actor-role")],
    status=[FieldLocator(".lib-album-detail__status")],
)

PROFILE = SourceProfile(
    name="iqiyi",
    display_name="爱奇艺",
    base_url=BASE_URL,
    list_url="https://www.iqiyi.com/microdrama/",
    ranking_urls={"hot": "https://www.iqiyi.com/lib/m_209394814.html"},
    detail_url_template="{base}/v_{id}.html",
    list_chain=LIST_CHAIN,
    ranking_chain=RANKING_CHAIN,
    detail_selectors=DETAIL_SELECTORS,
    description_fallback="爱奇艺短剧：{title}",
    wait_selectors=[".wrapper-piclist", ".site-piclist", ".qy-mod-poster", ".album-item"],
    detail_wait_selectors=[".lib-album-detail__info"],
)


def create_adapter(**overrides) -> SourceAdapter:
    return SourceAdapter(PROFILE, **overrides)
