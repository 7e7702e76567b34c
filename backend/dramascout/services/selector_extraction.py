"""CSS selector-chain extraction of drama records.

A SelectorChain holds an ordered list of container selectors plus, per
field, an ordered list of FieldLocators. Containers are tried in order;
the first one whose elements yield at least one valid record wins. Within
a container element each field takes the first non-empty candidate from
its locator list.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Callable

from bs4 import BeautifulSoup
from bs4.element import Tag
from pydantic import ValidationError

from dramascout.core.exceptions import ExtractionError, ValidationFailedError
from dramascout.core.metrics import extraction_failures_total
from dramascout.schemas.drama import CastMember, DramaDetail, ExtractedRecord
from dramascout.services.classifier import ContentClassifier
from dramascout.services.text_utils import (
    clean_text,
    normalize_url,
    parse_play_count,
    parse_score,
)

logger = logging.getLogger(__name__)

IMAGE_ATTRS = ("src", "data-src", "rsrc", "data-original")


@dataclass(frozen=True)
class FieldLocator:
    """Where to read one field from, relative to a container element.

    An empty selector means the container element itself. With no attrs
    the element's text is used; otherwise the first non-empty attribute.
    """

    selector: str = ""
    attrs: tuple[str, ...] = ()

    def candidates(self, root: Tag) -> list[str]:
        elements = [root] if not self.selector else root.select(self.selector)
        values = []
        for el in elements:
            if not self.attrs:
                values.append(el.get_text(" ", strip=True))
                continue
            for attr in self.attrs:
                val = el.get(attr)
                if val:
                    values.append(val if isinstance(val, str) else " ".join(val))
                    break
        return values


def _candidates(root: Tag, locators: list[FieldLocator]):
    for locator in locators:
        try:
            candidates = locator.candidates(root)
        except Exception as e:
            # soupsieve rejects unsupported selectors at match time
            logger.debug(f"Locator {locator.selector!r} failed: {e}")
            continue
        yield from candidates


def first_value(root: Tag, locators: list[FieldLocator], min_length: int = 1) -> str:
    """First cleaned candidate of at least min_length chars across the chain."""
    for value in _candidates(root, locators):
        value = clean_text(value)
        if len(value) >= min_length:
            return value
    return ""


def first_url(root: Tag, locators: list[FieldLocator], base_url: str) -> str:
    """First candidate that resolves to an absolute http(s) URL.

    Pseudo links such as "#" or "javascript:void(0)" are skipped so later
    locators in the chain still get a chance.
    """
    for value in _candidates(root, locators):
        url = normalize_url(value, base_url)
        if url:
            return url
    return ""


def _text(selector: str) -> FieldLocator:
    return FieldLocator(selector)


def _attr(selector: str, *attrs: str) -> FieldLocator:
    return FieldLocator(selector, attrs)


DEFAULT_CONTAINERS = [
    ".video-item",
    ".list-item",
    ".card-item",
    ".item",
    "li",
]

DEFAULT_TITLE = [
    _text(".title"),
    _text(".video-title"),
    _text(".drama-title"),
    _text(".card-title"),
    _text(".item-title"),
    _text("h1"), _text("h2"), _text("h3"), _text("h4"), _text("h5"), _text("h6"),
    _attr("[title]", "title"),
    _attr("[alt]", "alt"),
    _attr("img", "alt", "title"),
    _attr("", "title"),
    _text("a"),
]

DEFAULT_LINK = [_attr("a[href]", "href"), _attr("", "href")]
DEFAULT_COVER = [_attr("img", *IMAGE_ATTRS), _attr("", "data-src")]
DEFAULT_DESCRIPTION = [_text(".desc"), _text(".description"), _text(".intro"), _text("p")]


@dataclass
class SelectorChain:
    containers: list[str] = field(default_factory=lambda: list(DEFAULT_CONTAINERS))
    title: list[FieldLocator] = field(default_factory=lambda: list(DEFAULT_TITLE))
    link: list[FieldLocator] = field(default_factory=lambda: list(DEFAULT_LINK))
    cover: list[FieldLocator] = field(default_factory=lambda: list(DEFAULT_COVER))
    description: list[FieldLocator] = field(default_factory=lambda: list(DEFAULT_DESCRIPTION))
    score: list[FieldLocator] = field(default_factory=list)
    play_count: list[FieldLocator] = field(default_factory=list)


@dataclass
class SelectorAttempt:
    selector: str
    matched: int  # elements matched by the container selector
    valid: int  # records accepted from those elements

    def to_dict(self) -> dict:
        return asdict(self)


class ExtractionPipeline:
    def __init__(
        self,
        chain: SelectorChain,
        base_url: str,
        platform: str = "",
        classifier: ContentClassifier | None = None,
        filter_by_category: bool = True,
        description_fallback: str | None = None,
        record_filter: Callable[[str, str], bool] | None = None,
    ):
        self.chain = chain
        self.base_url = base_url
        self.platform = platform
        self.classifier = classifier
        self.filter_by_category = filter_by_category
        # Format string with {title}, used when no description is found
        self.description_fallback = description_fallback
        # Called with the title and the scraped description, before any fallback
        self.record_filter = record_filter
        self.last_attempts: list[SelectorAttempt] = []

    def extract_records(self, html: str, max_count: int | None = None) -> list[ExtractedRecord]:
        """Extract records from a list/ranking page.

        Raises ExtractionError (with the selector attempts) when no
        container selector yields a valid record, or ValidationFailedError
        when elements matched but every candidate failed validation.
        """
        soup = BeautifulSoup(html or "", "lxml")
        attempts: list[SelectorAttempt] = []
        self.last_attempts = attempts
        invalid_total = 0
        filtered_total = 0

        for selector in self.chain.containers:
            try:
                elements = soup.select(selector)
            except Exception as e:
                logger.warning(f"[{self.platform}] invalid container selector {selector!r}: {e}")
                attempts.append(SelectorAttempt(selector, 0, 0))
                continue

            if not elements:
                attempts.append(SelectorAttempt(selector, 0, 0))
                continue

            records, invalid, filtered = self._records_from(elements, max_count)
            invalid_total += invalid
            filtered_total += filtered
            attempts.append(SelectorAttempt(selector, len(elements), len(records)))
            logger.debug(
                f"[{self.platform}] container {selector!r}: {len(elements)} matched, "
                f"{len(records)} valid, {invalid} invalid, {filtered} filtered"
            )
            if records:
                return records

        extraction_failures_total.labels(platform=self.platform or "unknown").inc()
        if invalid_total and not filtered_total:
            raise ValidationFailedError(self.platform, invalid_total, attempts)
        raise ExtractionError(
            f"[{self.platform}] no container selector yielded a valid record "
            f"({len(attempts)} tried)",
            attempts,
        )

    def _records_from(
        self, elements: list[Tag], max_count: int | None
    ) -> tuple[list[ExtractedRecord], int, int]:
        chain = self.chain
        records: list[ExtractedRecord] = []
        seen: set[str] = set()
        invalid = 0
        filtered = 0

        for el in elements:
            if max_count is not None and len(records) >= max_count:
                break

            title = first_value(el, chain.title, min_length=2)
            if not title:
                continue
            link = first_url(el, chain.link, self.base_url)
            raw_description = first_value(el, chain.description)
            description = raw_description
            if not description and self.description_fallback:
                description = self.description_fallback.format(title=title)
            score_text = first_value(el, chain.score) if chain.score else ""
            play_text = first_value(el, chain.play_count) if chain.play_count else ""

            try:
                record = ExtractedRecord(
                    title=title,
                    description=description,
                    cover_url=first_url(el, chain.cover, self.base_url),
                    source_url=link or None,
                    platform=self.platform,
                    score=parse_score(score_text) if score_text else None,
                    play_count=parse_play_count(play_text) if play_text else None,
                )
            except ValidationError as e:
                invalid += 1
                logger.debug(f"[{self.platform}] dropped invalid record {title!r}: {e.errors()[0]['msg']}")
                continue

            key = record.source_url or record.title
            if key in seen:
                continue

            if self.classifier is not None:
                signal = self.classifier.is_target_category(record.title, raw_description)
                record = record.model_copy(update={"category_signal": signal})
                if self.filter_by_category and not signal:
                    filtered += 1
                    continue

            if self.record_filter is not None and not self.record_filter(record.title, raw_description):
                filtered += 1
                continue

            seen.add(key)
            records.append(record)

        return records, invalid, filtered


# ---------------------------------------------------------------------------
# Detail pages
# ---------------------------------------------------------------------------


@dataclass
class DetailSelectors:
    title: list[FieldLocator] = field(default_factory=lambda: [_text("h1"), _text(".title")])
    description: list[FieldLocator] = field(default_factory=lambda: [_text(".desc"), _text(".intro")])
    cover: list[FieldLocator] = field(default_factory=lambda: [_attr("img", *IMAGE_ATTRS)])
    score: list[FieldLocator] = field(default_factory=list)
    play_count: list[FieldLocator] = field(default_factory=list)
    like_count: list[FieldLocator] = field(default_factory=list)
    comment_count: list[FieldLocator] = field(default_factory=list)
    tags: str = ""  # selector matching each tag element
    cast_item: str = ""  # selector matching each cast entry
    cast_name: list[FieldLocator] = field(default_factory=lambda: [_text(".name")])
    cast_avatar: list[FieldLocator] = field(default_factory=lambda: [_attr("img", *IMAGE_ATTRS)])
    cast_role: list[FieldLocator] = field(default_factory=lambda: [_text(".role")])
    status: list[FieldLocator] = field(default_factory=list)
    default_tags: list[str] = field(default_factory=list)
    default_status: str = "更新中"


def extract_detail(
    html: str,
    selectors: DetailSelectors,
    base_url: str,
    source_url: str,
    platform: str = "",
) -> DramaDetail:
    """Build a DramaDetail from a detail page.

    Raises ExtractionError when no title can be found or the page does
    not produce a valid detail record.
    """
    soup = BeautifulSoup(html or "", "lxml")
    root = soup.html or soup

    title = first_value(root, selectors.title, min_length=2)
    if not title:
        extraction_failures_total.labels(platform=platform or "unknown").inc()
        raise ExtractionError(
            f"[{platform}] detail page has no title",
            [SelectorAttempt(loc.selector, 0, 0) for loc in selectors.title],
        )

    tags: list[str] = []
    if selectors.tags:
        for el in soup.select(selectors.tags):
            tag = clean_text(el.get_text(" ", strip=True))
            if tag and tag not in tags:
                tags.append(tag)
    if not tags:
        tags = list(selectors.default_tags)

    cast: list[CastMember] = []
    if selectors.cast_item:
        for el in soup.select(selectors.cast_item):
            name = first_value(el, selectors.cast_name)
            if not name:
                continue
            role = first_value(el, selectors.cast_role)
            cast.append(
                CastMember(
                    name=name,
                    avatar_url=first_url(el, selectors.cast_avatar, base_url),
                    role="director" if "导演" in role else "actor",
                )
            )

    try:
        return DramaDetail(
            title=title,
            description=first_value(root, selectors.description),
            cover_url=first_url(root, selectors.cover, base_url),
            source_url=source_url,
            platform=platform,
            score=parse_score(first_value(root, selectors.score)) or 0.0,
            play_count=parse_play_count(first_value(root, selectors.play_count)),
            like_count=parse_play_count(first_value(root, selectors.like_count)),
            comment_count=parse_play_count(first_value(root, selectors.comment_count)),
            tags=tags,
            cast=cast,
            status=first_value(root, selectors.status) or selectors.default_status,
        )
    except ValidationError as e:
        extraction_failures_total.labels(platform=platform or "unknown").inc()
        raise ValidationFailedError(platform, 1) from e
