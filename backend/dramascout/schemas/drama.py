from datetime import date, datetime, timezone

from pydantic import BaseModel, Field, field_validator

from dramascout.services.text_utils import clean_text, is_absolute_url

TITLE_MIN_LENGTH = 2
TITLE_MAX_LENGTH = 100

# Titles carrying these markers are fixtures/placeholders, never real content
PLACEHOLDER_TITLE_MARKERS = ("测试", "test", "demo", "示例", "example", "mock", "模拟")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_title(value: str) -> str:
    title = clean_text(value)
    if not title:
        raise ValueError("title is empty")
    if not TITLE_MIN_LENGTH <= len(title) <= TITLE_MAX_LENGTH:
        raise ValueError(
            f"title length {len(title)} outside [{TITLE_MIN_LENGTH}, {TITLE_MAX_LENGTH}]"
        )
    lowered = title.lower()
    for marker in PLACEHOLDER_TITLE_MARKERS:
        if marker in lowered:
            raise ValueError(f"title looks like placeholder data ({marker!r})")
    return title


class ExtractedRecord(BaseModel):
    """A single list/ranking item extracted from a source page."""

    title: str
    description: str = ""
    cover_url: str = ""
    source_url: str | None = None
    platform: str = ""
    category_signal: bool | None = None  # classifier verdict: short-form?
    score: float | None = None
    play_count: int | None = None
    status: str = "ongoing"
    episode_count: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title", mode="before")
    @classmethod
    def _check_title(cls, v: str) -> str:
        return validate_title(v or "")

    @field_validator("description", mode="before")
    @classmethod
    def _clean_description(cls, v: str | None) -> str:
        return clean_text(v)

    @field_validator("source_url", mode="before")
    @classmethod
    def _check_source_url(cls, v: str | None) -> str | None:
        if not v:
            return None
        if not is_absolute_url(v):
            raise ValueError(f"source_url is not an absolute URL: {v!r}")
        return v

    @field_validator("cover_url", mode="before")
    @classmethod
    def _check_cover_url(cls, v: str | None) -> str:
        # Cover is optional: an unusable value is dropped, not fatal
        return v if is_absolute_url(v) else ""


class CastMember(BaseModel):
    name: str
    avatar_url: str = ""
    role: str = "actor"  # actor, director


class DramaDetail(BaseModel):
    """Full record for a single drama detail page."""

    title: str
    description: str = ""
    cover_url: str = ""
    source_url: str
    platform: str = ""
    score: float = 0.0
    play_count: int = 0
    like_count: int = 0
    comment_count: int = 0
    tags: list[str] = []
    cast: list[CastMember] = []
    status: str = "更新中"
    release_date: date = Field(default_factory=lambda: _utcnow().date())
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title", mode="before")
    @classmethod
    def _check_title(cls, v: str) -> str:
        return validate_title(v or "")

    @field_validator("source_url", mode="before")
    @classmethod
    def _check_source_url(cls, v: str) -> str:
        if not is_absolute_url(v):
            raise ValueError(f"source_url is not an absolute URL: {v!r}")
        return v
