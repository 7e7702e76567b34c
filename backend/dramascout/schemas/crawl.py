import enum
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator

from dramascout.schemas.drama import DramaDetail, ExtractedRecord


class TaskKind(str, enum.Enum):
    DRAMA_LIST = "drama_list"
    RANKING = "ranking"
    DETAIL = "detail"
    HEALTH_CHECK = "health_check"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class CrawlOptions(BaseModel):
    """Per-run options. Unknown keys are ignored."""

    model_config = {"extra": "ignore"}

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    limit: int = Field(default=50, ge=1)  # ranking size
    type: str = "hot"  # ranking type: hot, new, recommend
    category: str = ""
    drama_id: str | None = None
    headless: bool | None = None
    max_concurrency: int | None = Field(default=None, ge=1)
    timeout: int = Field(default=30000, ge=1)  # ms, per navigation
    max_retries: int = Field(default=3, ge=1)
    request_delay_min: int = Field(default=1000, ge=0)  # ms
    request_delay_max: int = Field(default=3000, ge=0)  # ms

    @field_validator("type", mode="before")
    @classmethod
    def _default_type(cls, v: str | None) -> str:
        return v or "hot"


class PlatformResult(BaseModel):
    success: bool
    platform: str
    data: list[ExtractedRecord] | DramaDetail | dict[str, Any] | None = None
    error: str | None = None

    @property
    def record_count(self) -> int:
        if isinstance(self.data, list):
            return len(self.data)
        return 1 if self.data else 0


class BatchSummary(BaseModel):
    total: int = 0
    successful: int = 0
    failed: int = 0
    total_data: int = 0


class BatchResult(BaseModel):
    success: bool
    results: list[PlatformResult] = []
    summary: BatchSummary = BatchSummary()


class PlatformHealth(BaseModel):
    platform: str
    status: str  # healthy | error
    error: str | None = None


class HealthReport(BaseModel):
    overall: bool
    platforms: list[PlatformHealth] = []


class CrawlTask(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sources: list[str]
    kind: TaskKind
    status: TaskStatus = TaskStatus.PENDING
    progress: int = Field(default=0, ge=0, le=100)
    options: CrawlOptions = CrawlOptions()
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: datetime | None = None
    result: BatchResult | PlatformResult | HealthReport | None = None
    error: str | None = None
