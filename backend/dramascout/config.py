import logging

from pydantic_settings import BaseSettings

_logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App
    APP_NAME: str = "DramaScout"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Browser session
    BROWSER_HEADLESS: bool = True
    BROWSER_LAUNCH_TIMEOUT: int = 60000  # ms
    SESSION_START_RETRIES: int = 3
    SESSION_START_BACKOFF: int = 5000  # ms, first retry
    SESSION_START_BACKOFF_STEP: int = 2000  # ms added per attempt
    BROWSER_LOCALE: str = "zh-CN"
    BROWSER_TIMEZONE: str = "Asia/Shanghai"

    # Navigation
    DEFAULT_TIMEOUT: int = 30000  # ms
    MAX_RETRIES: int = 3
    REQUEST_DELAY_MIN: int = 1000  # ms
    REQUEST_DELAY_MAX: int = 3000  # ms
    RETRY_DELAY_MIN: int = 5000  # ms, between executeWithRetry attempts
    RETRY_DELAY_MAX: int = 10000  # ms
    HTTP_REQUEST_TIMEOUT: float = 15.0  # seconds

    # Anti-bot
    MITIGATION_DELAY_MIN: int = 3000  # ms
    MITIGATION_DELAY_MAX: int = 8000  # ms
    MIN_CONTENT_LENGTH: int = 500  # visible characters

    # Orchestration
    MAX_CONCURRENT_SOURCES: int = 4
    HEALTH_CHECK_TIMEOUT: float = 10.0  # seconds
    TASK_STORE_MAX_SIZE: int = 500

    # Diagnostics
    DIAGNOSTICS_ENABLED: bool = True
    DEBUG_DIR: str = "debug"

    # Logging
    LOG_FORMAT: str = "json"  # "json" for production, "text" for development
    LOG_LEVEL: str = "INFO"

    # Metrics
    METRICS_ENABLED: bool = True

    def model_post_init(self, __context) -> None:
        if self.REQUEST_DELAY_MIN > self.REQUEST_DELAY_MAX:
            _logger.warning(
                "REQUEST_DELAY_MIN (%d) exceeds REQUEST_DELAY_MAX (%d), swapping",
                self.REQUEST_DELAY_MIN,
                self.REQUEST_DELAY_MAX,
            )
            lo, hi = self.REQUEST_DELAY_MAX, self.REQUEST_DELAY_MIN
            object.__setattr__(self, "REQUEST_DELAY_MIN", lo)
            object.__setattr__(self, "REQUEST_DELAY_MAX", hi)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
