from __future__ import annotations

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    API_URL: str = "http://localhost:5000"
    WS_URL: str | None = None
    WS_PATH: str = "/ws/chat"

    AUTH_HEADER: str = "x-auth-token"
    AUTH_TOKEN: str = ""

    HTTP_TIMEOUT_SECONDS: float = 10.0

    RECONNECT_MAX_ATTEMPTS: int = 5
    RECONNECT_BASE_DELAY: float = 1.0
    RECONNECT_MAX_DELAY: float = 30.0

    PRESENCE_POLL_INTERVAL: float = 30.0
    HISTORY_PAGE_SIZE: int = 50

    OPTIMISTIC_MATCH_WINDOW_SECONDS: float = 30.0
    PREVIEW_MAX_LENGTH: int = 40

    SELECT_CONVERSATION: str | None = None
    LOG_LEVEL: str = "INFO"

    @property
    def ws_url(self) -> str:
        if self.WS_URL:
            return self.WS_URL
        base = self.API_URL.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://"):]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://"):]
        return base + self.WS_PATH

    model_config = ConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
