from __future__ import annotations
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ZB_", env_file=".env", extra="ignore")

    # Zulip account
    server: str = Field(default="https://chat.zulip.org", description="Zulip server base URL, without /api/v1.")
    login: str = Field(default="", description="Bot email. Messages sent from it are never relayed back.")
    token: str = Field(default="", description="Bot API key.")
    topic: str = Field(default="", description="Default topic for channels without a bound topic.")
    account: str = Field(default="zulip.main", description="Account tag stamped on relayed messages.")

    # Poll loop
    backoff_sleep_s: float = Field(default=5.0)
    unavailable_sleep_s: float = Field(default=10.0)
    recover_sleep_s: float = Field(default=10.0)
    idle_sleep_s: float = Field(default=3.0)
    handoff_timeout_s: float = Field(default=30.0, description="Max wait for the bus to accept an inbound message.")
    # Zulip holds long-poll requests for up to ~90s before answering with a heartbeat.
    request_timeout_s: float = Field(default=90.0)
    connect_retries: int = Field(default=3)
    recover_alert_threshold: int = Field(default=6, description="Consecutive failed queue recoveries before alerting.")

    # Relay
    media_download_size: int = Field(default=1_000_000)
    bus_queue_size: int = Field(default=1000)

    # Network
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8788)
    metrics_path: str = Field(default="/metrics")
    health_path: str = Field(default="/healthz")

    # Logging
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    @property
    def api_url(self) -> str:
        return self.server.rstrip("/") + "/api/v1/"

def load_settings() -> Settings:
    return Settings()
