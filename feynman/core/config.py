from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="FEYNMAN_", extra="ignore")

    # Agent websocket endpoint
    WS_URL: str = Field(default="ws://localhost:3000/ws", description="Feynman agent websocket URL")
    OPEN_TIMEOUT: float = Field(default=10.0, description="Seconds to wait for the opening handshake")
    PING_INTERVAL: float = Field(default=20.0)
    MAX_FRAME_SIZE: int = Field(default=4 * 1024 * 1024)

    # Local session list
    STORAGE_DIR: str = Field(default="/tmp/feynman")
    STORAGE_FILE: str = Field(default="sessions.json")
    STORAGE_KEY: str = Field(default="feynman:sessions")

    # Session timers (seconds)
    ELAPSED_TICK_SEC: float = Field(default=1.0)
    TRANSCRIPT_TICK_SEC: float = Field(default=0.3)
    THINKING_DELAY_SEC: float = Field(default=0.8)
    SPEAKING_DELAY_SEC: float = Field(default=0.8)

    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()
