from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields in .env without raising errors
    )

    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8080)
    log_level: str = Field(default="INFO")

    # Stream endpoint
    stream_path: str = Field(default="/stream")
    stream_app: Literal["echo", "ivr"] = Field(default="echo")
    stream_greeting: str = Field(default="Hello World")
    max_concurrent_streams: int = Field(default=10)
    # Seconds a worker thread waits for the event loop to flush a frame
    send_timeout_seconds: float = Field(default=5.0)

    # IVR example: directory holding <prompt>.raw audio files
    ivr_audio_dir: str = Field(default="audio")


settings = Settings()
