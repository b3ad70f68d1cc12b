"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # LLM
    anthropic_api_key: str = ""
    parser_model: str = "claude-sonnet-4-20250514"
    parser_max_tokens: int = 1024

    # Pipeline compilation
    work_dir: str = "/tmp/video-processing"
    source_name: str = "input.mp4"
    default_silence_threshold_db: float = -30.0
    captions_filename: str = "captions.srt"

    # Execution
    ffmpeg_binary: str = "ffmpeg"
    ffmpeg_timeout_sec: int = 600

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API
    allowed_origins: str = ""


settings = Settings()
