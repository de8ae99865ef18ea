"""Configuration management for the ID extraction pipeline."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ollama
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "qwen2.5vl:7b"
    ollama_timeout: float = 30.0
    ollama_num_ctx: int = 4096

    # Input
    max_upload_bytes: int = 10 * 1024 * 1024
    render_dpi: int = 200

    # Processing
    max_workers: int = 4
    quality_gate: float = 0.7
    noise_threshold: float = 0.5
    validation_cache_size: int = 128

    # Extraction retry
    acceptance_score: float = 0.7
    max_retries: int = 2
    retry_backoff_seconds: float = 1.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
