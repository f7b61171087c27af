"""Configuration for the backend using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent.parent  # src/dadafarin/ → project root


class Settings(BaseSettings):
    """All backend settings, loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Chat model: DeepSeek (OpenAI-compatible API)
    # ------------------------------------------------------------------
    deepseek_api_key: str = ""
    deepseek_base_url: str = "https://api.deepseek.com/v1"
    chat_model: str = "deepseek-chat"
    chat_temperature: float = 1.0
    model_timeout_seconds: float = 60.0

    # ------------------------------------------------------------------
    # Embedding model: OpenAI
    # ------------------------------------------------------------------
    openai_api_key: str = ""
    openai_base_url: str | None = None
    embedding_model: str = "text-embedding-3-large"
    embedding_batch_size: int = 100

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------
    documents_dir: Path = _PROJECT_ROOT / "data"
    vector_store_path: Path = _PROJECT_ROOT / "vector-store" / "docs.json"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    retrieval_k: int = 5
    similarity_threshold: float = 0.1

    # ------------------------------------------------------------------
    # In-memory conversation registry
    # ------------------------------------------------------------------
    conversation_ttl_seconds: float = 2 * 60 * 60
    reaper_interval_seconds: float = 30 * 60
    max_messages_in_memory: int = 50  # ~25 exchanges plus the system prompt

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------
    db_path: Path = _PROJECT_ROOT / "database" / "dadafarin.sqlite"

    # ------------------------------------------------------------------
    # Auth (JWT) and subscriptions
    # ------------------------------------------------------------------
    jwt_secret: str = "dev-secret-change-in-production!!"
    jwt_expiry_hours: int = 24
    signup_trial_days: int = 100
    timezone: str = "Asia/Tehran"

    # ------------------------------------------------------------------
    # Payments: Bitpay gateway
    # ------------------------------------------------------------------
    bitpay_api_key: str = ""
    bitpay_send_url: str = "https://bitpay.ir/payment/gateway-send"
    bitpay_verify_url: str = "https://bitpay.ir/payment/gateway-result-second"
    bitpay_gateway_url_template: str = "https://bitpay.ir/payment/gateway-{id_get}-get"
    public_base_url: str = "http://localhost:8000"
    rial_multiplier: int = 10000
    payment_timeout_seconds: float = 10.0
    # hours → price, inserted only when the prices table is empty
    default_prices: dict[int, float] = Field(
        default_factory=lambda: {1: 10, 24: 50, 168: 200, 720: 500}
    )

    # ------------------------------------------------------------------
    # Observability: "off", "logfire" or "otel"
    # ------------------------------------------------------------------
    observability: str = "off"
    otel_service_name: str = "dadafarin-backend"
    otel_exporter_otlp_endpoint: str = "http://localhost:4318"
    otel_console_exporter: bool = False

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = "INFO"
    log_json: bool = False

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------
    def validate_runtime(self) -> None:
        """Check that all required values are present.

        Call this at application startup (not at import time) so that
        tests can override settings before validation runs.
        """
        if not self.deepseek_api_key:
            raise ValueError("DEEPSEEK_API_KEY not set. Add it to .env")
        if not self.openai_api_key:
            raise ValueError("OPENAI_API_KEY not set (needed for embeddings). Add it to .env")
        if self.chunk_overlap >= self.chunk_size:
            raise ValueError("CHUNK_OVERLAP must be smaller than CHUNK_SIZE.")


@lru_cache
def get_settings() -> Settings:
    """Return the cached Settings singleton."""
    return Settings()
