"""Central configuration via Pydantic Settings. All values driven by env vars."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # LLM (answer generation + relevance scoring backend)
    llm_provider: Literal["gemini", "openai"] = "gemini"
    gemini_model: str = "gemini-2.0-flash"
    openai_chat_model: str = "gpt-3.5-turbo"
    generation_temperature: float = 0.7
    generation_max_tokens: int = 1000

    # Embedding
    embedding_model: str = "text-embedding-3-small"
    embedding_dimensions: int = 1536

    # Query defaults (bounds are fixed in config.constants)
    default_top_k: int = 5
    default_score_threshold: float = 0.7
    default_enable_reranking: bool = True

    # LLM reranking
    scorer_timeout_seconds: float = 10.0
    scorer_max_concurrency: int = 20

    # Content policy
    policy_redaction_token: str = "[REDACTED]"
    policy_extra_toxic_terms: list[str] = []
    policy_extra_org_patterns: dict[str, str] = {}

    # Storage paths
    sqlite_collection_db_path: str = "data/collections.db"
    sqlite_trace_db_path: str = "data/traces.db"
    faiss_index_path: str = "data/faiss_index"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Auth / JWT
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expiry_minutes: int = 60
    api_keys: str = ""  # comma-separated api_key:user_id pairs

    # Rate limiting
    rate_limit_requests_per_minute: int = 50

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True

    model_config = {"env_file": ".env", "env_prefix": "GUARDRAG_"}

    def api_key_owners(self) -> dict[str, str]:
        """Parse ``api_keys`` into an {api_key: user_id} mapping."""
        owners: dict[str, str] = {}
        for pair in self.api_keys.split(","):
            key, sep, user_id = pair.strip().partition(":")
            if key and sep and user_id:
                owners[key] = user_id
        return owners
