"""
Vehicle Search Configuration
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "info"

    # Sessions
    session_ttl_minutes: int = 30
    session_sweep_interval_seconds: float = 60.0
    max_turns_per_session: int = 50

    # Search
    default_max_results: int = 10
    backend_timeout_seconds: float = 2.5
    request_timeout_seconds: float = 3.0
    backend_retry_backoff_seconds: float = 0.1
    rrf_k: int = 60
    hybrid_candidate_multiplier: int = 3

    # Reranking of hybrid results
    diversity_max_per_make: int = 3
    diversity_max_per_model: int = 2

    # Backends ("memory" | "supabase" and "memory" | "http")
    exact_backend: str = "memory"
    semantic_backend: str = "memory"
    catalog_path: Optional[str] = None

    # Supabase
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_vehicles_table: str = "vehicles"

    # Semantic similarity service
    semantic_service_url: Optional[str] = None
    semantic_service_api_key: Optional[str] = None

    # Guardrail
    guardrail_enabled: bool = True
    query_min_length: int = 2
    query_max_length: int = 500

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
