"""
Runtime Configuration for EduConnect.

Provides a singleton RuntimeConfig read from environment variables once at
startup; main.py hands the values to the components it builds.

Usage:
    from config import runtime_config
    order = runtime_config.provider_order_list()
    timeout = runtime_config.timeout_for("Gemini")
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Any, List
from urllib.parse import quote_plus

# Canonical provider names, in the default fallback order
PROVIDER_NAMES = ("Gemini", "Perplexity", "OpenAI")


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


def _env_bool(key: str, default: str = "true") -> bool:
    return os.environ.get(key, default).strip().lower() in ("1", "true", "yes", "on")


def _build_database_url_default() -> str:
    """
    Build a PostgreSQL URL from env vars when DATABASE_URL is not explicitly set.

    Password is URL-encoded to avoid auth breakage with special characters.
    """
    explicit = os.environ.get("DATABASE_URL", "").strip()
    if explicit:
        return explicit

    user = os.environ.get("POSTGRES_USER", "educonnect").strip() or "educonnect"
    password = os.environ.get("POSTGRES_PASSWORD", "educonnect-local-dev")
    host = os.environ.get("POSTGRES_HOST", "localhost").strip() or "localhost"
    port = os.environ.get("POSTGRES_PORT", "5432").strip() or "5432"
    db = os.environ.get("POSTGRES_DB", "educonnect").strip() or "educonnect"

    safe_password = quote_plus(password)
    return f"postgresql://{user}:{safe_password}@{host}:{port}/{db}"


def normalize_provider_name(name: str) -> str:
    """Map a loosely written provider name onto its canonical form ("" if unknown)."""
    wanted = (name or "").strip().lower()
    for canonical in PROVIDER_NAMES:
        if canonical.lower() == wanted:
            return canonical
    return ""


@dataclass
class RuntimeConfig:
    """
    Service configuration; every value defaults from an environment variable.
    """

    # Provider credentials
    openai_api_key: str = field(default_factory=lambda: _first_env("OPENAI_API_KEY", "OPENAI_KEY", default=""))
    perplexity_api_key: str = field(default_factory=lambda: os.environ.get("PERPLEXITY_API_KEY", ""))
    gemini_api_key: str = field(default_factory=lambda: _first_env("GEMINI_API_KEY", "GOOGLE_API_KEY", default=""))

    # Model names
    model_openai: str = field(default_factory=lambda: os.environ.get("OPENAI_MODEL", "gpt-4o"))
    model_perplexity: str = field(
        default_factory=lambda: os.environ.get("PERPLEXITY_MODEL", "llama-3.1-sonar-small-128k-online")
    )
    model_gemini: str = field(default_factory=lambda: os.environ.get("GEMINI_MODEL", "gemini-1.5-pro"))

    perplexity_base_url: str = field(
        default_factory=lambda: os.environ.get("PERPLEXITY_BASE_URL", "https://api.perplexity.ai").rstrip("/")
    )

    # Per-provider timeouts (seconds)
    openai_timeout_s: float = field(default_factory=lambda: float(os.environ.get("OPENAI_TIMEOUT_S", "30")))
    perplexity_timeout_s: float = field(default_factory=lambda: float(os.environ.get("PERPLEXITY_TIMEOUT_S", "30")))
    gemini_timeout_s: float = field(default_factory=lambda: float(os.environ.get("GEMINI_TIMEOUT_S", "30")))

    # Sampling parameters
    temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.2")))
    top_p: float = field(default_factory=lambda: float(os.environ.get("LLM_TOP_P", "0.8")))
    top_k: int = field(default_factory=lambda: int(os.environ.get("LLM_TOP_K", "40")))
    max_output_tokens: int = field(default_factory=lambda: int(os.environ.get("LLM_MAX_OUTPUT_TOKENS", "1024")))

    # Fallback order; the first entry is the primary provider
    provider_order: str = field(
        default_factory=lambda: os.environ.get("PROVIDER_ORDER", ",".join(PROVIDER_NAMES))
    )
    stream_provider: str = field(default_factory=lambda: os.environ.get("STREAM_PROVIDER", "Perplexity"))

    # Remote store (PostgreSQL)
    database_url: str = field(default_factory=_build_database_url_default)
    database_enabled: bool = field(default_factory=lambda: _env_bool("DATABASE_ENABLED", "true"))
    database_pool_size: int = field(default_factory=lambda: int(os.environ.get("DATABASE_POOL_SIZE", "5")))
    remote_store_timeout_s: float = field(
        default_factory=lambda: float(os.environ.get("REMOTE_STORE_TIMEOUT_S", "5"))
    )

    # Local SQLite files
    local_cache_path: str = field(
        default_factory=lambda: os.environ.get("LOCAL_CACHE_PATH", "./data/chat_cache.sqlite3")
    )
    post_db_path: str = field(default_factory=lambda: os.environ.get("POST_DB_PATH", "./data/posts.sqlite3"))

    # Feed / history sizes
    chat_history_limit: int = field(default_factory=lambda: int(os.environ.get("CHAT_HISTORY_LIMIT", "50")))
    trending_limit: int = field(default_factory=lambda: int(os.environ.get("TRENDING_LIMIT", "10")))

    # Auth
    jwt_secret: str = field(default_factory=lambda: os.environ.get("JWT_SECRET", "educonnect-dev-secret"))
    jwt_expiry_hours: int = field(default_factory=lambda: int(os.environ.get("JWT_EXPIRY_HOURS", "24")))

    # HTTP
    cors_origins: str = field(
        default_factory=lambda: os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173")
    )
    log_level: str = field(default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO").upper())

    def provider_order_list(self) -> List[str]:
        """Get the fallback order as canonical provider names."""
        names = [normalize_provider_name(p) for p in self.provider_order.split(",")]
        return [n for n in names if n] or list(PROVIDER_NAMES)

    @property
    def primary_provider(self) -> str:
        return self.provider_order_list()[0]

    def api_key_for(self, provider: str) -> str:
        return {
            "OpenAI": self.openai_api_key,
            "Perplexity": self.perplexity_api_key,
            "Gemini": self.gemini_api_key,
        }.get(provider, "")

    def model_for(self, provider: str) -> str:
        return {
            "OpenAI": self.model_openai,
            "Perplexity": self.model_perplexity,
            "Gemini": self.model_gemini,
        }.get(provider, "")

    def timeout_for(self, provider: str) -> float:
        return {
            "OpenAI": self.openai_timeout_s,
            "Perplexity": self.perplexity_timeout_s,
            "Gemini": self.gemini_timeout_s,
        }.get(provider, 30.0)

    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as a dictionary (secrets masked)."""
        result = {}
        for key in self.__dataclass_fields__:
            value = getattr(self, key)
            if key.endswith("api_key") or key in ("jwt_secret", "database_url"):
                value = "***" if value else ""
            result[key] = value
        return result


# Global singleton instance
runtime_config = RuntimeConfig()
