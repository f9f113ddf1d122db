"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("offerbot.config")


class Settings(BaseSettings):
    # NLU
    llm_provider: str = "claude"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-haiku-latest"
    ollama_model: str = "qwen2.5:7b"
    ollama_url: str = "http://localhost:11434"
    nlu_temperature_extract: float = 0.2
    nlu_temperature_reply: float = 0.7

    # Messaging gateway
    gateway_url: str = "http://localhost:3001"
    gateway_token: str = ""
    send_delay_seconds: float = 0.0

    # Stores
    session_backend: str = "memory"  # "memory" or "json"
    session_path: str = "data/sessions.json"
    catalog_dir: str = "listings/sample_data"

    # Catalog
    catalog_base_url: str = "https://nimmo-auto.com"
    catalog_upstream_url: str = "https://nimmo-auto.com/api/v1/produits"

    # Dialogue
    history_limit: int = 20
    default_language: str = "fr"
    # Ambiguous selection with several offers falls back to the last one
    selection_fallback_last: bool = True

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        warnings: list[str] = []
        _placeholders = {"sk-ant-...", "changeme", "your-api-key"}

        if self.llm_provider not in ("claude", "ollama"):
            raise ValueError(
                f"LLM_PROVIDER must be 'claude' or 'ollama', got {self.llm_provider!r}."
            )

        # Anthropic key is required for the claude provider
        if self.llm_provider == "claude":
            if not self.anthropic_api_key or self.anthropic_api_key in _placeholders:
                raise ValueError(
                    "ANTHROPIC_API_KEY is missing or still a placeholder. "
                    "Set it in .env to use Claude."
                )

        if self.session_backend not in ("memory", "json"):
            raise ValueError(
                f"SESSION_BACKEND must be 'memory' or 'json', got {self.session_backend!r}."
            )

        # Warn if the admin API key is unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        if not self.gateway_token:
            warnings.append(
                "GATEWAY_TOKEN not set. The inbound webhook accepts unauthenticated events."
            )

        if self.session_backend == "memory":
            warnings.append("SESSION_BACKEND=memory: sessions are lost on restart.")

        return warnings


settings = Settings()
