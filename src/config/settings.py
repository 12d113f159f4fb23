# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for all deployment-specific settings: pool endpoints,
tier/role tables, scorer tuning, parser limits, build runner polling and
logging.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === MODEL POOL ===
    pool_endpoints: str = "http://localhost:1234/v1"
    pool_api_key: str = "lm-studio"
    pool_max_slots_per_model: int = 3
    pool_slot_timeout_s: float = 600.0
    pool_probe_timeout_s: float = 10.0
    # model=role pairs, e.g. "qwen2.5-coder-32b=builder,llama-3.1-8b=planner"
    pool_role_assignments: str = ""

    # === TIERS ===
    # model=tier pairs, e.g. "qwen2.5-coder-32b=powerful"
    model_tiers: str = ""
    tier_inference_fallback: bool = True

    # === OUTCOME SCORER ===
    scorer_decay_rate: float = 0.1
    scorer_confidence_saturation: int = 10
    scorer_neutral_prior: float = 0.5
    scorer_outcome_capacity: int = 1000
    scorer_score_capacity: int = 500
    scorer_w_quality: float = 0.35
    scorer_w_success: float = 0.25
    scorer_w_speed: float = 0.15
    scorer_w_error: float = 0.15
    scorer_w_refinement: float = 0.10
    scorer_upgrade_max_score: float = 0.4
    scorer_upgrade_min_confidence: float = 0.5
    scorer_downgrade_min_score: float = 0.6
    scorer_downgrade_min_confidence: float = 0.3

    # === OUTPUT PARSER ===
    parser_max_output_length: int = 50_000
    parser_stats_capacity: int = 100
    parser_clean_artifacts: bool = True
    parser_extract_code_blocks: bool = True
    parser_validate_json: bool = True
    parser_detect_truncation: bool = True

    # === BUILD ===
    build_context_separator: str = "\n\n"
    build_acquire_timeout_s: float = 30.0
    build_acquire_poll_s: float = 0.5
    build_default_role: Literal["planner", "builder", "reviewer", "any"] = "builder"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 30

    # --- Validators ---

    @field_validator("pool_max_slots_per_model")
    @classmethod
    def validate_max_slots(cls, v: int) -> int:  # noqa: N805
        """POOL_MAX_SLOTS_PER_MODEL must be within 1..10."""
        if not 1 <= v <= 10:
            raise ValueError("pool_max_slots_per_model must be between 1 and 10")
        return v

    @field_validator(
        "scorer_confidence_saturation",
        "scorer_outcome_capacity",
        "scorer_score_capacity",
        "parser_max_output_length",
        "parser_stats_capacity",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:  # noqa: N805
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        weights = (
            self.scorer_w_quality,
            self.scorer_w_success,
            self.scorer_w_speed,
            self.scorer_w_error,
            self.scorer_w_refinement,
        )
        if any(w < 0 for w in weights):
            errors.append("SCORER_W_* weights must be non-negative")
        if abs(sum(weights) - 1.0) > 1e-6:
            errors.append(f"SCORER_W_* weights must sum to 1.0 (got {sum(weights):.4f})")

        if self.scorer_decay_rate < 0:
            errors.append("SCORER_DECAY_RATE must be >= 0")

        if self.build_acquire_poll_s <= 0:
            errors.append("BUILD_ACQUIRE_POLL_S must be > 0")

        if not self.pool_endpoints_list:
            errors.append("POOL_ENDPOINTS must list at least one endpoint")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def pool_endpoints_list(self) -> list[str]:
        """Parse comma-separated pool endpoints."""
        return [e.strip() for e in self.pool_endpoints.split(",") if e.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or embedding).

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
