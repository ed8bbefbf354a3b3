"""Configuration management using Pydantic Settings."""

from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file."""

    model_config = SettingsConfigDict(
        env_prefix="MSTAT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Heterogeneity estimation defaults
    estimator: str = Field("DL", pattern="^(DL|REML)$")
    alpha: float = Field(0.05, gt=0, le=1)
    on_convergence_failure: str = Field("abort", pattern="^(abort|exclude)$")

    # REML Fisher scoring controls
    reml_tol: float = Field(1e-5, gt=0)
    reml_max_iter: int = Field(10_000, ge=1)
    reml_step_adj: float = Field(0.5, gt=0, le=1)

    # Per-variant fan-out (1 = serial)
    n_workers: int = Field(1, ge=1, le=256)

    # Directories
    output_dir: Path = Field(Path("output"))

    # Logging
    log_level: str = Field("INFO")
    log_format: str = Field("text", pattern="^(json|text)$")


# Instantiate global settings
settings = Settings()
