"""Configuration management for the candle builder."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

try:  # pragma: no cover - import shim for Python < 3.11
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # pragma: no cover - fallback for older interpreters
    import tomli as tomllib  # type: ignore[no-redef]

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from candle_builder.data.adapters import ADAPTERS, ExchangeAdapter, create_adapter
from candle_builder.data.termination import TerminationPolicy
from candle_builder.utils import Duration


class HttpSettings(BaseModel):
    """Exchange REST connection parameters."""

    timeout_seconds: float = Field(15.0, gt=0.0, description="Per-request timeout")
    user_agent: str = Field("candle-builder/0.1")


class StorageSettings(BaseModel):
    """Candle store location."""

    root: Path = Field(Path("data/candles"), description="Root directory of the Parquet candle store")


class RetrySettings(BaseModel):
    """Run-level retry policy applied around a whole feed build."""

    attempts: int = Field(1, ge=1, description="Total build attempts per feed; 1 disables retries")
    max_wait_seconds: float = Field(30.0, ge=0.0)


class FeedSettings(BaseModel):
    """One exchange feed to build candles for."""

    adapter: str = Field("binance_aggtrades", description="Registered adapter kind")
    symbol: str = Field("LSKBTC")
    base_url: str | None = Field(None, description="Optional override for the exchange REST endpoint")
    durations: List[Duration] = Field(default_factory=list, description="Empty means the adapter defaults")
    termination: TerminationPolicy = Field(TerminationPolicy.MIN_MAX)
    limit: int = Field(1000, ge=1, le=1000, description="Records requested per page")
    initial_cursor: int | None = Field(None, ge=0, description="First cursor when nothing is stored yet")

    @field_validator("adapter")
    @classmethod
    def _known_adapter(cls, value: str) -> str:
        if value not in ADAPTERS:
            raise ValueError(f"Unsupported adapter '{value}' (expected one of {sorted(ADAPTERS)})")
        return value

    @property
    def key(self) -> str:
        return f"{self.adapter}-{self.symbol.upper()}"

    def build_adapter(self) -> ExchangeAdapter:
        return create_adapter(
            self.adapter,
            self.symbol,
            base_url=self.base_url,
            durations=self.durations or None,
            termination=self.termination,
            limit=self.limit,
            initial_cursor=self.initial_cursor,
        )


class AppSettings(BaseSettings):
    """Application-wide configuration composed from individual domains."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_nested_delimiter="__",
        env_file=".env",
    )

    http: HttpSettings = HttpSettings()
    storage: StorageSettings = StorageSettings()
    retry: RetrySettings = RetrySettings()
    resume: bool = Field(True, description="Resume from the stored high-water id instead of rebuilding")
    feeds: List[FeedSettings] = Field(default_factory=lambda: [FeedSettings()])


def load_settings(path: Optional[Path] = None) -> AppSettings:
    """Load settings from a TOML file, falling back to environment variables."""

    if path is None:
        path = Path("config/settings.toml")

    if path.exists():
        raw_data = tomllib.loads(path.read_text())
        return AppSettings.model_validate(raw_data)

    try:
        return AppSettings()
    except ValidationError as exc:  # pragma: no cover - defensive guard
        raise RuntimeError(
            f"Unable to load configuration. Provide {path} or the relevant environment variables."
        ) from exc
