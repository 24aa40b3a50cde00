"""
Environment-driven settings for lokiship using Pydantic v2 Settings.

Every option of `LokiConfig` can be supplied as a ``LOKISHIP_*`` environment
variable. Labels accept either a JSON object or the compact
``"key1:value1,key2:value2"`` form.
"""

from __future__ import annotations

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import (  # type: ignore[import-not-found]
    BaseSettings,
    NoDecode,
    SettingsConfigDict,
)

from .config import LokiConfig, parse_key_value_labels


def _decode_mapping(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if text.startswith("{"):
        return json.loads(text)
    return parse_key_value_labels(text)


class Settings(BaseSettings):
    """Top-level configuration read from the environment."""

    url: str | None = Field(default=None, description="Loki push endpoint URL")
    token: str | None = Field(default=None, description="Bearer token")
    username: str | None = Field(default=None, description="Basic auth username")
    password: str | None = Field(default=None, description="Basic auth password")
    tenant_id: str | None = Field(
        default=None, description="Tenant sent as X-Scope-OrgID"
    )
    labels: Annotated[dict[str, str], NoDecode] = Field(
        default_factory=dict,
        description="Static labels applied to every stream",
    )
    headers: Annotated[dict[str, str], NoDecode] = Field(
        default_factory=dict,
        description="Extra HTTP headers sent with each push",
    )
    batch: bool = Field(default=True, description="Accumulate entries into batches")
    batch_size: int = Field(
        default=10,
        ge=1,
        description="Number of buffered entries that triggers a flush",
    )
    batch_timeout_ms: float = Field(
        default=2500.0,
        gt=0.0,
        description="Maximum age of a partial batch before it is flushed",
    )
    request_timeout_seconds: float = Field(
        default=2.0, gt=0.0, description="Per-request HTTP timeout"
    )
    shutdown_timeout_seconds: float = Field(
        default=3.0,
        gt=0.0,
        description="How long shutdown waits for in-flight requests",
    )
    atexit_drain_timeout_seconds: float = Field(
        default=5.0,
        gt=0.0,
        description="Upper bound for the interpreter-exit drain",
    )
    internal_logging_enabled: bool = Field(
        default=False,
        description="Emit WARN/DEBUG diagnostics for internal errors",
    )
    metrics_enabled: bool = Field(
        default=False, description="Enable Prometheus-compatible metrics"
    )

    model_config = SettingsConfigDict(
        env_prefix="LOKISHIP_",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("labels", "headers", mode="before")
    @classmethod
    def _parse_mapping(cls, value: Any) -> Any:
        return _decode_mapping(value)

    def to_config(self, **overrides: Any) -> LokiConfig:
        data = self.model_dump(
            include={
                "url",
                "token",
                "username",
                "password",
                "tenant_id",
                "labels",
                "headers",
                "batch",
                "batch_size",
                "batch_timeout_ms",
                "request_timeout_seconds",
                "shutdown_timeout_seconds",
            }
        )
        data.update(overrides)
        return LokiConfig.model_validate(data)


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (Settings._parse_mapping,)
