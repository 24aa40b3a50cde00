"""
Validated, immutable configuration for a Loki shipper.

`LokiConfig` is the single source of truth consumed by the accumulator,
the coordinator and the HTTP transport. A missing ``url`` is not a
validation error: it produces a config whose ``enabled`` flag is False so
the shipper can degrade to a no-op instead of failing the host application.
"""

from __future__ import annotations

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["AuthMode", "LokiConfig", "parse_config", "parse_key_value_labels"]

AuthMode = Literal["none", "bearer", "basic"]


def parse_key_value_labels(values: str | None) -> dict[str, str]:
    """Parse ``"key1:value1,key2:value2"`` into a label mapping.

    Empty pairs are skipped. Only the first ``:`` splits key from value, so
    values may contain colons (``"url:http://x"``).
    """
    result: dict[str, str] = {}
    if not values:
        return result
    for pair in values.split(","):
        pair = pair.strip()
        if not pair:
            continue
        key, _, value = pair.partition(":")
        key = key.strip()
        if key:
            result[key] = value.strip()
    return result


class LokiConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)  # fmt: skip

    url: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    batch: bool = True
    batch_size: int = Field(default=10, ge=1)
    batch_timeout_ms: float = Field(default=2500.0, gt=0.0)
    token: str | None = None
    username: str | None = None
    password: str | None = None
    tenant_id: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    request_timeout_seconds: float = Field(default=2.0, gt=0.0)
    shutdown_timeout_seconds: float = Field(default=3.0, gt=0.0)

    @field_validator("url", "token", "username", "password", "tenant_id")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("labels", "headers", mode="before")
    @classmethod
    def _coerce_mapping(cls, value: Mapping[str, Any] | str | None) -> dict[str, str]:
        if value is None:
            return {}
        if isinstance(value, str):
            return parse_key_value_labels(value)
        return {str(k): str(v) for k, v in dict(value).items()}

    @property
    def enabled(self) -> bool:
        return self.url is not None

    @property
    def batch_timeout_seconds(self) -> float:
        return self.batch_timeout_ms / 1000.0

    @property
    def auth_mode(self) -> AuthMode:
        if self.token:
            return "bearer"
        if self.username and self.password:
            return "basic"
        return "none"

    @property
    def has_conflicting_auth(self) -> bool:
        return bool(self.token and (self.username or self.password))


def parse_config(
    config: LokiConfig | Mapping[str, Any] | None = None, **overrides: Any
) -> LokiConfig:
    """Build a `LokiConfig` from a model, a mapping, or keyword arguments.

    Keyword overrides win over values in ``config``.
    """
    if isinstance(config, LokiConfig):
        if not overrides:
            return config
        data = config.model_dump()
    else:
        data = dict(config or {})
    data.update(overrides)
    return LokiConfig.model_validate(data)


# Mark Pydantic validators as used for vulture
_VULTURE_USED: tuple[object, ...] = (
    LokiConfig._blank_to_none,
    LokiConfig._coerce_mapping,
)
