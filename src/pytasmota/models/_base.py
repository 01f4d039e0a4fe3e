"""Base model for Tasmota reply payloads.

Every reply model inherits from :class:`TasmotaBaseModel` which
provides:

* frozen instances with unknown keys ignored, since Tasmota firmware
  versions add fields freely;
* population by field name as well as by the PascalCase wire alias;
* a ``raw`` dict that captures the original payload.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class TasmotaBaseModel(BaseModel):
    """Base for Tasmota reply models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict)
    """Original reply dict."""

    @model_validator(mode="before")
    @classmethod
    def _stash_raw(cls, values: Any) -> Any:
        """Stash the raw payload unless the caller provided one."""
        if not isinstance(values, dict):
            return values
        if "raw" in values:
            return values
        return {**values, "raw": dict(values)}
