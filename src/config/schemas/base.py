"""Base model shared by the engine configuration schemas."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Immutable schema base; unknown keys in YAML are rejected."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)
