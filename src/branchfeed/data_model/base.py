"""Pydantic base shared by story, tracker and ranking models."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Immutable model that rejects unknown fields.

    Snapshots and candidates are handed to callers as read-only views, so every
    domain model derives from this base.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
