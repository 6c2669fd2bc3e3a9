"""Progress tracking models for mirror runs."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from playmirror.models.enums import Phase
from playmirror.models.results import ItemResult


class SyncProgress(BaseModel):
    """Progress update during a mirror run.

    Yielded by MirrorService.mirror() for every phase milestone.

    Attributes:
        phase: Current phase of the run.
        current: Number of items processed in the current phase.
        total: Total items in the current phase (0 if unknown).
        message: Optional status message.
        item_result: Outcome of the item that just finished (syncing phase).
    """

    model_config = ConfigDict(frozen=True)

    phase: Phase
    current: int
    total: int
    message: str | None = None
    item_result: ItemResult | None = None
