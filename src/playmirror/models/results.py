"""Sync, scheduling and reconciliation result models."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from playmirror.models.enums import ItemStatus
from playmirror.models.track import Manifest, SourceItem


class ItemResult(BaseModel):
    """Result of syncing a single Source Item.

    Attributes:
        item: The Source Item that was synced.
        status: Whether the item was copied or already up to date.
        normalized: Whether loudness normalization ran on the copy.
    """

    model_config = ConfigDict(frozen=True)

    item: SourceItem
    status: ItemStatus
    normalized: bool = False


class ScheduleReport(BaseModel):
    """Outcome of a BoundedScheduler run.

    Attributes:
        results: Return values of every operation that succeeded, in
            completion order.
        total: Number of submitted items.
        started: Number of items whose operation was started.
        completed: Number of items whose operation finished (success or error).
        cancelled: True if intake stopped because of the cancel token.
        error: First error raised by an operation, if any.

    Example:
        >>> report = scheduler.run(items, op)
        >>> report.raise_for_error()
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    results: list[Any] = Field(default_factory=list)
    total: int = 0
    started: int = 0
    completed: int = 0
    cancelled: bool = False
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        """True when every submitted item ran without error."""
        return self.error is None and not self.cancelled

    def raise_for_error(self) -> None:
        """Re-raise the first recorded error, if any.

        Cancellation without an error does not raise.
        """
        if self.error is not None:
            raise self.error


class ReconcilePlan(BaseModel):
    """Leftover destination entries, in removal order.

    Attributes:
        leftovers: Root-relative paths (as found on disk), children before
            their parents.
    """

    model_config = ConfigDict(frozen=True)

    leftovers: list[str] = Field(default_factory=list)


class ReconcileResult(BaseModel):
    """Result of reconciling the destination tree.

    Attributes:
        removed: Root-relative paths that were removed (or would be, for a
            dry run), in removal order.
        dry_run: True if nothing was actually removed.
    """

    model_config = ConfigDict(frozen=True)

    removed: list[str] = Field(default_factory=list)
    dry_run: bool = False


class MirrorResult(BaseModel):
    """Complete result of a mirror run.

    Attributes:
        manifest: The manifest the run was built from.
        item_results: Per-item sync outcomes.
        playlist_paths: Destination playlists written.
        removed: Leftovers removed by reconciliation.
        cancelled: True if the run was interrupted before finishing.
    """

    model_config = ConfigDict(frozen=True)

    manifest: Manifest
    item_results: list[ItemResult] = Field(default_factory=list)
    playlist_paths: list[Path] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)
    cancelled: bool = False

    @property
    def copied_count(self) -> int:
        """Number of items copied this run."""
        return sum(1 for r in self.item_results if r.status == ItemStatus.COPIED)

    @property
    def up_to_date_count(self) -> int:
        """Number of items skipped because their fingerprint matched."""
        return sum(1 for r in self.item_results if r.status == ItemStatus.UP_TO_DATE)

    @property
    def normalized_count(self) -> int:
        """Number of copies that went through loudness normalization."""
        return sum(1 for r in self.item_results if r.normalized)


class MirrorPlan(BaseModel):
    """What a mirror run would do, computed without touching anything.

    Attributes:
        manifest: The manifest the plan was built from.
        to_sync: Items whose destination is missing or stale.
        leftovers: Destination entries that would be removed, in order.
    """

    model_config = ConfigDict(frozen=True)

    manifest: Manifest
    to_sync: list[SourceItem] = Field(default_factory=list)
    leftovers: list[str] = Field(default_factory=list)

    @property
    def up_to_date_count(self) -> int:
        """Number of items that would be skipped."""
        return len(self.manifest.items) - len(self.to_sync)
