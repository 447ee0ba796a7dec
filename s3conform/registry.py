"""Fixture registry and suite state.

Fixtures are the buckets, objects, uploads and parts created by one test
case for later cases to use. They live in a FixtureRegistry owned by the
SuiteState value that the runner threads through every case.

Write discipline: only the orchestrator's aggregation step writes, one
slot per task index, each slot at most once. Readers only see a kind once
the case that produced it has completed and published it. Because there is
a single writer, no locking is needed.
"""

from dataclasses import dataclass, field
from typing import Any

from s3conform.errors import FixtureError
from s3conform.models import RunSettings, ServerConfig

# Fixture kinds
BUCKET = "bucket"
OBJECT = "object"
OBJECT_STAT = "object_stat"
MULTIPART_UPLOAD = "multipart_upload"
PART = "part"
MULTIPART_OBJECT = "multipart_object"


class FixtureRegistry:
    """Write-once, index-addressed storage for fixtures of each kind."""

    def __init__(self):
        self._slots: dict[str, list[Any]] = {}
        self._published: set[str] = set()
        self._retired: set[str] = set()

    def allocate(self, kind: str, count: int) -> None:
        """Reserve count empty slots for a fixture kind.

        Raises:
            FixtureError: If the kind already has slots.
        """
        if kind in self._slots:
            raise FixtureError(f"Fixture kind '{kind}' is already allocated")
        self._slots[kind] = [None] * count

    def append(self, kind: str, index: int, entity: Any) -> None:
        """Store entity in slot index of kind.

        Raises:
            FixtureError: If the kind is unallocated or already published,
                the index is out of range, or the slot is already filled.
        """
        slots = self._slots.get(kind)
        if slots is None:
            raise FixtureError(f"Fixture kind '{kind}' has no allocated slots")
        if kind in self._published:
            raise FixtureError(f"Fixture kind '{kind}' is already published")
        if not 0 <= index < len(slots):
            raise FixtureError(
                f"Slot {index} out of range for '{kind}' ({len(slots)} slots)"
            )
        if slots[index] is not None:
            raise FixtureError(f"Slot {index} of '{kind}' is already written")
        slots[index] = entity

    def publish(self, kind: str) -> None:
        """Make a kind readable by later cases. No more writes after this."""
        if kind not in self._slots:
            raise FixtureError(f"Cannot publish unallocated fixture kind '{kind}'")
        self._published.add(kind)

    def retire(self, kind: str) -> None:
        """Mark a kind as consumed for good (e.g. its objects were deleted)."""
        self._retired.add(kind)

    def is_published(self, kind: str) -> bool:
        return kind in self._published and kind not in self._retired

    def get(self, kind: str) -> list[Any]:
        """Return the published fixtures of kind, in slot order.

        Empty slots (tasks that failed) are left out.

        Raises:
            FixtureError: If the kind was never published or was retired.
        """
        if kind in self._retired:
            raise FixtureError(f"Fixture kind '{kind}' has been retired")
        if kind not in self._published:
            raise FixtureError(f"Fixture kind '{kind}' has not been published yet")
        return [entity for entity in self._slots[kind] if entity is not None]

    def written(self, kind: str) -> list[Any]:
        """Return every entity written so far, published or not."""
        return [entity for entity in self._slots.get(kind, []) if entity is not None]


@dataclass
class SuiteState:
    """Everything a run accumulates, passed from case to case."""

    config: ServerConfig
    settings: RunSettings
    registry: FixtureRegistry = field(default_factory=FixtureRegistry)

    @property
    def bucket(self) -> str:
        """Name of the primary test bucket."""
        buckets = self.registry.get(BUCKET)
        if not buckets:
            raise FixtureError("No test bucket has been provisioned")
        return buckets[0].name
