"""Variation registry - per-slot records with versioned, single-writer updates."""

import logging
from dataclasses import replace
from typing import Callable, Iterator

from ..models.angle import AngleConfig
from ..models.variation import GeneratedVariation, VariationStatus

logger = logging.getLogger(__name__)

Listener = Callable[[int, GeneratedVariation], None]


class VariationRegistry:
    """Ordered collection of GeneratedVariation records, one per angle slot.

    Every writer takes a version token from begin() (or from the slot when an
    edit session opens) and presents it on write. A write carrying an older
    version than the slot's current one is stale and is dropped.
    """

    def __init__(self):
        self._records: list[GeneratedVariation] = []
        self._versions: dict[int, int] = {}  # index -> current slot version
        self._listeners: list[Listener] = []

    # Observers

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a push-style listener. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, index: int, record: GeneratedVariation):
        for listener in list(self._listeners):
            try:
                listener(index, record)
            except Exception:
                logger.exception("Registry listener failed for slot %d", index)

    # Lifecycle

    def reset(self, angles: list[AngleConfig]) -> list[GeneratedVariation]:
        """Replace all records wholesale with fresh pending ones."""
        self._records = []
        for index, angle in enumerate(angles):
            version = self._bump(index)
            self._records.append(GeneratedVariation.for_angle(angle, index, version))
        for index, record in enumerate(self._records):
            self._notify(index, record)
        return self.records

    def clear(self):
        """Drop all records (new upload or reset). Slot versions keep counting."""
        for index in range(len(self._records)):
            self._bump(index)
        self._records = []

    def begin(self, index: int) -> int:
        """Move a slot to loading and hand out the version token for its writer."""
        record = self._get(index)
        version = self._bump(index)
        self._set(index, replace(record, status=VariationStatus.LOADING, error=None, version=version))
        return version

    def succeed(self, index: int, version: int, image_data: bytes) -> bool:
        """Store a generated image. Returns False for a stale write."""
        if not self._is_current(index, version, "succeed"):
            return False
        record = self._records[index]
        self._set(index, replace(record, status=VariationStatus.SUCCESS, image_data=image_data, error=None))
        return True

    def fail(self, index: int, version: int, error: str) -> bool:
        """Mark a slot failed and leave its image empty. Returns False for a stale write."""
        if not self._is_current(index, version, "fail"):
            return False
        record = self._records[index]
        self._set(index, replace(record, status=VariationStatus.ERROR, image_data=b"", error=error))
        return True

    def commit_edit(self, index: int, version: int, image_data: bytes) -> bool:
        """Save an edit session result. Returns False if another writer took the slot."""
        if not self._is_current(index, version, "commit_edit"):
            return False
        record = self._records[index]
        new_version = self._bump(index)
        self._set(index, replace(record, image_data=image_data, version=new_version))
        return True

    # Queries

    def version(self, index: int) -> int:
        self._get(index)
        return self._versions[index]

    @property
    def records(self) -> list[GeneratedVariation]:
        return list(self._records)

    def get_by_id(self, variation_id: str) -> tuple[int, GeneratedVariation] | None:
        for index, record in enumerate(self._records):
            if record.id == variation_id:
                return index, record
        return None

    def successful(self) -> list[GeneratedVariation]:
        return [r for r in self._records if r.has_image]

    def is_settled(self) -> bool:
        return all(r.is_settled for r in self._records)

    def get_stats(self) -> dict[str, int]:
        """Get counts by status."""
        stats = {status.value: 0 for status in VariationStatus}
        for record in self._records:
            stats[record.status.value] += 1
        return stats

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[GeneratedVariation]:
        return iter(list(self._records))

    def __getitem__(self, index: int) -> GeneratedVariation:
        return self._get(index)

    # Internals

    def _get(self, index: int) -> GeneratedVariation:
        if not 0 <= index < len(self._records):
            raise IndexError(f"No variation at index {index} (have {len(self._records)})")
        return self._records[index]

    def _set(self, index: int, record: GeneratedVariation):
        self._records[index] = record
        self._notify(index, record)

    def _bump(self, index: int) -> int:
        self._versions[index] = self._versions.get(index, 0) + 1
        return self._versions[index]

    def _is_current(self, index: int, version: int, op: str) -> bool:
        if index >= len(self._records) or index < 0:
            logger.info("Dropping %s for slot %d: slot no longer exists", op, index)
            return False
        current = self._versions.get(index, 0)
        if version != current:
            logger.info("Dropping stale %s for slot %d (version %d, current %d)", op, index, version, current)
            return False
        return True
