import threading
from collections.abc import Callable, Hashable


class KeyIndex:
    """Thread-safe map from aggregation key to a slot number assigned in first-seen order."""

    def __init__(self) -> None:
        self._slots: dict[Hashable, int] = {}
        self._lock = threading.Lock()

    def resolve(self, key: Hashable, on_create: Callable[[int], None] | None = None) -> int:
        """Return the slot for ``key``, allocating the next one on first sight.

        ``on_create`` runs inside the same critical section as the allocation,
        so whatever it stores for the new slot is visible before any other
        caller can resolve the key.
        """
        with self._lock:
            slot = self._slots.get(key)
            if slot is None:
                slot = len(self._slots)
                if on_create is not None:
                    on_create(slot)
                self._slots[key] = slot
            return slot

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._slots
