from typing import Dict, Optional
import threading

import numpy as np

from .database import Item
from .vectors import loads_vector


class ItemEmbeddingCache:
    """
    Parsed average embeddings keyed by item id.

    Whoever rewrites an item's ``average_embedding_vector`` must call
    ``invalidate`` for that item.
    """

    def __init__(self):
        self._vectors: Dict[int, np.ndarray] = {}
        self._lock = threading.Lock()

    def get(self, item: Item) -> Optional[np.ndarray]:
        """Return the item's embedding, None if unset; VectorFormatError if malformed."""
        with self._lock:
            cached = self._vectors.get(item.id)
        if cached is not None:
            return cached

        if not item.average_embedding_vector:
            return None
        vector = loads_vector(item.average_embedding_vector)
        with self._lock:
            self._vectors[item.id] = vector
        return vector

    def invalidate(self, item_id: int) -> None:
        with self._lock:
            self._vectors.pop(item_id, None)

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._vectors)
