from dataclasses import dataclass, field
from typing import Dict, List, Optional
import logging

import numpy as np
from sqlalchemy.orm import Session, selectinload

from .category_cache import CategoryEmbeddingCache
from .database import Item
from .embedding_cache import ItemEmbeddingCache
from .vectors import dumps_vector, mean_vector

logger = logging.getLogger(__name__)


@dataclass
class ItemBackfillReport:
    start_id: int
    batch_size: int
    processed: int = 0
    updated: List[int] = field(default_factory=list)
    incomplete: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)
    next_start_id: Optional[int] = None


class ItemProfileBuilder:
    """Computes and stores each item's average category embedding."""

    def __init__(
        self,
        db: Session,
        category_cache: CategoryEmbeddingCache,
        item_cache: Optional[ItemEmbeddingCache] = None,
    ):
        self.db = db
        self.category_cache = category_cache
        self.item_cache = item_cache

    def compute_and_store(self, item: Item) -> Optional[np.ndarray]:
        """
        Store the mean of the item's category embeddings.

        Returns the stored vector, or None when none of the item's categories
        has an embedding yet (the item is left untouched). Raises
        DimensionMismatch when the category vectors differ in length.
        """
        embeddings = []
        for category in item.categories:
            embedding = self.category_cache.get(category.id)
            if embedding is None:
                logger.warning(f"Embedding vector is null for category ID {category.id} of item {item.id}")
                continue
            embeddings.append(embedding)

        if not embeddings:
            logger.warning(f"No valid category embedding vectors found for item ID: {item.id}")
            return None

        average = mean_vector(embeddings)
        item.average_embedding_vector = dumps_vector(average)
        self.db.commit()
        if self.item_cache is not None:
            self.item_cache.invalidate(item.id)
        return average

    def compute_and_store_range(self, start_id: int, batch_size: int) -> ItemBackfillReport:
        """
        Process up to ``batch_size`` items with id >= ``start_id`` in id order.

        Safe to re-run; pass ``report.next_start_id`` to continue with the next
        batch.
        """
        report = ItemBackfillReport(start_id=start_id, batch_size=batch_size)
        if batch_size <= 0:
            return report

        items = (
            self.db.query(Item)
            .options(selectinload(Item.categories))
            .filter(Item.id >= start_id)
            .order_by(Item.id.asc())
            .limit(batch_size)
            .all()
        )
        # Plain ids survive a rollback that expires the ORM objects
        item_ids = [item.id for item in items]

        for item_id, item in zip(item_ids, items):
            report.processed += 1
            try:
                average = self.compute_and_store(item)
            except Exception as e:
                logger.error(f"Error saving average embedding vector for item ID {item_id}: {e}", exc_info=True)
                self.db.rollback()
                report.failed[item_id] = str(e)
                continue
            if average is None:
                report.incomplete.append(item_id)
            else:
                report.updated.append(item_id)

        if item_ids:
            report.next_start_id = item_ids[-1] + 1

        logger.info(
            f"Item backfill from ID {start_id} (batch {batch_size}): "
            f"{len(report.updated)} updated, {len(report.incomplete)} incomplete, "
            f"{len(report.failed)} failed"
        )
        return report
