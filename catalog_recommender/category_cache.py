from dataclasses import dataclass, field
from typing import List, Optional
import logging

import numpy as np
from sqlalchemy.orm import Session

from .database import Category
from .embedding_client import EmbeddingClient
from .errors import EmbeddingError, VectorFormatError
from .vectors import as_vector, dumps_vector, loads_vector

logger = logging.getLogger(__name__)


@dataclass
class CategoryBackfillReport:
    total: int = 0
    already_present: int = 0
    embedded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)


class CategoryEmbeddingCache:
    """Per-category embedding vectors, filled on demand from the embedding API."""

    def __init__(self, db: Session, client: Optional[EmbeddingClient] = None):
        self.db = db
        self.client = client

    def _stored_vector(self, category: Category) -> Optional[np.ndarray]:
        if not category.embedding_vector:
            return None
        try:
            return loads_vector(category.embedding_vector)
        except VectorFormatError as e:
            logger.error(f"Error reading embedding vector for category ID {category.id}: {e}")
            return None

    def get(self, category_id: int) -> Optional[np.ndarray]:
        """Stored vector for the category, without calling the API."""
        category = self.db.get(Category, category_id)
        if category is None:
            logger.warning(f"Category does not exist in the database. Category ID: {category_id}")
            return None
        return self._stored_vector(category)

    def ensure(self, category_id: int) -> Optional[np.ndarray]:
        category = self.db.get(Category, category_id)
        if category is None:
            logger.warning(f"Category does not exist in the database. Category ID: {category_id}")
            return None
        return self._ensure_category(category)

    def _ensure_category(self, category: Category) -> Optional[np.ndarray]:
        stored = self._stored_vector(category)
        if stored is not None:
            return stored
        if self.client is None:
            raise RuntimeError("CategoryEmbeddingCache needs an EmbeddingClient to fetch vectors")

        try:
            embedding = as_vector(self.client.fetch(category.name))
        except EmbeddingError as e:
            logger.warning(f"No embedding for category '{category.name}' (ID {category.id}): {e}")
            return None

        category.embedding_vector = dumps_vector(embedding)
        self.db.commit()
        logger.info(f"Stored {embedding.shape[0]}-dim embedding for category '{category.name}'")
        return embedding

    def ensure_all(self) -> CategoryBackfillReport:
        categories = self.db.query(Category).order_by(Category.id).all()
        report = CategoryBackfillReport(total=len(categories))

        for category in categories:
            if self._stored_vector(category) is not None:
                report.already_present += 1
                continue
            try:
                vector = self._ensure_category(category)
            except Exception as e:
                logger.error(f"Error saving embedding vector for category: {category.name}: {e}", exc_info=True)
                self.db.rollback()
                vector = None
            if vector is None:
                report.failed.append(category.id)
            else:
                report.embedded.append(category.id)

        logger.info(
            f"Category backfill finished: {len(report.embedded)} embedded, "
            f"{report.already_present} already present, {len(report.failed)} failed"
        )
        return report
