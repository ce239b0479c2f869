from typing import List, Optional
import logging

import numpy as np
from sqlalchemy.orm import Session, selectinload

from .category_cache import CategoryBackfillReport, CategoryEmbeddingCache
from .config import Settings, get_settings
from .database import Category, Item
from .embedding_cache import ItemEmbeddingCache
from .embedding_client import EmbeddingClient
from .errors import CategoryNotFound
from .item_profiles import ItemBackfillReport, ItemProfileBuilder
from .ranker import RecommendationRanker, ScoredItem
from .user_profiles import UserProfileBuilder

logger = logging.getLogger(__name__)


class RecommendationEngine:
    """
    Embedding backfills and member recommendations over one database session.

    The item embedding cache lives as long as the engine, so an engine per
    request gives a per-request cache.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[EmbeddingClient] = None,
        settings: Optional[Settings] = None,
        item_cache: Optional[ItemEmbeddingCache] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.item_cache = item_cache if item_cache is not None else ItemEmbeddingCache()
        self.category_cache = CategoryEmbeddingCache(db, client)
        self.item_profiles = ItemProfileBuilder(db, self.category_cache, self.item_cache)
        self.user_profiles = UserProfileBuilder(db, self.item_cache)
        self.ranker = RecommendationRanker(
            db,
            profile_builder=self.user_profiles,
            item_cache=self.item_cache,
            sample_size=self.settings.recommend_sample_size,
            base_boost=self.settings.recommend_category_boost,
        )

    def recommend(self, member_id: int, page_size: int = 10) -> List[ScoredItem]:
        logger.info(f"Generating recommendations for member {member_id}")
        return self.ranker.rank(member_id, page_size)

    def update_category_embedding(self, category_id: int) -> Optional[np.ndarray]:
        vector = self.category_cache.ensure(category_id)
        if vector is None:
            logger.warning(f"Embedding vector is null for category ID {category_id}")
        return vector

    def update_all_category_embeddings(self) -> CategoryBackfillReport:
        logger.info("Updating embedding vectors for all categories...")
        return self.category_cache.ensure_all()

    def update_item_embeddings_in_range(self, start_id: int, batch_size: int) -> ItemBackfillReport:
        logger.info(f"Updating average embeddings for up to {batch_size} items from ID {start_id}...")
        return self.item_profiles.compute_and_store_range(start_id, batch_size)

    def update_item_embedding(self, item_id: int) -> Optional[np.ndarray]:
        item = (
            self.db.query(Item)
            .options(selectinload(Item.categories))
            .filter(Item.id == item_id)
            .first()
        )
        if item is None:
            logger.warning(f"Item {item_id} not found")
            return None
        return self.item_profiles.compute_and_store(item)

    def update_all_item_embeddings(self, batch_size: int = 100, start_id: int = 1) -> List[ItemBackfillReport]:
        """Walk the whole catalog batch by batch, following the report cursor."""
        reports = []
        cursor = start_id
        while cursor is not None:
            report = self.update_item_embeddings_in_range(cursor, batch_size)
            if report.processed == 0:
                break
            reports.append(report)
            cursor = report.next_start_id
            # Drop loaded items before the next batch
            self.db.expunge_all()
        return reports

    def require_category(self, category_id: int) -> None:
        if self.db.get(Category, category_id) is None:
            raise CategoryNotFound(category_id)
