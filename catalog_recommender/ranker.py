from dataclasses import dataclass
from typing import Collection, List, Optional, Set
import logging

import numpy as np
from sqlalchemy.orm import Session, selectinload

from .database import Item, MemberCategory
from .embedding_cache import ItemEmbeddingCache
from .errors import NoJudgments, VectorFormatError
from .user_profiles import UserProfileBuilder
from .vectors import cosine_similarities, degenerate_mask

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_SIZE = 1000
DEFAULT_CATEGORY_BOOST = 0.1


@dataclass
class ScoredItem:
    item: Item
    score: float
    similarity: float
    category_boost: float
    degenerate: bool = False

    @property
    def item_id(self) -> int:
        return self.item.id


def category_boost(preferred: Collection[int], item_categories: Collection[int],
                   base_boost: float = DEFAULT_CATEGORY_BOOST) -> float:
    """``base_boost`` scaled by the share of preferred categories the item has."""
    if not preferred:
        return 0.0
    matching = len(set(preferred) & set(item_categories))
    return base_boost * matching / len(set(preferred))


class RecommendationRanker:
    def __init__(
        self,
        db: Session,
        profile_builder: Optional[UserProfileBuilder] = None,
        item_cache: Optional[ItemEmbeddingCache] = None,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
        base_boost: float = DEFAULT_CATEGORY_BOOST,
    ):
        self.db = db
        self.item_cache = item_cache if item_cache is not None else ItemEmbeddingCache()
        self.profile_builder = profile_builder or UserProfileBuilder(db, self.item_cache)
        self.sample_size = sample_size
        self.base_boost = base_boost

    def preferred_category_ids(self, member_id: int) -> Set[int]:
        rows = (
            self.db.query(MemberCategory.category_id)
            .filter(MemberCategory.member_id == member_id)
            .all()
        )
        return {category_id for (category_id,) in rows}

    def candidate_pool(self) -> List[Item]:
        """First ``sample_size`` items, by id, that have an average embedding."""
        return (
            self.db.query(Item)
            .options(selectinload(Item.categories))
            .filter(Item.average_embedding_vector.isnot(None))
            .order_by(Item.id.asc())
            .limit(self.sample_size)
            .all()
        )

    def rank(self, member_id: int, page_size: int) -> List[ScoredItem]:
        """
        Rank unseen items for a member, best first, at most ``page_size`` long.

        Members without usable reviews get an empty list. Ties are broken by
        item id ascending; candidates whose similarity is undefined come last.
        """
        if page_size <= 0:
            return []

        try:
            profile = self.profile_builder.build(member_id)
        except NoJudgments:
            logger.info(f"No usable reviews for member {member_id}; returning an empty page")
            return []

        dimension = profile.vector.shape[0]
        candidates, vectors = [], []
        for item in self.candidate_pool():
            if item.id in profile.judged_item_ids:
                continue
            try:
                vector = self.item_cache.get(item)
            except VectorFormatError as e:
                logger.error(f"Failed to parse embedding vector of item {item.id}: {e}")
                continue
            if vector is None:
                continue
            if vector.shape[0] != dimension:
                logger.warning(
                    f"Skipping item {item.id}: {vector.shape[0]} dimensions, profile has {dimension}"
                )
                continue
            candidates.append(item)
            vectors.append(vector)

        if not candidates:
            logger.info(f"No candidate items to rank for member {member_id}")
            return []

        matrix = np.vstack(vectors)
        similarities = cosine_similarities(profile.vector, matrix)
        degenerate = degenerate_mask(profile.vector, matrix)
        preferred = self.preferred_category_ids(member_id)

        scored = []
        for item, similarity, is_degenerate in zip(candidates, similarities, degenerate):
            boost = category_boost(preferred, [c.id for c in item.categories], self.base_boost)
            scored.append(ScoredItem(
                item=item,
                score=float(similarity) + boost,
                similarity=float(similarity),
                category_boost=boost,
                degenerate=bool(is_degenerate),
            ))

        scored.sort(key=lambda s: (s.degenerate, -s.score, s.item_id))
        logger.info(f"Ranked {len(scored)} candidates for member {member_id}")
        return scored[:page_size]
