from dataclasses import dataclass, field
from typing import FrozenSet, Optional
import logging

import numpy as np
from sqlalchemy.orm import Session, joinedload

from .database import ItemReview, ReviewStatus
from .embedding_cache import ItemEmbeddingCache
from .errors import NoJudgments, VectorFormatError
from .vectors import weighted_sum

logger = logging.getLogger(__name__)

REVIEW_WEIGHTS = {
    ReviewStatus.PERFECT: 1.0,
    ReviewStatus.GOOD: 0.7,
    ReviewStatus.BAD: 0.3,
}
DEFAULT_REVIEW_WEIGHT = 0.5


def review_weight(status) -> float:
    return REVIEW_WEIGHTS.get(status, DEFAULT_REVIEW_WEIGHT)


@dataclass
class UserProfile:
    member_id: int
    vector: np.ndarray
    judged_item_ids: FrozenSet[int] = field(default_factory=frozenset)


class UserProfileBuilder:
    def __init__(self, db: Session, item_cache: Optional[ItemEmbeddingCache] = None):
        self.db = db
        self.item_cache = item_cache if item_cache is not None else ItemEmbeddingCache()

    def build(self, member_id: int) -> UserProfile:
        """
        Weighted sum of the embeddings of every item the member reviewed.

        The sum is deliberately not divided by the review count: ranking only
        uses cosine similarity, which ignores magnitude. Raises NoJudgments when
        the member has no review whose item has an embedding.
        """
        reviews = (
            self.db.query(ItemReview)
            .options(joinedload(ItemReview.item))
            .filter(ItemReview.member_id == member_id)
            .order_by(ItemReview.id)
            .all()
        )
        if not reviews:
            raise NoJudgments(member_id)

        judged_item_ids = frozenset(review.item_id for review in reviews)
        embeddings, weights = [], []
        dimension = None

        for review in reviews:
            try:
                embedding = self.item_cache.get(review.item)
            except VectorFormatError as e:
                logger.error(f"Failed to parse embedding vector of item {review.item_id}: {e}")
                continue
            if embedding is None:
                continue
            if dimension is None:
                dimension = embedding.shape[0]
            elif embedding.shape[0] != dimension:
                logger.warning(
                    f"Skipping item {review.item_id} in profile of member {member_id}: "
                    f"{embedding.shape[0]} dimensions, expected {dimension}"
                )
                continue
            embeddings.append(embedding)
            weights.append(review_weight(review.review_status))

        if not embeddings:
            raise NoJudgments(member_id)

        return UserProfile(
            member_id=member_id,
            vector=weighted_sum(embeddings, weights),
            judged_item_ids=judged_item_ids,
        )
