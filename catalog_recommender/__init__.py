"""
Catalog Recommendation Engine

Content-based recommendations: category names are embedded through an external
API, averaged into item vectors, and compared against a member profile built
from the member's reviews.
"""

__version__ = "0.1.0"

from .database import Base, engine, SessionLocal, get_db, Category, Item, Member, ItemReview, \
    MemberCategory, ReviewStatus
from .errors import RecommenderError, EmbeddingError, ParseFailure, RateLimitExceeded, \
    TransportFailure, DimensionMismatch, VectorFormatError, NoJudgments, CategoryNotFound
from .config import Settings, get_settings
from .embedding_client import EmbeddingClient, RetryPolicy
from .recommendation_engine import RecommendationEngine
