from fastapi import FastAPI, Depends, HTTPException, Query, Path, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker
from typing import Callable, Optional
import logging
import uvicorn

from . import __version__, schemas
from .config import get_settings
from .database import SessionLocal, get_db
from .embedding_client import EmbeddingClient
from .errors import CategoryNotFound
from .recommendation_engine import RecommendationEngine

# Configure logging
logging.basicConfig(level=get_settings().log_level)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title="Catalog Recommendation API",
    description="Content-based item recommendations from category embeddings",
    version=__version__
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Recommendation engine factory (one engine, and one item embedding cache, per request)
def get_recommendation_engine(db: Session = Depends(get_db)):
    return RecommendationEngine(db)


# Background backfills outlive the request, so they open their own session and client
def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_embedding_client_factory() -> Callable[[], EmbeddingClient]:
    settings = get_settings()
    return lambda: EmbeddingClient(settings)


def run_category_backfill(
    session_factory: sessionmaker,
    client_factory: Callable[[], EmbeddingClient],
    category_id: Optional[int] = None,
) -> None:
    db = session_factory()
    try:
        with client_factory() as client:
            engine = RecommendationEngine(db, client=client)
            if category_id is None:
                engine.update_all_category_embeddings()
            else:
                engine.update_category_embedding(category_id)
    except Exception as e:
        logger.error(f"Category embedding backfill failed: {e}", exc_info=True)
    finally:
        db.close()


def run_item_backfill(session_factory: sessionmaker, start_id: int, batch_size: int) -> None:
    db = session_factory()
    try:
        RecommendationEngine(db).update_item_embeddings_in_range(start_id, batch_size)
    except Exception as e:
        logger.error(f"Item embedding backfill failed: {e}", exc_info=True)
    finally:
        db.close()


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint to check if the API is running."""
    return {
        "message": "Welcome to the Catalog Recommendation API",
        "status": "running",
        "endpoints": [
            {"path": "/docs", "description": "API documentation"},
            {"path": "/api/recommend/recommendations", "description": "Get personalized item recommendations"},
            {"path": "/api/embedding/update-all-category", "description": "Backfill category embeddings"},
            {"path": "/api/embedding/initialize/{start_id}/{batch_size}", "description": "Backfill item embeddings"},
        ]
    }


@app.get("/health", response_model=schemas.HealthCheck, tags=["Root"])
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database_status = "ok"
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_status = "unavailable"
    return {"status": "running", "version": __version__, "database_status": database_status}


@app.post("/api/embedding/update/{category_id}", response_model=schemas.BackfillResponse,
          status_code=202, responses={404: {"model": schemas.ErrorResponse}},
          tags=["Embeddings"])
def update_category_embedding(
    background_tasks: BackgroundTasks,
    category_id: int = Path(..., ge=1, description="Category to embed"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
    session_factory: sessionmaker = Depends(get_session_factory),
    client_factory: Callable[[], EmbeddingClient] = Depends(get_embedding_client_factory),
):
    """Fetch the embedding vector of one category in the background."""
    try:
        engine.require_category(category_id)
    except CategoryNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))

    background_tasks.add_task(run_category_backfill, session_factory, client_factory, category_id)
    return {"status": "accepted", "message": f"Embedding update scheduled for category {category_id}"}


@app.post("/api/embedding/update-all-category", response_model=schemas.BackfillResponse,
          status_code=202, tags=["Embeddings"])
def update_all_category_embeddings(
    background_tasks: BackgroundTasks,
    session_factory: sessionmaker = Depends(get_session_factory),
    client_factory: Callable[[], EmbeddingClient] = Depends(get_embedding_client_factory),
):
    """Fetch embedding vectors for every category that has none yet."""
    background_tasks.add_task(run_category_backfill, session_factory, client_factory)
    return {"status": "accepted", "message": "Embedding update scheduled for all categories"}


@app.post("/api/embedding/initialize/{start_id}/{batch_size}", response_model=schemas.BackfillResponse,
          status_code=202, tags=["Embeddings"])
def initialize_item_embeddings(
    background_tasks: BackgroundTasks,
    start_id: int = Path(..., ge=0, description="Smallest item id of the batch"),
    batch_size: int = Path(..., ge=1, le=10000, description="Number of items in the batch"),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Compute and store average embeddings for a batch of items."""
    background_tasks.add_task(run_item_backfill, session_factory, start_id, batch_size)
    return {
        "status": "accepted",
        "message": f"Average embedding update scheduled for {batch_size} items from ID {start_id}",
    }


@app.get("/api/recommend/recommendations", response_model=schemas.RecommendationResponse,
         tags=["Recommendations"])
def get_recommendations(
    member_id: int = Query(..., ge=1, description="Member to get recommendations for"),
    size: int = Query(10, ge=1, le=100, description="Number of items to return"),
    engine: RecommendationEngine = Depends(get_recommendation_engine),
):
    """
    Get items ranked by similarity to the member's reviews.

    - **member_id**: Member to get recommendations for
    - **size**: Number of items to return (max 100)
    """
    try:
        ranked = engine.recommend(member_id, size)
    except Exception as e:
        logger.error(f"Error generating recommendations: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    items = [
        {
            "id": scored.item.id,
            "name": scored.item.name,
            "description": scored.item.description,
            "score": scored.score,
            "similarity": scored.similarity,
            "category_boost": scored.category_boost,
            "categories": [{"id": c.id, "name": c.name} for c in scored.item.categories],
        }
        for scored in ranked
    ]
    return {"status": "success", "member_id": member_id, "size": size, "items": items}


if __name__ == "__main__":
    uvicorn.run("catalog_recommender.main:app", host="0.0.0.0", port=8000, reload=True)
