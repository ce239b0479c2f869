import numpy as np
import pytest

from catalog_recommender.category_cache import CategoryEmbeddingCache
from catalog_recommender.database import Item
from catalog_recommender.embedding_cache import ItemEmbeddingCache
from catalog_recommender.errors import DimensionMismatch
from catalog_recommender.item_profiles import ItemProfileBuilder
from catalog_recommender.recommendation_engine import RecommendationEngine
from catalog_recommender.vectors import loads_vector


@pytest.fixture
def builder(db):
    return ItemProfileBuilder(db, CategoryEmbeddingCache(db), ItemEmbeddingCache())


@pytest.fixture
def categories(seed):
    seed.category(1, "Action", [1.0, 0.0])
    seed.category(2, "Puzzle", [0.0, 1.0])
    seed.category(3, "Racing")
    seed.category(4, "Legacy", [1.0, 1.0, 1.0])


def stored(db, item_id):
    db.expire_all()
    text = db.get(Item, item_id).average_embedding_vector
    return None if text is None else loads_vector(text).tolist()


def test_average_of_category_embeddings(db, seed, categories, builder):
    item = seed.item(10, "X", [1, 2])

    assert builder.compute_and_store(item).tolist() == [0.5, 0.5]
    assert stored(db, 10) == [0.5, 0.5]


def test_categories_without_embedding_are_ignored(db, seed, categories, builder):
    item = seed.item(10, "X", [1, 3])

    builder.compute_and_store(item)
    assert stored(db, 10) == [1.0, 0.0]


def test_item_without_any_embedded_category_stays_unset(db, seed, categories, builder):
    bare = seed.item(10, "No embeddings", [3])
    orphan = seed.item(11, "No categories", [])

    assert builder.compute_and_store(bare) is None
    assert builder.compute_and_store(orphan) is None
    assert stored(db, 10) is None
    assert stored(db, 11) is None


def test_dimension_mismatch_is_reported(db, seed, categories, builder):
    item = seed.item(10, "Mixed", [1, 4])

    with pytest.raises(DimensionMismatch):
        builder.compute_and_store(item)
    assert stored(db, 10) is None


def test_update_invalidates_item_cache(db, seed, categories):
    item_cache = ItemEmbeddingCache()
    builder = ItemProfileBuilder(db, CategoryEmbeddingCache(db), item_cache)
    item = seed.item(10, "X", [1], vector=[0.0, 1.0])

    assert item_cache.get(item).tolist() == [0.0, 1.0]
    builder.compute_and_store(item)
    assert item_cache.get(item).tolist() == [1.0, 0.0]


def test_item_cache_clear_drops_every_entry(seed):
    item_cache = ItemEmbeddingCache()
    first = seed.item(1, "A", vector=[1.0, 0.0])
    second = seed.item(2, "B", vector=[0.0, 1.0])
    unset = seed.item(3, "Unset")

    item_cache.get(first)
    item_cache.get(second)
    assert item_cache.get(unset) is None
    assert len(item_cache) == 2

    item_cache.invalidate(1)
    assert len(item_cache) == 1
    item_cache.clear()
    assert len(item_cache) == 0
    assert item_cache.get(second).tolist() == [0.0, 1.0]


def test_range_processes_a_bounded_ascending_slice(db, seed, categories, builder):
    for item_id in (3, 5, 7, 9):
        seed.item(item_id, f"Item {item_id}", [1, 2])

    report = builder.compute_and_store_range(4, 2)

    assert report.processed == 2
    assert report.updated == [5, 7]
    assert report.next_start_id == 8
    assert stored(db, 3) is None
    assert stored(db, 5) == [0.5, 0.5]
    assert stored(db, 7) == [0.5, 0.5]
    assert stored(db, 9) is None


def test_range_survives_individual_failures(db, seed, categories, builder):
    seed.item(1, "Mixed", [1, 4])
    seed.item(2, "Bare", [3])
    seed.item(3, "Fine", [2])

    report = builder.compute_and_store_range(1, 10)

    assert list(report.failed) == [1]
    assert report.incomplete == [2]
    assert report.updated == [3]
    assert stored(db, 3) == [0.0, 1.0]


def test_range_is_idempotent(db, seed, categories, builder):
    seed.item(1, "A", [1])
    seed.item(2, "AB", [1, 2])
    seed.item(3, "Bare", [3])

    first = builder.compute_and_store_range(1, 3)
    after_first = [stored(db, i) for i in (1, 2, 3)]
    second = builder.compute_and_store_range(1, 3)
    after_second = [stored(db, i) for i in (1, 2, 3)]

    assert after_first == after_second == [[1.0, 0.0], [0.5, 0.5], None]
    assert first.updated == second.updated
    assert first.incomplete == second.incomplete


def test_empty_range(builder):
    report = builder.compute_and_store_range(100, 10)
    assert report.processed == 0
    assert report.next_start_id is None


def test_engine_walks_the_whole_catalog(db, seed, categories, settings):
    for item_id in range(1, 8):
        seed.item(item_id, f"Item {item_id}", [1, 2])

    reports = RecommendationEngine(db, settings=settings).update_all_item_embeddings(batch_size=3)

    assert [r.start_id for r in reports] == [1, 4, 7]
    assert sum(len(r.updated) for r in reports) == 7
    assert all(stored(db, i) == [0.5, 0.5] for i in range(1, 8))


def test_engine_updates_single_item(db, seed, categories, settings):
    seed.item(1, "A", [2])
    engine = RecommendationEngine(db, settings=settings)

    np.testing.assert_allclose(engine.update_item_embedding(1), [0.0, 1.0])
    assert engine.update_item_embedding(42) is None
