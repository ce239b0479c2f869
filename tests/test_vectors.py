import numpy as np
import pytest

from catalog_recommender.errors import DimensionMismatch, VectorFormatError
from catalog_recommender.vectors import (
    MIN_SIMILARITY,
    cosine_similarities,
    cosine_similarity,
    dumps_vector,
    loads_vector,
    mean_vector,
    weighted_sum,
)


def test_mean_vector_is_coordinate_wise_mean():
    assert mean_vector([[1, 0], [0, 1]]).tolist() == [0.5, 0.5]
    np.testing.assert_allclose(mean_vector([[1, 2, 3], [3, 2, 1], [2, 2, 8]]), [2.0, 2.0, 4.0])


def test_mean_vector_rejects_mixed_dimensions():
    with pytest.raises(DimensionMismatch) as excinfo:
        mean_vector([[1, 0], [0, 1, 0]])
    assert excinfo.value.dimensions == [2, 3]


def test_mean_vector_rejects_empty_input():
    with pytest.raises(ValueError):
        mean_vector([])


def test_weighted_sum():
    np.testing.assert_allclose(weighted_sum([[1, 0], [0, 1]], [1.0, 0.3]), [1.0, 0.3])
    with pytest.raises(ValueError):
        weighted_sum([[1, 0]], [1.0, 0.5])


@pytest.mark.parametrize("v", [[1.0, 2.0, 3.0], [-0.2, 0.4], [5.0]])
def test_cosine_of_vector_with_itself_and_its_negation(v):
    assert cosine_similarity(v, v) == pytest.approx(1.0)
    assert cosine_similarity(v, [-x for x in v]) == pytest.approx(-1.0)


@pytest.mark.parametrize("v", [[0.3, -1.2, 2.0], [-0.2, 0.4], [1e-3, 7.0, -2.5, 0.1]])
def test_cosine_stays_within_unit_range(v):
    sims = cosine_similarities(v, [v, [-x for x in v], [2 * x for x in v]])
    assert np.all(sims <= 1.0)
    assert np.all(sims >= -1.0)
    assert sims[0] == pytest.approx(1.0)
    assert sims[1] == pytest.approx(-1.0)


def test_cosine_is_symmetric():
    a, b = [0.3, -1.2, 2.0], [1.5, 0.1, 0.7]
    assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))


def test_cosine_with_zero_vector_is_minimum_similarity():
    assert cosine_similarity([0.0, 0.0], [1.0, 0.0]) == MIN_SIMILARITY
    assert cosine_similarity([1.0, 0.0], [0.0, 0.0]) == MIN_SIMILARITY

    sims = cosine_similarities([1.0, 0.0], [[1.0, 0.0], [0.0, 0.0], [0.0, 1.0]])
    assert sims.tolist() == pytest.approx([1.0, MIN_SIMILARITY, 0.0])


def test_cosine_is_scale_invariant():
    profile = np.array([0.7, 0.1, -0.3])
    candidates = np.array([[0.5, 0.5, 0.0], [1.0, 0.0, 0.0], [0.0, 0.0, 1.0], [0.2, 0.9, 0.4]])

    base = cosine_similarities(profile, candidates)
    scaled = cosine_similarities(profile * 42.0, candidates)

    np.testing.assert_allclose(base, scaled)
    assert list(np.argsort(-base)) == list(np.argsort(-scaled))


def test_cosine_similarities_rejects_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        cosine_similarities([1.0, 0.0], [[1.0, 0.0, 0.0]])


def test_stored_vector_text():
    text = dumps_vector(np.array([0.5, -1.0, 2]))
    assert text == "[0.5, -1.0, 2.0]"
    assert loads_vector(text).tolist() == [0.5, -1.0, 2.0]


@pytest.mark.parametrize("text", ["", "not json", "{}", "[]", '["a"]', "[true]", "[NaN]", "3.0"])
def test_loads_vector_rejects_malformed_text(text):
    with pytest.raises(VectorFormatError):
        loads_vector(text)
