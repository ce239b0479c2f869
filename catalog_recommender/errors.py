class RecommenderError(Exception):
    """Base class for errors raised by the recommendation core."""


class EmbeddingError(RecommenderError):
    """The embedding API did not produce a vector for a text."""


class ParseFailure(EmbeddingError):
    pass


class RateLimitExceeded(EmbeddingError):
    def __init__(self, attempts: int):
        super().__init__(f"Rate limited by embedding API after {attempts} attempts")
        self.attempts = attempts


class TransportFailure(EmbeddingError):
    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.status_code = status_code


class DimensionMismatch(RecommenderError):
    def __init__(self, dimensions):
        self.dimensions = sorted(set(dimensions))
        super().__init__(f"Vectors have differing dimensionality: {self.dimensions}")


class VectorFormatError(RecommenderError):
    """A stored vector could not be deserialized."""


class NoJudgments(RecommenderError):
    def __init__(self, member_id: int):
        super().__init__(f"No usable reviews for member {member_id}")
        self.member_id = member_id


class CategoryNotFound(RecommenderError):
    def __init__(self, category_id: int):
        super().__init__(f"Category {category_id} does not exist")
        self.category_id = category_id
