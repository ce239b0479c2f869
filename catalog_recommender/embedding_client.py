from typing import Callable, List, Optional
import logging
import math
import time

import httpx

from .config import Settings
from .errors import ParseFailure, RateLimitExceeded, TransportFailure

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-NCP-CLOVASTUDIO-API-KEY"
GATEWAY_KEY_HEADER = "X-NCP-APIGW-API-KEY"
REQUEST_ID_HEADER = "X-NCP-CLOVASTUDIO-REQUEST-ID"


class RetryPolicy:
    """Exponential backoff shared by every rate-limit signal of the embedding API."""

    def __init__(self, max_attempts: int = 5, base_delay: float = 2.0,
                 multiplier: float = 2.0, max_delay: float = 60.0):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.multiplier = multiplier
        self.max_delay = max_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.embedding_max_attempts,
            base_delay=settings.embedding_backoff_base,
            multiplier=settings.embedding_backoff_multiplier,
            max_delay=settings.embedding_backoff_max,
        )

    def delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait after the given (1-based) rate-limited attempt."""
        if retry_after is not None:
            return min(retry_after, self.max_delay)
        return min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)


def _retry_after(response: httpx.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        # HTTP-date form is not worth parsing here
        return None


class EmbeddingClient:
    """
    Client for the text-embedding API.

    ``fetch`` returns the embedding of a text or raises one of the
    EmbeddingError subclasses. Credentials come from the Settings passed in.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.settings = settings
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)
        self._sleep = sleep
        self._client = httpx.Client(timeout=settings.embedding_timeout, transport=transport)

    def __enter__(self) -> "EmbeddingClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        for name, value in (
            (API_KEY_HEADER, self.settings.embedding_api_key),
            (GATEWAY_KEY_HEADER, self.settings.embedding_gateway_key),
            (REQUEST_ID_HEADER, self.settings.embedding_request_id),
        ):
            if value:
                headers[name] = value
            else:
                logger.warning(f"{name} is not configured; embedding API calls may fail")
        return headers

    def fetch(self, text: str) -> List[float]:
        url = self.settings.embedding_api_url
        if not url:
            raise TransportFailure("EMBEDDING_API_URL is not configured")

        headers = self._headers()
        policy = self.retry_policy

        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = self._client.post(url, json={"text": text}, headers=headers)
                if response.status_code == 429:
                    response.raise_for_status()
            except httpx.HTTPStatusError as e:
                # 429 is the only status that reaches here
                if attempt == policy.max_attempts:
                    break
                wait = policy.delay(attempt, _retry_after(e.response))
                logger.warning(
                    f"Embedding API rate limited for '{text}' "
                    f"(attempt {attempt}/{policy.max_attempts}); retrying in {wait:.1f}s"
                )
                self._sleep(wait)
                continue
            except httpx.HTTPError as e:
                logger.error(f"Error calling embedding API for '{text}': {e}")
                raise TransportFailure(f"Embedding API request failed: {e}") from e

            if not response.is_success:
                logger.error(f"Embedding API error {response.status_code} for '{text}'")
                raise TransportFailure(
                    f"Embedding API answered {response.status_code}",
                    status_code=response.status_code,
                )
            return self._parse(response)

        raise RateLimitExceeded(policy.max_attempts)

    @staticmethod
    def _parse(response: httpx.Response) -> List[float]:
        try:
            body = response.json()
        except ValueError as e:
            raise ParseFailure(f"Embedding API returned invalid JSON: {e}") from e

        result = body.get("result") if isinstance(body, dict) else None
        embedding = result.get("embedding") if isinstance(result, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise ParseFailure("Embedding API response has no result.embedding array")
        if any(isinstance(x, bool) or not isinstance(x, (int, float)) or not math.isfinite(x)
               for x in embedding):
            raise ParseFailure("result.embedding holds non-numeric or non-finite values")
        return [float(x) for x in embedding]
