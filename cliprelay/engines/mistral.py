"""Mistral API engine using the native mistralai SDK streaming endpoint."""

import logging
import time
from typing import TYPE_CHECKING, Any, Dict, Iterator, Optional

from cliprelay.engines.base import (
    Chunk,
    Completion,
    EngineEvent,
    GenerationParams,
    InferenceEngine,
    ModelError,
    ValidationError,
)

if TYPE_CHECKING:
    from mistralai import Mistral

logger = logging.getLogger(__name__)

# One client per API key
_client_cache: Dict[str, Any] = {}


def get_cached_client(api_key: str) -> "Mistral":
    """Get or create a Mistral client for ``api_key``."""
    cache_key = str(hash(api_key))
    if cache_key not in _client_cache:
        from mistralai import Mistral
        _client_cache[cache_key] = Mistral(api_key=api_key)
    return _client_cache[cache_key]


def clear_client_cache() -> None:
    _client_cache.clear()


def _delta_text(content: Any) -> str:
    # Deltas are plain strings, or lists of content chunks for multimodal models
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "".join(getattr(part, "text", "") or "" for part in content)


class MistralEngine(InferenceEngine):
    """
    Engine calling the hosted Mistral chat API.

    Uses ``client.chat.stream`` so chunks are forwarded while the model is
    still generating.
    """

    name = "mistral"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "mistral-small-latest",
        client: Optional["Mistral"] = None,
    ):
        """
        Args:
            api_key: Mistral API key (not needed if client is provided)
            model: Model name (e.g., "mistral-small-latest")
            client: Pre-initialized Mistral client
        """
        if client is not None:
            self.client = client
        elif api_key:
            self.client = get_cached_client(api_key)
        else:
            raise ValueError("Either api_key or client must be provided")
        self.model = model

    def stream(self, prompt: str, params: GenerationParams) -> Iterator[EngineEvent]:
        from mistralai import models

        started = time.perf_counter()
        first_token_at: Optional[float] = None
        pieces = []
        usage = None

        try:
            events = self.client.chat.stream(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                frequency_penalty=params.frequency_penalty,
            )
            for event in events:
                data = event.data
                if getattr(data, "usage", None) is not None:
                    usage = data.usage
                if not data.choices:
                    continue
                text = _delta_text(data.choices[0].delta.content)
                if not text:
                    continue
                if first_token_at is None:
                    first_token_at = time.perf_counter()
                pieces.append(text)
                yield Chunk(text)
        except models.HTTPValidationError as e:
            raise ValidationError(self.name, str(e)) from e
        except models.SDKError as e:
            raise ModelError(self.name, str(e)) from e

        finished = time.perf_counter()
        prompt_tokens = getattr(usage, "prompt_tokens", None)
        completion_tokens = getattr(usage, "completion_tokens", None)
        prompt_seconds = (first_token_at or finished) - started
        completion_seconds = finished - (first_token_at or finished)
        yield Completion(
            text="".join(pieces),
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            prompt_tok_per_sec=(
                prompt_tokens / prompt_seconds
                if prompt_tokens and prompt_seconds > 0 else None
            ),
            completion_tok_per_sec=(
                completion_tokens / completion_seconds
                if completion_tokens and completion_seconds > 0 else None
            ),
        )
