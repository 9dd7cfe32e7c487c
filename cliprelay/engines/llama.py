"""Local GGUF model engine backed by llama-cpp-python."""

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Optional

from cliprelay.core.errors import ConfigError
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
    from llama_cpp import Llama

logger = logging.getLogger(__name__)

# Penalty window for repeated tokens.
REPEAT_LAST_N = 64
DEFAULT_CONTEXT = 4096


def load_model(
    model_path: Path,
    chat_format: Optional[str] = None,
    n_ctx: int = DEFAULT_CONTEXT,
) -> "Llama":
    """
    Load a GGUF model, offloading every layer to the GPU when one is available.

    Raises:
        ConfigError: If llama-cpp-python is missing or the model cannot be loaded
    """
    try:
        from llama_cpp import Llama
    except ImportError as e:
        raise ConfigError(
            "The llama engine needs llama-cpp-python: pip install 'cliprelay[local]'"
        ) from e

    if not model_path.is_file():
        raise ConfigError(f"Model file not found: {model_path}")

    logger.info(f"Loading model from {model_path}")
    start = time.time()
    try:
        llama = Llama(
            model_path=str(model_path),
            n_ctx=n_ctx,
            n_gpu_layers=-1,
            last_n_tokens_size=REPEAT_LAST_N,
            chat_format=chat_format,
            verbose=False,
        )
    except (ValueError, RuntimeError) as e:
        raise ConfigError(f"Failed to load model {model_path}: {e}") from e
    logger.info(f"Model loaded in {time.time() - start:.2f}s")
    return llama


class LlamaEngine(InferenceEngine):
    """
    Engine running a local GGUF model through llama.cpp.

    The prompt is sent as a single user chat message, so the model's own
    chat template (or ``chat_format``) frames it.
    """

    name = "llama"

    def __init__(
        self,
        model_path: Optional[Path] = None,
        chat_format: Optional[str] = None,
        llama: Optional["Llama"] = None,
    ):
        """
        Args:
            model_path: Path to the .gguf file (ignored when llama is given)
            chat_format: llama.cpp chat format name, None to use the model's template
            llama: Pre-loaded model (tests, or sharing one model between engines)
        """
        if llama is not None:
            self.llama = llama
        elif model_path is not None:
            self.llama = load_model(Path(model_path), chat_format=chat_format)
        else:
            raise ValueError("Either model_path or llama must be provided")

    def stream(self, prompt: str, params: GenerationParams) -> Iterator[EngineEvent]:
        started = time.perf_counter()
        first_token_at: Optional[float] = None
        pieces = []

        try:
            prompt_tokens = len(self.llama.tokenize(prompt.encode("utf-8")))
            response = self.llama.create_chat_completion(
                messages=[{"role": "user", "content": prompt}],
                max_tokens=params.max_tokens,
                temperature=params.temperature,
                frequency_penalty=params.frequency_penalty,
                stream=True,
            )
            for part in response:
                choices = part.get("choices") or []
                if not choices:
                    continue
                content = choices[0].get("delta", {}).get("content")
                if not content:
                    continue
                if first_token_at is None:
                    first_token_at = time.perf_counter()
                pieces.append(content)
                yield Chunk(content)
        except ValueError as e:
            # llama.cpp rejects prompts that do not fit the context window
            raise ValidationError(self.name, str(e)) from e
        except RuntimeError as e:
            raise ModelError(self.name, str(e)) from e

        finished = time.perf_counter()
        prompt_seconds = (first_token_at or finished) - started
        completion_seconds = finished - (first_token_at or finished)
        yield Completion(
            text="".join(pieces),
            prompt_tokens=prompt_tokens,
            completion_tokens=len(pieces),
            prompt_tok_per_sec=prompt_tokens / prompt_seconds if prompt_seconds > 0 else None,
            completion_tok_per_sec=(
                len(pieces) / completion_seconds if completion_seconds > 0 else None
            ),
        )
