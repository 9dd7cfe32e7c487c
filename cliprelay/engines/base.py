"""Abstract inference engine interface.

An engine turns one prompt into an ordered sequence of text chunks followed
by a completion summary. Backends implement the blocking ``stream`` generator;
``submit`` runs it on a worker thread and hands events to the asyncio loop
through an unbounded queue, so the model produces at its own pace while the
relay forwards chunks in order.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Iterator, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationParams:
    """Sampling parameters sent with every request."""
    max_tokens: int = 500
    temperature: float = 0.3
    frequency_penalty: float = 2.2


@dataclass(frozen=True)
class Chunk:
    """One incremental fragment of generated text."""
    text: str


@dataclass(frozen=True)
class Completion:
    """Final summary emitted once generation finishes normally."""
    text: str
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    prompt_tok_per_sec: Optional[float] = None
    completion_tok_per_sec: Optional[float] = None

    def describe(self) -> str:
        parts = [f"{len(self.text)} chars"]
        if self.prompt_tokens is not None:
            parts.append(f"prompt tokens: {self.prompt_tokens}")
        if self.completion_tokens is not None:
            parts.append(f"completion tokens: {self.completion_tokens}")
        if self.prompt_tok_per_sec is not None:
            parts.append(f"prompt T/s: {self.prompt_tok_per_sec:.2f}")
        if self.completion_tok_per_sec is not None:
            parts.append(f"completion T/s: {self.completion_tok_per_sec:.2f}")
        return ", ".join(parts)


EngineEvent = Union[Chunk, Completion]


class EngineError(Exception):
    """
    Unrecoverable failure reported by an inference engine.

    The engine is assumed to be in a broken state once one of these is
    raised, so the inference node stops serving instead of retrying.
    """

    kind = "engine"

    def __init__(self, engine: str, message: str):
        self.engine = engine
        super().__init__(f"{self.kind.capitalize()} error from {engine} engine: {message}")


class InternalError(EngineError):
    kind = "internal"


class ValidationError(EngineError):
    kind = "validation"


class ModelError(EngineError):
    kind = "model"


# Marks the end of the worker's output on the queue.
_DONE = object()


class InferenceEngine(ABC):
    """
    Base class for inference backends.

    Each backend (local llama.cpp model, Mistral API, ...) implements
    ``stream``; the relay only ever calls ``submit``.
    """

    name = "engine"

    @abstractmethod
    def stream(self, prompt: str, params: GenerationParams) -> Iterator[EngineEvent]:
        """
        Generate a response for ``prompt``, blocking.

        Args:
            prompt: Complete user prompt text
            params: Sampling parameters

        Yields:
            Chunk for every piece of text as soon as the backend produces it,
            then exactly one Completion.

        Raises:
            InternalError, ValidationError or ModelError on failure.
        """

    async def submit(
        self, prompt: str, params: GenerationParams
    ) -> AsyncIterator[EngineEvent]:
        """
        Run ``stream`` on a worker thread and yield its events in order.

        Exceptions other than EngineError escaping the backend are reported
        as InternalError. A backend that stops without a Completion is
        reported as InternalError too.
        """
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def deliver(item) -> bool:
            # The consumer may have stopped and its loop closed under us
            if loop.is_closed():
                return False
            try:
                loop.call_soon_threadsafe(queue.put_nowait, item)
            except RuntimeError:
                return False
            return True

        def produce() -> None:
            try:
                for event in self.stream(prompt, params):
                    if not deliver(event):
                        logger.debug(f"{self.name} engine output abandoned, stopping")
                        return
            except EngineError as e:
                deliver(e)
            except Exception as e:
                logger.exception(f"{self.name} engine crashed")
                deliver(InternalError(self.name, str(e) or type(e).__name__))
            finally:
                deliver(_DONE)

        worker = threading.Thread(target=produce, name=f"{self.name}-engine", daemon=True)
        worker.start()

        completed = False
        while True:
            event = await queue.get()
            if event is _DONE:
                break
            if isinstance(event, EngineError):
                raise event
            if isinstance(event, Completion):
                completed = True
            yield event

        if not completed:
            raise InternalError(self.name, "stream ended without a completion summary")
