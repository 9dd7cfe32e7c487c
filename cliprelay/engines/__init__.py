"""Inference engine implementations for cliprelay.

Backends are imported lazily by cliprelay.enginefactory so the relay core
does not pull in llama.cpp or the Mistral SDK until an engine is built.
"""

from cliprelay.engines.base import (
    Chunk,
    Completion,
    EngineError,
    GenerationParams,
    InferenceEngine,
    InternalError,
    ModelError,
    ValidationError,
)

__all__ = [
    "Chunk",
    "Completion",
    "EngineError",
    "GenerationParams",
    "InferenceEngine",
    "InternalError",
    "ModelError",
    "ValidationError",
]
