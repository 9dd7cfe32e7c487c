"""
Tests for engines/llama.py - local GGUF engine.

A fake model object stands in for llama_cpp.Llama.
"""

import unittest
from pathlib import Path

from cliprelay.core.errors import ConfigError
from cliprelay.engines.base import Chunk, Completion, GenerationParams, ModelError, ValidationError
from cliprelay.engines.llama import LlamaEngine, load_model


def delta(content=None, role=None):
    d = {}
    if role:
        d["role"] = role
    if content is not None:
        d["content"] = content
    return {"choices": [{"index": 0, "delta": d, "finish_reason": None}]}


class FakeLlama:
    def __init__(self, parts=(), error=None):
        self.parts = list(parts)
        self.error = error
        self.kwargs = None

    def tokenize(self, data):
        return data.split()

    def create_chat_completion(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return iter(self.parts)


class TestLlamaEngine(unittest.TestCase):

    def test_requires_model_path_or_model(self):
        with self.assertRaises(ValueError):
            LlamaEngine()

    def test_load_model_missing_file_is_config_error(self):
        with self.assertRaises(ConfigError):
            load_model(Path("/nonexistent/model.gguf"))

    def test_stream_yields_chunks_then_completion(self):
        llama = FakeLlama([delta(role="assistant"), delta("hi"), delta(""), delta(" there"), {"choices": []}])
        events = list(LlamaEngine(llama=llama).stream("say hi to me", GenerationParams()))

        self.assertEqual(events[:-1], [Chunk("hi"), Chunk(" there")])
        summary = events[-1]
        self.assertIsInstance(summary, Completion)
        self.assertEqual(summary.text, "hi there")
        self.assertEqual(summary.prompt_tokens, 4)
        self.assertEqual(summary.completion_tokens, 2)

    def test_request_uses_generation_params_and_streaming(self):
        llama = FakeLlama()
        list(LlamaEngine(llama=llama).stream("prompt", GenerationParams()))

        self.assertEqual(llama.kwargs["messages"], [{"role": "user", "content": "prompt"}])
        self.assertEqual(llama.kwargs["max_tokens"], 500)
        self.assertEqual(llama.kwargs["temperature"], 0.3)
        self.assertEqual(llama.kwargs["frequency_penalty"], 2.2)
        self.assertTrue(llama.kwargs["stream"])

    def test_context_overflow_is_validation_error(self):
        llama = FakeLlama(error=ValueError("Requested tokens exceed context window"))
        with self.assertRaises(ValidationError):
            list(LlamaEngine(llama=llama).stream("x", GenerationParams()))

    def test_runtime_failure_is_model_error(self):
        llama = FakeLlama(error=RuntimeError("llama_decode returned -1"))
        with self.assertRaises(ModelError):
            list(LlamaEngine(llama=llama).stream("x", GenerationParams()))


if __name__ == "__main__":
    unittest.main()
