"""
Tests for engines/base.py - the threaded submit() bridge.

Backends here are scripted: they yield fixed events from the worker thread
so ordering and error propagation can be checked without a model.
"""

import asyncio
import threading
import time
import unittest
from unittest.mock import patch

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


class ScriptedEngine(InferenceEngine):
    name = "scripted"

    def __init__(self, events, error=None, delay=0.0):
        self.events = events
        self.error = error
        self.delay = delay
        self.calls = []

    def stream(self, prompt, params):
        self.calls.append((prompt, params))
        for event in self.events:
            if self.delay:
                time.sleep(self.delay)
            yield event
        if self.error is not None:
            raise self.error


async def drain(engine, prompt="prompt"):
    received = []
    async for event in engine.submit(prompt, GenerationParams()):
        received.append(event)
    return received


class TestSubmit(unittest.IsolatedAsyncioTestCase):

    async def test_events_arrive_in_production_order(self):
        chunks = [Chunk(str(i)) for i in range(200)]
        engine = ScriptedEngine(chunks + [Completion("".join(c.text for c in chunks))])

        received = await drain(engine)

        self.assertEqual(received[:-1], chunks)
        self.assertIsInstance(received[-1], Completion)

    async def test_prompt_and_params_reach_backend(self):
        engine = ScriptedEngine([Completion("")])
        await drain(engine, prompt="hello")
        prompt, params = engine.calls[0]
        self.assertEqual(prompt, "hello")
        self.assertEqual(params, GenerationParams(500, 0.3, 2.2))

    async def test_slow_producer_is_awaited(self):
        engine = ScriptedEngine([Chunk("a"), Chunk("b"), Completion("ab")], delay=0.02)
        received = await drain(engine)
        self.assertEqual([e.text for e in received], ["a", "b", "ab"])

    async def test_engine_error_raised_after_earlier_chunks(self):
        engine = ScriptedEngine([Chunk("one")], error=ModelError("scripted", "boom"))
        received = []
        with self.assertRaises(ModelError) as context:
            async for event in engine.submit("p", GenerationParams()):
                received.append(event)
        self.assertEqual(received, [Chunk("one")])
        self.assertIn("Model error from scripted engine", str(context.exception))

    async def test_unexpected_exception_becomes_internal_error(self):
        engine = ScriptedEngine([], error=KeyError("choices"))
        with self.assertRaises(InternalError):
            await drain(engine)

    async def test_missing_completion_is_internal_error(self):
        engine = ScriptedEngine([Chunk("dangling")])
        with self.assertRaises(InternalError):
            await drain(engine)


class TestEngineErrors(unittest.TestCase):

    def test_error_kinds_share_a_base(self):
        for cls, kind in ((InternalError, "Internal"), (ValidationError, "Validation"), (ModelError, "Model")):
            with self.subTest(kind=kind):
                error = cls("llama", "details")
                self.assertIsInstance(error, EngineError)
                self.assertEqual(error.engine, "llama")
                self.assertEqual(str(error), f"{kind} error from llama engine: details")

    def test_completion_describe(self):
        summary = Completion("hello", prompt_tokens=3, completion_tokens=2, completion_tok_per_sec=10.0)
        self.assertEqual(
            summary.describe(),
            "5 chars, prompt tokens: 3, completion tokens: 2, completion T/s: 10.00",
        )


class GatedEngine(InferenceEngine):
    """Yields one chunk, then waits for ``release`` before producing the rest."""

    name = "gated"

    def __init__(self, error=None):
        self.release = threading.Event()
        self.error = error
        self.finished = False

    def stream(self, prompt, params):
        yield Chunk("first")
        self.release.wait(timeout=5)
        if self.error is not None:
            raise self.error
        yield Chunk("second")
        self.finished = True
        yield Completion("first second")


class TestSubmitAfterLoopClosed(unittest.TestCase):
    """The worker thread must wind down quietly once its event loop is gone."""

    def setUp(self):
        self.thread_errors = []
        patcher = patch("threading.excepthook", self.thread_errors.append)
        patcher.start()
        self.addCleanup(patcher.stop)

    def _abandon_after_first_event(self, engine):
        loop = asyncio.new_event_loop()
        try:
            events = engine.submit("p", GenerationParams())
            first = loop.run_until_complete(events.__anext__())
            loop.run_until_complete(events.aclose())
            worker = next(t for t in threading.enumerate() if t.name == f"{engine.name}-engine")
        finally:
            loop.close()
        return first, worker

    def test_abandoned_stream_stops_worker_without_thread_error(self):
        engine = GatedEngine()
        first, worker = self._abandon_after_first_event(engine)

        engine.release.set()
        worker.join(timeout=5)

        self.assertEqual(first, Chunk("first"))
        self.assertFalse(worker.is_alive())
        self.assertFalse(engine.finished)
        self.assertEqual(self.thread_errors, [])

    def test_error_after_loop_closed_does_not_escape_worker(self):
        engine = GatedEngine(error=ModelError("gated", "out of memory"))
        _, worker = self._abandon_after_first_event(engine)

        engine.release.set()
        worker.join(timeout=5)

        self.assertFalse(worker.is_alive())
        self.assertEqual(self.thread_errors, [])

    def test_fatal_error_then_loop_close_leaves_no_thread_error(self):
        engine = ScriptedEngine([], error=KeyError("choices"))
        loop = asyncio.new_event_loop()
        try:
            with self.assertRaises(InternalError):
                loop.run_until_complete(drain(engine))
        finally:
            loop.close()

        for thread in threading.enumerate():
            if thread.name == "scripted-engine":
                thread.join(timeout=5)
        self.assertEqual(self.thread_errors, [])


if __name__ == "__main__":
    unittest.main()
