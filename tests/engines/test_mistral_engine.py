"""
Tests for engines/mistral.py - Mistral API engine.

The Mistral client is replaced by a fake exposing chat.stream().
"""

import unittest
from types import SimpleNamespace

from cliprelay.engines.base import Chunk, Completion, GenerationParams
from cliprelay.engines.mistral import MistralEngine, clear_client_cache, get_cached_client


def event(content, usage=None):
    choice = SimpleNamespace(delta=SimpleNamespace(content=content))
    return SimpleNamespace(data=SimpleNamespace(choices=[choice], usage=usage))


class FakeChat:
    def __init__(self, events):
        self.events = events
        self.kwargs = None

    def stream(self, **kwargs):
        self.kwargs = kwargs
        return iter(self.events)


class TestMistralEngine(unittest.TestCase):

    def tearDown(self):
        clear_client_cache()

    def test_requires_api_key_or_client(self):
        with self.assertRaises(ValueError):
            MistralEngine()

    def test_cached_client_reused_per_key(self):
        self.assertIs(get_cached_client("key-a"), get_cached_client("key-a"))
        self.assertIsNot(get_cached_client("key-a"), get_cached_client("key-b"))

    def test_stream_yields_chunks_and_usage_summary(self):
        usage = SimpleNamespace(prompt_tokens=7, completion_tokens=2)
        chat = FakeChat([event("hi"), event(None), event(" there", usage=usage)])
        engine = MistralEngine(client=SimpleNamespace(chat=chat), model="mistral-small-latest")

        events = list(engine.stream("hello", GenerationParams()))

        self.assertEqual(events[:-1], [Chunk("hi"), Chunk(" there")])
        summary = events[-1]
        self.assertIsInstance(summary, Completion)
        self.assertEqual(summary.text, "hi there")
        self.assertEqual(summary.prompt_tokens, 7)
        self.assertEqual(summary.completion_tokens, 2)

    def test_request_parameters(self):
        chat = FakeChat([])
        engine = MistralEngine(client=SimpleNamespace(chat=chat), model="open-mistral-nemo")
        list(engine.stream("hello", GenerationParams()))

        self.assertEqual(chat.kwargs["model"], "open-mistral-nemo")
        self.assertEqual(chat.kwargs["messages"], [{"role": "user", "content": "hello"}])
        self.assertEqual(chat.kwargs["max_tokens"], 500)
        self.assertEqual(chat.kwargs["temperature"], 0.3)
        self.assertEqual(chat.kwargs["frequency_penalty"], 2.2)

    def test_list_content_is_joined(self):
        parts = [SimpleNamespace(text="a"), SimpleNamespace(text="b")]
        engine = MistralEngine(client=SimpleNamespace(chat=FakeChat([event(parts)])))
        events = list(engine.stream("x", GenerationParams()))
        self.assertEqual(events[0], Chunk("ab"))


if __name__ == "__main__":
    unittest.main()
