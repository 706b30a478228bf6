"""Shared fixtures: a controllable clock and mock-transport API clients."""

import copy
from typing import Callable, List

import httpx
import pytest

from upstream.client import OpenRouterClient


class FakeClock:
    """Epoch-seconds clock whose ``sleep`` advances time instead of waiting."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_client(clock):
    """Factory for an OpenRouterClient backed by ``httpx.MockTransport``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> OpenRouterClient:
        client = OpenRouterClient(
            "sk-or-test-key-123456",
            transport=httpx.MockTransport(handler),
            clock=clock,
            sleep=clock.sleep,
            **kwargs,
        )
        return client

    return _make


SAMPLE_MODELS = [
    {
        "id": "openai/gpt-4o",
        "name": "OpenAI: GPT-4o",
        "description": "OpenAI's flagship multimodal model",
        "context_length": 128000,
        "pricing": {"prompt": "0.0000025", "completion": "0.00001"},
        "capabilities": {"functions": True, "tools": True, "vision": True, "json_mode": True},
        "top_provider": {"max_completion_tokens": 16384},
    },
    {
        "id": "anthropic/claude-sonnet-4",
        "name": "Anthropic: Claude Sonnet 4",
        "context_length": 200000,
        "pricing": {"prompt": "0.000003", "completion": "0.000015"},
        "supported_parameters": ["tools", "tool_choice", "max_tokens"],
        "architecture": {"input_modalities": ["text", "image"]},
    },
    {
        "id": "meta-llama/llama-3.1-8b-instruct",
        "name": "Meta: Llama 3.1 8B Instruct",
        "description": "Small open-weights model",
        "context_length": 16,
        "pricing": {"prompt": "0", "completion": "0"},
    },
]


@pytest.fixture
def sample_models():
    return copy.deepcopy(SAMPLE_MODELS)
