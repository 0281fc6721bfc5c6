"""Shared fixtures: a scripted inference client and sample requests."""

import asyncio
import json
import re

import pytest

from examiner_panel.tools.essay_grading.models import GradingRequest

_DIMENSION_PATTERN = re.compile(r'assessing (AO\d)')

SAMPLE_ESSAY = (
    "A minimum wage is a legally enforced price floor for labour. "
    "It raises the incomes of low paid workers because employers must pay at least the set rate. "
    "For example, the UK national living wage rose to 10.42 pounds in 2023. "
    "However, if the wage is set above equilibrium, unemployment may rise. "
    "In conclusion, the overall impact depends on the level at which it is set."
)


def examiner_reply(score, band="L2", feedback="Solid work.", strengths=None, improvements=None, **extra):
    """JSON reply in the shape examiners are asked to produce."""
    data = {
        "score": score,
        "band": band,
        "feedback": feedback,
        "strengths": strengths if strengths is not None else ["Clear definitions"],
        "improvements": improvements if improvements is not None else ["Develop evaluation"],
    }
    data.update(extra)
    return json.dumps(data)


class FakeInferenceClient:
    """
    Scripted stand-in for InferenceClient.

    ``replies`` maps "AO1".."AO4" or "consensus" to reply text, an exception
    instance to raise, or a callable returning either. ``delays`` maps the same
    keys to seconds to wait before replying; a delay longer than the call's
    timeout raises asyncio.TimeoutError like the real client.
    """

    model_name = "fake-model"

    def __init__(self, replies=None, delays=None):
        self.replies = replies or {}
        self.delays = delays or {}
        self.calls = []

    @staticmethod
    def route(system_prompt):
        match = _DIMENSION_PATTERN.search(system_prompt)
        return match.group(1) if match else "consensus"

    async def complete(self, system_prompt, user_content, *, max_tokens=None, temperature=None, timeout=None):
        key = self.route(system_prompt)
        self.calls.append({
            "key": key,
            "system_prompt": system_prompt,
            "user_content": user_content,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "timeout": timeout,
        })

        delay = self.delays.get(key, 0)
        if delay:
            if timeout is not None and delay > timeout:
                await asyncio.sleep(timeout)
                raise asyncio.TimeoutError()
            await asyncio.sleep(delay)

        reply = self.replies.get(key)
        if callable(reply):
            reply = reply()
        if isinstance(reply, BaseException):
            raise reply
        if reply is None:
            if key == "consensus":
                return json.dumps({
                    "summary": "A competent answer with room to develop evaluation.",
                    "keyStrengths": ["Clear definitions"],
                    "priorityImprovements": ["Develop evaluation"],
                })
            return examiner_reply(1)
        return reply

    def keys_called(self):
        return [c["key"] for c in self.calls]


@pytest.fixture
def fake_client_class():
    """The FakeInferenceClient class, for tests that script their own replies."""
    return FakeInferenceClient


@pytest.fixture
def sample_request():
    """A 14-mark economics request."""
    return GradingRequest(
        question="Evaluate the impact of a national minimum wage on the labour market.",
        essay=SAMPLE_ESSAY,
        question_type="14-mark",
        subject="economics",
        has_diagram=True,
    )


@pytest.fixture
def sample_config():
    """Configuration with short deadlines for tests."""
    return {
        "openai": {
            "api_key": "test-key",
            "base_url": "http://localhost:9999/v1",
            "model": "test-model",
        },
        "grading": {
            "max_essay_chars": 10000,
            "deadline": 5,
            "dimension": {"timeout": 1, "temperature": 0.2, "max_tokens": 1500},
            "consensus": {"timeout": 1, "temperature": 0.4, "max_tokens": 600},
            "annotations": {"limit": 8},
        },
        "tools": {"max_concurrent": 2},
    }


@pytest.fixture
def make_reply():
    """Builder for examiner JSON replies."""
    return examiner_reply
