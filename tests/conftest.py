from __future__ import annotations

import json

import pytest

from services.jury import JuryService


def score_payload(idea=8, relevance=7, novelty=9, feasibility=6, innovation=8, recommendation="SHORTLIST") -> str:
    return json.dumps({
        "scores": {
            "idea": idea,
            "solution_relevance": relevance,
            "novelty": novelty,
            "feasibility": feasibility,
            "innovation": innovation,
        },
        "total_score": 0,
        "normalized_score": 0,
        "strengths": ["clear problem", "good demo", "strong team"],
        "weaknesses": ["thin market research", "no pricing"],
        "summary": "Solid entry.",
        "recommendation": recommendation,
    })


class FakeBackend:
    """Scoring backend that replays canned replies and records prompts."""

    def __init__(self, replies=None, name="fake", configured=True):
        self.name = name
        self._configured = configured
        self.replies = list(replies or [])
        self.prompts: list[str] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def score(self, prompt: str) -> str:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else score_payload()
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def jury(backend) -> JuryService:
    return JuryService([backend], theme="AI for Social Good", batch_delay=0)
