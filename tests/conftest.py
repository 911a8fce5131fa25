"""Pytest configuration and fixtures."""

import hashlib
import json
import os
import pathlib
import pytest
import vcr

from lexicon_prime.controller import SessionController
from lexicon_prime.models import LearningSession

# Calculate hash of prompts.py for cassette invalidation
PROMPTS_HASH = hashlib.sha256(
    (pathlib.Path(__file__).parent.parent / "lexicon_prime" / "prompts.py").read_bytes()
).hexdigest()[:8]


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms / 1000.0


def make_word(headword: str, **extra) -> dict:
    word = {
        "word": headword,
        "phonetic": f"/{headword}/",
        "definition": f"Definition of {headword}",
        "sarcasticDefinition": f"Obviously, {headword}",
        "origin": "Latin",
        "contextSentence": f"The {headword} erupted.",
        "moodColor": "#FF4400",
        "fontVibe": "SERIF",
        "nativeContexts": [
            {"label": f"ctx{i}", "description": f"desc{i}", "sentence": f"sentence{i}",
             "connotation": "neutral", "significance": f"sig{i}"}
            for i in range(4)
        ],
        "synonyms": [{"word": f"{headword}-syn", "definition": "same"}],
        "antonyms": [{"word": f"{headword}-ant", "definition": "opposite"}],
        "visualPrompt": f"A dramatic painting of {headword}",
        "quiz": [{"question": f"What is {headword}?", "options": ["this", "that"],
                  "answer": "this", "explanation": "Because."}],
    }
    word.update(extra)
    return word


@pytest.fixture
def cassette():
    """Cassette filename with prompt hash."""
    def _cassette(name: str) -> str:
        return f"{name}_{PROMPTS_HASH}.yaml"
    return _cassette


@pytest.fixture
def my_vcr():
    """VCR fixture for recording/replaying HTTP interactions."""
    return vcr.VCR(
        cassette_library_dir="tests/fixtures",
        filter_headers=[("authorization", "DUMMY")],
        record_mode="once",
    )


@pytest.fixture
def live_guard():
    """Skip unless live testing is enabled."""
    if not os.getenv("LEXICON_LIVE"):
        pytest.skip("Live LLM disabled (set LEXICON_LIVE=1)")


@pytest.fixture
def session_data():
    """A three word session as the generation service would return it."""
    return {
        "topic": "Volcano",
        "fullText": "The magma rose, the caldera groaned and the pyroclastic flow raced downhill.",
        "words": [make_word("magma"), make_word("caldera"), make_word("pyroclastic")],
    }


@pytest.fixture
def session_json(session_data):
    return json.dumps(session_data)


@pytest.fixture
def session(session_data):
    return LearningSession.model_validate(session_data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def learning_controller(session_json, clock):
    """A controller already inside the learning sequence at (0, 0)."""
    controller = SessionController(lock_ms=400, clock=clock)
    controller.import_session(session_json)
    controller.finish_intro()
    controller.continue_from_preview()
    return controller


@pytest.fixture
def word_factory():
    return make_word
