import json
import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from video_assessment import create_app
from video_assessment.extensions import db
from video_assessment.services.gemini_client import ModelResponse

RUBRIC_DIMENSIONS = [
    "communication", "practical_maturity", "collaboration_coachability",
    "problem_decomposition_design", "technical_execution", "learning_velocity", "work_process",
]


def make_model_payload(overall_score=4.2, null_dimensions=("ownership",), **overrides):
    """A v3 evaluation document: every rubric dimension scored, extra ones null."""
    dims = {}
    for i, slug in enumerate(RUBRIC_DIMENSIONS):
        dims[slug] = {
            "score": 3 + (i % 2),
            "confidence": "high",
            "rationale": f"{slug} was clearly demonstrated",
            "observable_behaviors": [f"{slug} behavior"],
            "timestamps": ["01:23", "1:02:03"],
            "trainable_gap": False,
            "green_flags": ["steady"],
            "red_flags": [],
        }
    for slug in null_dimensions:
        dims[slug] = {"score": None, "confidence": "low", "rationale": "Not observable",
                      "observable_behaviors": [], "timestamps": []}
    payload = {
        "evaluation_version": "3.0.0",
        "role_family_slug": "engineering",
        "overall_score": overall_score,
        "dimension_scores": dims,
        "detected_red_flags": [],
        "overall_summary": "Solid, methodical session.",
        "evaluation_confidence": "high",
        "insufficient_evidence_notes": None,
    }
    payload.update(overrides)
    return payload


class FakeModelClient:
    """Stands in for GeminiVideoClient; resolves the tracker like the real one."""

    model = "fake-model"

    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.calls = []

    def generate(self, video_url, prompt, tracker=None):
        self.calls.append((video_url, prompt))
        if self.error is not None:
            if tracker is not None:
                tracker.fail(self.error, stack_trace="Traceback: fake")
            raise self.error
        if tracker is not None:
            tracker.complete(response_text=self.text, status_code=200, prompt_tokens=10, response_tokens=20)
        return ModelResponse(self.text, 200, 10, 20)


@pytest.fixture
def app():
    app = create_app('config.TestConfig')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {"Authorization": "Bearer admin-token"}


@pytest.fixture
def payload():
    return make_model_payload()


@pytest.fixture
def fake_model(payload):
    return FakeModelClient(text=json.dumps(payload))
