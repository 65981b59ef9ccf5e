import io
import json
from types import SimpleNamespace

import httpx
import openai
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app import create_app
from config import Settings
from services.rate_limit import limiter
from services.vision_client import VisionClient


def image_bytes(fmt, size=(16, 16), color=(200, 160, 130)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format=fmt)
    return buf.getvalue()


JPEG_BYTES = image_bytes("JPEG")
PNG_BYTES = image_bytes("PNG")
# right signature, not an image
FAKE_JPEG_BYTES = b"\xff\xd8\xff" + b"this is not an image at all" * 4

SECTION_REPLY = """📊 OVERALL ATTRACTIVENESS SCORE: 8/10
Balanced features and a confident, friendly look.

🎯 CATEGORY SCORES:
• Facial Symmetry: 8.5/10
• Grooming: 7/10

🌟 TOP 5 BEST FEATURES:
1. Eyes - bright and expressive
2. Jawline - clean and well defined
3. Smile - warm and natural

💎 DETAILED ANALYSIS:
Your features work well together and the lighting flatters your face.

👔 STYLE RECOMMENDATIONS:
1. Try a textured crop haircut
2. Wear earth tones to match your skin
3. Keep eyebrows tidy and shaped

📋 ACTION PLAN:
1. IMMEDIATE (this week): Start a daily SPF routine
2. IMMEDIATE (this week): Get a fresh haircut
3. IMMEDIATE (this week): Drink more water
4. SHORT-TERM (1-3 months): Build a skincare routine
5. LONG-TERM (3+ months): Regular strength training
"""

STRUCTURED_JSON = {
    "scores": {
        "overall": 7.5,
        "facialSymmetry": 8,
        "skinClarity": 6.5,
        "grooming": 7,
        "expression": 9,
        "eyeAppeal": 8,
        "facialStructure": 7,
        "hairStyle": 6,
        "skinTone": 7,
    },
    "bestFeatures": ["Expressive eyes", "Warm smile", "Strong brow", "Clear skin", "Good posture",
                     "Defined cheekbones", "Neat hair"],
    "styleRecommendations": ["Side part haircut", "Navy and olive colors"],
    "actionPlan": ["Moisturize daily", "Trim eyebrows", "Sleep 8 hours", "Hit the gym"],
    "summary": "A friendly, well-balanced face.",
}

STRUCTURED_REPLY = SECTION_REPLY + "\n" + json.dumps(STRUCTURED_JSON, indent=2)


def completion(text, tokens=321, model="grok-2-vision-1212"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(total_tokens=tokens),
        model=model,
    )


def status_error(status):
    request = httpx.Request("POST", "https://api.x.ai/v1/chat/completions")
    response = httpx.Response(status, request=request, json={"error": {"message": "boom"}})
    return openai.APIStatusError(f"Error code: {status}", response=response, body=None)


def connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.x.ai/v1/chat/completions"))


class FakeCompletions:
    """Plays back outcomes in order; the last one repeats."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeOpenAI:
    def __init__(self, *outcomes):
        self.completions = FakeCompletions(outcomes or [completion(SECTION_REPLY)])
        self.chat = SimpleNamespace(completions=self.completions)


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield
    limiter.reset()


@pytest.fixture
def settings():
    return Settings(api_key="xai-test-key-1234", rate_limit_enabled=False)


@pytest.fixture
def make_client(settings):
    """Build (TestClient, fake openai, sleep recorder) around a fake upstream."""

    def _make(*outcomes, settings_override=None):
        s = settings_override or settings
        fake = FakeOpenAI(*outcomes)
        sleep = RecordingSleep()
        vision = VisionClient(s, client=fake, sleep=sleep)
        return TestClient(create_app(s, vision)), fake, sleep

    return _make
