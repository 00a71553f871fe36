"""
Shared fixtures and fake provider clients.

No test touches the network: OpenAI, Replicate and ElevenLabs clients are
replaced by the in-memory fakes below.
"""
import json
import os
import re
import sys
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional

import pytest

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agents import ImageAgent, PromptAgent, SegmentAgent, StyleAgent, TTSAgent, VideoAgent
from agents import tts_agent as tts_module
from pipeline import ScriptcutPipeline
from schemas import PipelineSettings, SlotDraft
from store import ProjectStore
from utils.error_manager import ErrorManager
from utils.storage import StorageManager


# ==========================================================================
# Fake OpenAI (ChatAgent 자리에 직접 주입)
# ==========================================================================

class FakeChat:
    """Stands in for ChatAgent: replies come from a handler or a queue."""

    def __init__(self, responses: Optional[List[str]] = None, handler: Optional[Callable] = None):
        self.responses = list(responses or [])
        self.handler = handler
        self.calls: List[Dict] = []

    def complete(self, messages, model=None, temperature=0.7, max_tokens=None, json_mode=False):
        self.calls.append({"messages": messages, "model": model, "json_mode": json_mode})
        if self.handler is not None:
            return self.handler(messages)
        return self.responses.pop(0)

    def reply(self, messages):
        return self.complete(messages)


def segments_handler(messages):
    """Answers a segmentation request with exactly the requested number of segments."""
    count = int(re.search(r"exactly (\d+) segments", messages[1]["content"]).group(1))
    return json.dumps({
        "segments": [
            {
                "segment_number": n,
                "text": f"Segment text {n}",
                "scene_description": f"Scene {n}",
                "timestamp": "ignored",
            }
            for n in range(1, count + 1)
        ]
    })


def prompts_payload(indices, prefix="Prompt"):
    return json.dumps({
        "prompts": [
            {
                "sceneIndex": i,
                "prompt": f"{prefix} {i}",
                "visualContinuity": {
                    "elementsToMaintain": ["red coat"],
                    "elementsToEvolve": ["weather"],
                },
            }
            for i in indices
        ]
    })


# ==========================================================================
# Fake Replicate
# ==========================================================================

class FakePrediction:
    def __init__(self, id: str, status: str = "starting", output=None, error=None):
        self.id = id
        self.status = status
        self.output = output
        self.error = error

    def wait(self):
        return None


class FakePredictions:
    """
    create(): image predictions finish immediately via `image_handler(input)`,
    video predictions get sequential ids.
    get(): pops the next scripted status for the id; the last one repeats.
    """

    def __init__(self, image_handler: Optional[Callable] = None):
        self.image_handler = image_handler or (lambda params: ("succeeded", "https://img.example/out.png", None))
        self.created: List[Dict] = []
        self.get_calls: List[str] = []
        self.scripts: Dict[str, List] = {}
        self.create_error: Optional[Exception] = None
        self._next_id = 0

    def create(self, model=None, input=None, **kwargs):
        if self.create_error is not None:
            raise self.create_error
        self.created.append({"model": model, "input": input})
        self._next_id += 1
        prediction_id = f"pred-{self._next_id}"
        if "first_frame_image" in input:
            return FakePrediction(prediction_id)
        status, output, error = self.image_handler(input)
        return FakePrediction(prediction_id, status, output, error)

    def script(self, prediction_id: str, steps: List):
        """steps: [(status, output, error)] or an Exception instance"""
        self.scripts[prediction_id] = list(steps)

    def get(self, prediction_id):
        self.get_calls.append(prediction_id)
        steps = self.scripts.get(prediction_id, [("processing", None, None)])
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        status, output, error = step
        return FakePrediction(prediction_id, status, output, error)


class FakeReplicateClient:
    def __init__(self, image_handler: Optional[Callable] = None):
        self.predictions = FakePredictions(image_handler)


# ==========================================================================
# Fake ElevenLabs
# ==========================================================================

class FakeElevenLabs:
    def __init__(self, audio: bytes = b"\x00" * 16384):
        self.audio = audio
        self.convert_calls: List[Dict] = []
        self.voice_calls = 0
        self.text_to_speech = SimpleNamespace(convert=self._convert)
        self.voices = SimpleNamespace(get_all=self._get_all)

    def _convert(self, **kwargs):
        self.convert_calls.append(kwargs)
        half = len(self.audio) // 2
        return iter([self.audio[:half], self.audio[half:]])

    def _get_all(self):
        self.voice_calls += 1
        return SimpleNamespace(voices=[
            SimpleNamespace(
                voice_id="voice-1",
                name="Rachel",
                category="premade",
                preview_url="https://voices.example/rachel.mp3",
                labels={"gender": "female"},
            )
        ])


# ==========================================================================
# Fixtures
# ==========================================================================

@pytest.fixture(autouse=True)
def isolated_error_log(tmp_path, monkeypatch):
    monkeypatch.setattr(ErrorManager, "LOG_FILE", str(tmp_path / "api_errors.log"))


@pytest.fixture(autouse=True)
def reset_voice_cache(monkeypatch):
    monkeypatch.setattr(tts_module, "_voice_cache", {"data": None, "expires": 0})


@pytest.fixture
def settings(tmp_path):
    return PipelineSettings(output_dir=str(tmp_path), video_poll_interval_sec=0)


@pytest.fixture
def store(tmp_path):
    return ProjectStore(str(tmp_path))


@pytest.fixture
def replicate_client():
    return FakeReplicateClient()


def add_slots(store: ProjectStore, project_id: str, count: int = 3):
    drafts = [
        SlotDraft(
            index=i,
            text_segment=f"Text {i}",
            scene_description=f"Scene {i}",
            timestamp=f"{i * 6}-{(i + 1) * 6}s",
        )
        for i in range(count)
    ]
    return store.replace_slots(project_id, drafts)


@pytest.fixture
def project(store):
    """Narrated project with three slots and an approved style."""
    created = store.create("Once upon a time, a fox crossed the frozen river.")
    store.update(created.id, audio_duration=18.0, style_prompt="watercolor", aspect_ratio="16:9")
    return add_slots(store, created.id, 3)


def make_pipeline(store, settings, chat=None, replicate_client=None, tts_client=None):
    chat = chat or FakeChat(handler=segments_handler)
    replicate_client = replicate_client or FakeReplicateClient()
    image_agent = ImageAgent(client=replicate_client, store=store, settings=settings)
    return ScriptcutPipeline(
        store=store,
        chat_agent=chat,
        tts_agent=TTSAgent(
            client=tts_client or FakeElevenLabs(),
            store=store,
            storage=StorageManager(settings.output_dir),
        ),
        segment_agent=SegmentAgent(chat, store, settings),
        style_agent=StyleAgent(image_agent, store),
        prompt_agent=PromptAgent(chat, store, settings),
        image_agent=image_agent,
        video_agent=VideoAgent(client=replicate_client, store=store, settings=settings),
        settings=settings,
    )
