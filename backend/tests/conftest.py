import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

from learning_studio.gemini_client import GeminiClient
from learning_studio.generation import GenerationService
from learning_studio.narration import NarrationEngine, Utterance
from learning_studio.routers import studio as studio_router


NOTES: List[Dict[str, str]] = [
	{"heading": "What is photosynthesis?", "content": "Plants turn light into chemical energy.\nIt happens in chloroplasts.", "imagePrompt": "a leaf absorbing sunlight"},
	{"heading": "Light reactions", "content": "Water is split and oxygen is released.", "imagePrompt": "thylakoid membrane diagram"},
	{"heading": "Calvin cycle", "content": "Carbon dioxide is fixed into sugars.", "imagePrompt": "cycle of carbon fixation"},
]


def make_quiz(count: int = 10) -> List[Dict[str, Any]]:
	return [
		{
			"question": f"Question {i + 1}?",
			"options": [f"q{i}-a", f"q{i}-b", f"q{i}-c", f"q{i}-d"],
			"correctAnswer": f"q{i}-{'abcd'[i % 4]}",
			"explanation": f"Because of reason {i + 1}.",
		}
		for i in range(count)
	]


def gemini_text(payload: Any) -> Dict[str, Any]:
	text = payload if isinstance(payload, str) else json.dumps(payload)
	return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


class FakeGemini:
	"""Mock transport answering generateContent and predict calls."""

	def __init__(self, notes: Any = None, quiz: Any = None, image: Optional[str] = "aW1hZ2U=") -> None:
		self.notes = NOTES if notes is None else notes
		self.quiz = make_quiz() if quiz is None else quiz
		self.image = image
		self.requests: List[httpx.Request] = []
		self.fail_images = False
		self.fail_text = False

	def handler(self, request: httpx.Request) -> httpx.Response:
		self.requests.append(request)
		path = request.url.path
		if path.endswith(":predict"):
			if self.fail_images:
				return httpx.Response(500, json={"error": "boom"})
			return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": self.image, "mimeType": "image/jpeg"}]})
		if path.endswith(":generateContent"):
			if self.fail_text:
				return httpx.Response(503, json={"error": "unavailable"})
			body = json.loads(request.content)
			prompt = body["contents"][0]["parts"][0]["text"]
			if prompt.startswith("You are a quiz master"):
				return httpx.Response(200, json=gemini_text(self.quiz))
			return httpx.Response(200, json=gemini_text(self.notes))
		return httpx.Response(404)

	def client(self) -> GeminiClient:
		return GeminiClient(api_key="test-key", transport=httpx.MockTransport(self.handler))

	def service(self) -> GenerationService:
		return GenerationService(self.client(), quiz_length=10, image_stagger_seconds=0)

	def bodies(self, suffix: str) -> List[Dict[str, Any]]:
		return [json.loads(r.content) for r in self.requests if r.url.path.endswith(suffix)]


class FakeEngine(NarrationEngine):
	"""Records every engine call; tests drive utterance callbacks directly."""

	def __init__(self) -> None:
		self.calls: List[str] = []
		self.queue: List[Utterance] = []

	def speak(self, utterance: Utterance) -> None:
		self.calls.append("speak")
		self.queue.append(utterance)

	def pause(self) -> None:
		self.calls.append("pause")

	def resume(self) -> None:
		self.calls.append("resume")

	def cancel(self) -> None:
		self.calls.append("cancel")
		self.queue = []

	def start(self, index: int) -> None:
		self.queue[index].on_start()

	def end(self, index: int) -> None:
		self.queue[index].on_end()

	def fail(self, index: int, error: str = "synthesis-failed") -> None:
		self.queue[index].on_error(error)


@pytest.fixture
def anyio_backend():
	return "asyncio"


@pytest.fixture
def fake_gemini() -> FakeGemini:
	return FakeGemini()


@pytest.fixture
def engine() -> FakeEngine:
	return FakeEngine()


@pytest.fixture(autouse=True)
def _clear_sessions():
	studio_router._sessions.clear()
	yield
	studio_router._sessions.clear()


@pytest.fixture
def sections():
	from learning_studio.schemas import NoteSection
	return [NoteSection.model_validate(n) for n in NOTES]


@pytest.fixture
def questions():
	from learning_studio.schemas import QuizQuestion
	return [QuizQuestion.model_validate(q) for q in make_quiz()]
