from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, ClassVar, Coroutine, Dict, Optional, Set, Tuple, Union

from .errors import IllegalTransition, QuizGenerationError, StudioError
from .generation import GenerationService
from .narration import NarrationController, NarrationEngine
from .quiz import QuizSession
from .schemas import NoteSection

logger = logging.getLogger(__name__)

LOADING_NOTES = "Crafting your learning materials..."
LOADING_QUIZ = "Building your quiz..."
UNKNOWN_ERROR = "An unknown error occurred."
QUIZ_UNKNOWN_ERROR = "Could not generate the quiz."


def illustrating_message(count: int) -> str:
	return f"Generating {count} images to illustrate your notes..."


def normalize_topic(topic: Optional[str]) -> str:
	cleaned = (topic or "").strip()
	if not cleaned:
		raise ValueError("topic is required")
	return cleaned


# ---- quiz view state (only exists while notes are loaded) ----

@dataclass(frozen=True)
class QuizIdle:
	status: ClassVar[str] = "idle"
	error: Optional[str] = None


@dataclass(frozen=True)
class QuizGenerating:
	status: ClassVar[str] = "generating"
	message: str = LOADING_QUIZ


@dataclass(frozen=True)
class QuizActive:
	status: ClassVar[str] = "active"
	session: QuizSession


QuizPhase = Union[QuizIdle, QuizGenerating, QuizActive]


# ---- notes view state ----

@dataclass(frozen=True)
class NotesIdle:
	status: ClassVar[str] = "idle"


@dataclass(frozen=True)
class NotesLoading:
	status: ClassVar[str] = "loading"
	message: str


@dataclass(frozen=True)
class NotesFailed:
	status: ClassVar[str] = "error"
	error: str


@dataclass(frozen=True)
class NotesLoaded:
	status: ClassVar[str] = "loaded"
	topic: str
	sections: Tuple[NoteSection, ...]
	quiz: QuizPhase = QuizIdle()


NotesPhase = Union[NotesIdle, NotesLoading, NotesFailed, NotesLoaded]


class StudySession:
	"""
	Top-level view state for one page.

	Long-running work (notes, illustrations, quiz) runs in tasks spawned on the
	event loop. Each task remembers the epoch it started in and drops its result
	if the user has since reset, submitted another topic or left the quiz.
	"""

	def __init__(self, session_id: str, generation: GenerationService, engine: NarrationEngine) -> None:
		self.session_id = session_id
		self.generation = generation
		self.engine = engine
		self.narration = NarrationController(engine)
		self.phase: NotesPhase = NotesIdle()
		self._epoch = 0
		self._tasks: Set[asyncio.Task] = set()
		self.last_seen = time.monotonic()

	def touch(self) -> None:
		self.last_seen = time.monotonic()

	def _advance(self) -> int:
		self._epoch += 1
		return self._epoch

	def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
		task = asyncio.get_running_loop().create_task(coro)
		self._tasks.add(task)
		task.add_done_callback(self._tasks.discard)
		return task

	def submit_topic(self, topic: str) -> asyncio.Task:
		topic = normalize_topic(topic)
		if isinstance(self.phase, NotesLoading):
			raise IllegalTransition("Notes are already being generated")
		epoch = self._advance()
		self.narration.release()
		self.phase = NotesLoading(LOADING_NOTES)
		return self._spawn(self._load_notes(topic, epoch))

	async def _load_notes(self, topic: str, epoch: int) -> None:
		try:
			notes = await self.generation.generate_notes(topic)
			if epoch != self._epoch:
				return
			self.phase = NotesLoading(illustrating_message(len(notes)))
			illustrated = await self.generation.illustrate_notes(notes)
		except StudioError as err:
			if epoch == self._epoch:
				self.phase = NotesFailed(str(err))
			return
		except Exception:
			logger.exception("Unexpected failure while loading notes for %r", topic)
			if epoch == self._epoch:
				self.phase = NotesFailed(UNKNOWN_ERROR)
			return
		if epoch != self._epoch:
			return
		self.phase = NotesLoaded(topic=topic, sections=tuple(illustrated))
		self.narration.load(illustrated)

	def _loaded(self) -> NotesLoaded:
		if not isinstance(self.phase, NotesLoaded):
			raise IllegalTransition("No notes are loaded")
		return self.phase

	def start_quiz(self) -> asyncio.Task:
		phase = self._loaded()
		if not isinstance(phase.quiz, QuizIdle):
			raise IllegalTransition("A quiz is already being generated or taken")
		epoch = self._advance()
		self.phase = replace(phase, quiz=QuizGenerating())
		return self._spawn(self._build_quiz(phase.topic, phase.sections, epoch))

	async def _build_quiz(self, topic: str, sections: Tuple[NoteSection, ...], epoch: int) -> None:
		quiz: QuizPhase
		try:
			questions = await self.generation.generate_quiz(topic, sections)
		except QuizGenerationError as err:
			quiz = QuizIdle(error=str(err))
		except Exception:
			logger.exception("Unexpected failure while building a quiz for %r", topic)
			quiz = QuizIdle(error=QUIZ_UNKNOWN_ERROR)
		else:
			quiz = QuizActive(QuizSession(questions))
		if epoch != self._epoch or not isinstance(self.phase, NotesLoaded):
			return
		if isinstance(quiz, QuizActive):
			# The notes view is replaced by the quiz, so its narration goes away
			self.narration.release()
		self.phase = replace(self.phase, quiz=quiz)

	def quiz_session(self) -> QuizSession:
		quiz = self._loaded().quiz
		if not isinstance(quiz, QuizActive):
			raise IllegalTransition("No quiz is active")
		return quiz.session

	def back_to_notes(self) -> None:
		phase = self._loaded()
		self._advance()
		was_active = isinstance(phase.quiz, QuizActive)
		self.phase = replace(phase, quiz=QuizIdle())
		if was_active:
			self.narration.load(phase.sections)

	def reset(self) -> None:
		self._advance()
		self.narration.release()
		self.phase = NotesIdle()

	async def aclose(self) -> None:
		self.reset()
		tasks = list(self._tasks)
		for task in tasks:
			task.cancel()
		await asyncio.gather(*tasks, return_exceptions=True)

	def snapshot(self) -> Dict[str, Any]:
		phase = self.phase
		notes: Dict[str, Any] = {"status": phase.status}
		quiz: Dict[str, Any] = {"status": QuizIdle.status}
		if isinstance(phase, NotesLoading):
			notes["message"] = phase.message
		elif isinstance(phase, NotesFailed):
			notes["error"] = phase.error
		elif isinstance(phase, NotesLoaded):
			notes["topic"] = phase.topic
			notes["sections"] = [s.model_dump(by_alias=True) for s in phase.sections]
			quiz["status"] = phase.quiz.status
			if isinstance(phase.quiz, QuizIdle) and phase.quiz.error:
				quiz["error"] = phase.quiz.error
			elif isinstance(phase.quiz, QuizGenerating):
				quiz["message"] = phase.quiz.message
			elif isinstance(phase.quiz, QuizActive):
				quiz.update(phase.quiz.session.snapshot())
		return {
			"session_id": self.session_id,
			"notes": notes,
			"quiz": quiz,
			"narration": self.narration.snapshot(),
		}
