import asyncio

import pytest

from conftest import make_quiz
from learning_studio.errors import IllegalTransition, InvalidQuizDataError, NotesGenerationError
from learning_studio.narration import PlaybackState
from learning_studio.routers import studio as studio_router
from learning_studio.schemas import QuizQuestion
from learning_studio.studio import (
	LOADING_NOTES,
	NotesFailed,
	NotesIdle,
	NotesLoaded,
	NotesLoading,
	QuizActive,
	QuizGenerating,
	QuizIdle,
	StudySession,
	normalize_topic,
)


class GatedGeneration:
	"""Generation double whose calls block until the test opens their gate."""

	def __init__(self, sections, *, notes_error=None, quiz_error=None):
		self.sections = sections
		self.notes_error = notes_error
		self.quiz_error = quiz_error
		self.notes_gate = asyncio.Event()
		self.images_gate = asyncio.Event()
		self.quiz_gate = asyncio.Event()
		self.topics = []

	async def generate_notes(self, topic):
		self.topics.append(topic)
		await self.notes_gate.wait()
		if self.notes_error:
			raise self.notes_error
		return list(self.sections)

	async def illustrate_notes(self, notes):
		await self.images_gate.wait()
		return [n.with_image("https://picsum.photos/1280/720") for n in notes]

	async def generate_quiz(self, topic, notes):
		await self.quiz_gate.wait()
		if self.quiz_error:
			raise self.quiz_error
		return [QuizQuestion.model_validate(q) for q in make_quiz()]

	def open_all(self):
		self.notes_gate.set()
		self.images_gate.set()
		self.quiz_gate.set()


async def settle():
	for _ in range(20):
		await asyncio.sleep(0)


async def _loaded_session(gen, engine, topic="Photosynthesis"):
	session = StudySession("s1", gen, engine)
	gen.notes_gate.set()
	gen.images_gate.set()
	await session.submit_topic(topic)
	return session


def test_normalize_topic():
	assert normalize_topic("  Black holes ") == "Black holes"
	with pytest.raises(ValueError):
		normalize_topic("   ")
	with pytest.raises(ValueError):
		normalize_topic(None)


@pytest.mark.anyio
async def test_submit_topic_walks_through_loading_messages(engine, sections):
	gen = GatedGeneration(sections)
	session = StudySession("s1", gen, engine)
	task = session.submit_topic("  Photosynthesis ")
	assert session.phase == NotesLoading(LOADING_NOTES)

	gen.notes_gate.set()
	await settle()
	assert session.phase == NotesLoading("Generating 3 images to illustrate your notes...")

	gen.images_gate.set()
	await task
	phase = session.phase
	assert isinstance(phase, NotesLoaded)
	assert phase.topic == "Photosynthesis"
	assert [s.heading for s in phase.sections] == [s.heading for s in sections]
	assert all(s.image_url for s in phase.sections)
	assert phase.quiz == QuizIdle()
	assert len(session.narration.queue) == 3
	assert gen.topics == ["Photosynthesis"]


@pytest.mark.anyio
async def test_notes_failure_shows_banner(engine, sections):
	gen = GatedGeneration(sections, notes_error=NotesGenerationError("Failed to generate notes."))
	gen.open_all()
	session = StudySession("s1", gen, engine)
	await session.submit_topic("Topic")
	assert session.phase == NotesFailed("Failed to generate notes.")
	assert session.snapshot()["notes"] == {"status": "error", "error": "Failed to generate notes."}

	# the form is usable again
	gen.notes_error = None
	await session.submit_topic("Topic")
	assert isinstance(session.phase, NotesLoaded)


@pytest.mark.anyio
async def test_unexpected_failure_is_reported(engine, sections):
	gen = GatedGeneration(sections, notes_error=KeyError("oops"))
	gen.open_all()
	session = StudySession("s1", gen, engine)
	await session.submit_topic("Topic")
	assert session.phase == NotesFailed("An unknown error occurred.")


@pytest.mark.anyio
async def test_submit_while_loading_is_rejected(engine, sections):
	gen = GatedGeneration(sections)
	session = StudySession("s1", gen, engine)
	task = session.submit_topic("One")
	with pytest.raises(IllegalTransition):
		session.submit_topic("Two")
	gen.open_all()
	await task


@pytest.mark.anyio
async def test_reset_during_loading_discards_late_result(engine, sections):
	gen = GatedGeneration(sections)
	session = StudySession("s1", gen, engine)
	task = session.submit_topic("Topic")
	session.reset()
	gen.open_all()
	await task
	assert session.phase == NotesIdle()
	assert session.narration.queue == []


@pytest.mark.anyio
async def test_quiz_generation_to_active(engine, sections):
	gen = GatedGeneration(sections)
	session = await _loaded_session(gen, engine)
	session.narration.play()

	task = session.start_quiz()
	assert isinstance(session.phase.quiz, QuizGenerating)
	# notes stay visible while the quiz is built
	assert session.snapshot()["notes"]["status"] == "loaded"
	with pytest.raises(IllegalTransition):
		session.start_quiz()

	gen.quiz_gate.set()
	await task
	assert isinstance(session.phase.quiz, QuizActive)
	assert session.quiz_session().total == 10
	assert session.narration.state is PlaybackState.STOPPED
	assert session.narration.queue == []


@pytest.mark.anyio
async def test_quiz_failure_keeps_notes(engine, sections):
	gen = GatedGeneration(sections, quiz_error=InvalidQuizDataError("Received invalid quiz data from API."))
	session = await _loaded_session(gen, engine)
	before = session.phase.sections
	gen.quiz_gate.set()
	await session.start_quiz()
	assert session.phase.quiz == QuizIdle(error="Received invalid quiz data from API.")
	assert session.phase.sections == before
	assert session.snapshot()["quiz"] == {"status": "idle", "error": "Received invalid quiz data from API."}

	# retrying is allowed after a failure
	gen.quiz_error = None
	await session.start_quiz()
	assert isinstance(session.phase.quiz, QuizActive)


@pytest.mark.anyio
async def test_back_to_notes_discards_quiz_and_restores_narration(engine, sections):
	gen = GatedGeneration(sections)
	session = await _loaded_session(gen, engine)
	gen.quiz_gate.set()
	await session.start_quiz()
	session.quiz_session().select(session.quiz_session().current.options[0])

	session.back_to_notes()
	assert session.phase.quiz == QuizIdle()
	assert len(session.narration.queue) == 3
	with pytest.raises(IllegalTransition):
		session.quiz_session()

	await session.start_quiz()
	assert session.quiz_session().answers == {}


@pytest.mark.anyio
async def test_back_to_notes_while_generating_drops_quiz(engine, sections):
	gen = GatedGeneration(sections)
	session = await _loaded_session(gen, engine)
	task = session.start_quiz()
	session.back_to_notes()
	gen.quiz_gate.set()
	await task
	assert session.phase.quiz == QuizIdle()


@pytest.mark.anyio
async def test_reset_clears_everything(engine, sections):
	gen = GatedGeneration(sections)
	session = await _loaded_session(gen, engine)
	gen.quiz_gate.set()
	await session.start_quiz()
	session.reset()
	assert session.phase == NotesIdle()
	assert session.narration.state is PlaybackState.STOPPED
	assert engine.calls[-1] == "cancel"
	snap = session.snapshot()
	assert snap["notes"] == {"status": "idle"}
	assert snap["quiz"] == {"status": "idle"}


def test_quiz_requires_loaded_notes(engine, sections):
	session = StudySession("s1", GatedGeneration(sections), engine)
	with pytest.raises(IllegalTransition):
		session.start_quiz()
	with pytest.raises(IllegalTransition):
		session.back_to_notes()


@pytest.mark.anyio
async def test_aclose_waits_for_cancelled_work(engine, sections):
	gen = GatedGeneration(sections)
	session = StudySession("s1", gen, engine)
	task = session.submit_topic("Topic")
	await settle()
	await session.aclose()
	assert task.done() and task.cancelled()
	assert session.phase == NotesIdle()


@pytest.mark.anyio
async def test_idle_sessions_are_closed(engine, sections):
	gen = GatedGeneration(sections)
	idle = StudySession("idle", gen, engine)
	active = StudySession("active", gen, engine)
	studio_router._sessions.update({"idle": idle, "active": active})
	idle.last_seen -= 7200

	assert await studio_router.prune_idle_sessions(3600) == 1
	assert list(studio_router._sessions) == ["active"]
	assert idle.phase == NotesIdle()
	assert await studio_router.prune_idle_sessions(3600) == 0


def test_lookup_refreshes_last_seen(engine, sections):
	session = StudySession("s1", GatedGeneration(sections), engine)
	studio_router._sessions["s1"] = session
	session.last_seen -= 7200
	stale = session.last_seen
	assert studio_router.get_session("s1") is session
	assert session.last_seen > stale + 7000
