from __future__ import annotations
import asyncio
import logging
from typing import Any, List, Sequence

from pydantic import ValidationError

from .errors import InvalidQuizDataError, NotesGenerationError, QuizGenerationError
from .failure import DegradeTo, SurfaceFailure, with_failure_policy
from .gemini_client import GeminiClient
from .prompts import (
	NOTES_RESPONSE_SCHEMA,
	QUIZ_RESPONSE_SCHEMA,
	build_notes_prompt,
	build_quiz_prompt,
	decorate_image_prompt,
)
from .schemas import NoteSection, QuizQuestion
from .settings import settings

logger = logging.getLogger(__name__)

NOTES_FAILED = "Failed to generate notes. Please check the topic and try again."
NOTES_EMPTY = "Could not generate notes for this topic. Please try a different one."
QUIZ_FAILED = "Failed to generate a quiz for this topic. Please try again."
QUIZ_INVALID = "Received invalid quiz data from API."


def _parse_notes(data: Any) -> List[NoteSection]:
	if not isinstance(data, list):
		raise ValueError(f"Expected a JSON array of sections, got {type(data).__name__}")
	if not data:
		raise NotesGenerationError(NOTES_EMPTY)
	return [NoteSection.model_validate(item) for item in data]


def _parse_quiz(data: Any, expected: int) -> List[QuizQuestion]:
	if not isinstance(data, list) or not data or not isinstance(data[0], dict) or not data[0].get("question"):
		raise InvalidQuizDataError(QUIZ_INVALID)
	try:
		questions = [QuizQuestion.model_validate(item) for item in data]
	except ValidationError as err:
		raise InvalidQuizDataError(QUIZ_INVALID) from err
	if len(questions) != expected:
		raise InvalidQuizDataError(QUIZ_INVALID)
	return questions


class GenerationService:
	"""Notes, illustrations and quizzes on top of a single Gemini client."""

	def __init__(self, client: GeminiClient, *, quiz_length: int | None = None, image_stagger_seconds: float | None = None) -> None:
		self.client = client
		self.quiz_length = quiz_length if quiz_length is not None else settings.quiz_length
		self.image_stagger_seconds = (
			image_stagger_seconds if image_stagger_seconds is not None else settings.image_stagger_seconds
		)

	@with_failure_policy(SurfaceFailure(NotesGenerationError, NOTES_FAILED, passthrough=(NotesGenerationError,)))
	async def generate_notes(self, topic: str) -> List[NoteSection]:
		data = await self.client.generate_json(build_notes_prompt(topic), NOTES_RESPONSE_SCHEMA)
		notes = _parse_notes(data)
		logger.info("Generated %d note sections for %r", len(notes), topic)
		return notes

	@with_failure_policy(DegradeTo(lambda: settings.placeholder_image_url))
	async def generate_image(self, prompt: str) -> str:
		images = await self.client.generate_images(
			decorate_image_prompt(prompt, settings.image_style_prefix),
			number_of_images=1,
			aspect_ratio=settings.image_aspect_ratio,
			mime_type=settings.image_mime_type,
		)
		return f"data:{settings.image_mime_type};base64,{images[0]}"

	@with_failure_policy(SurfaceFailure(QuizGenerationError, QUIZ_FAILED, passthrough=(InvalidQuizDataError,)))
	async def generate_quiz(self, topic: str, notes: Sequence[NoteSection]) -> List[QuizQuestion]:
		prompt = build_quiz_prompt(topic, notes, self.quiz_length)
		data = await self.client.generate_json(prompt, QUIZ_RESPONSE_SCHEMA)
		quiz = _parse_quiz(data, self.quiz_length)
		logger.info("Generated %d quiz questions for %r", len(quiz), topic)
		return quiz

	async def illustrate_notes(self, notes: Sequence[NoteSection]) -> List[NoteSection]:
		"""Attach an image to every section; one batch, staggered starts, order preserved."""

		async def _illustrate(index: int, section: NoteSection) -> NoteSection:
			# staggered start per section
			await asyncio.sleep(index * self.image_stagger_seconds)
			return section.with_image(await self.generate_image(section.image_prompt))

		return list(await asyncio.gather(*(_illustrate(i, s) for i, s in enumerate(notes))))

	async def aclose(self) -> None:
		await self.client.aclose()
