from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class _WireModel(BaseModel):
	# camelCase on the wire (model output and page), snake_case in Python
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class NoteSection(_WireModel):
	"""One heading + content + illustration unit of the generated notes."""
	heading: str = Field(..., min_length=1, description="Concise, descriptive title for the section.")
	content: str = Field(..., min_length=1, description="Two to four paragraphs of notes.")
	image_prompt: str = Field(..., min_length=1, description="Prompt for the section illustration.")
	image_url: Optional[str] = Field(default=None, description="Data URI or placeholder URL, set after illustration.")

	@field_validator("heading", "content", "image_prompt", mode="before")
	@classmethod
	def _strip(cls, value):
		return value.strip() if isinstance(value, str) else value

	def with_image(self, url: str) -> "NoteSection":
		return self.model_copy(update={"image_url": url})

	def narration_text(self) -> str:
		return f"{self.heading}. {self.content}"


class QuizQuestion(_WireModel):
	"""A multiple-choice question whose correct answer is one of its four options."""
	question: str = Field(..., min_length=1)
	options: List[str] = Field(..., min_length=4, max_length=4)
	correct_answer: str = Field(..., min_length=1)
	explanation: str = Field(...)

	@field_validator("question", "correct_answer", "explanation", mode="before")
	@classmethod
	def _strip(cls, value):
		return value.strip() if isinstance(value, str) else value

	@field_validator("options", mode="before")
	@classmethod
	def _strip_options(cls, value):
		if isinstance(value, list):
			return [o.strip() if isinstance(o, str) else o for o in value]
		return value

	@model_validator(mode="after")
	def _check_options(self) -> "QuizQuestion":
		if any(not o for o in self.options):
			raise ValueError("options must be non-empty strings")
		if len(set(self.options)) != len(self.options):
			raise ValueError("options must be distinct")
		if self.correct_answer not in self.options:
			raise ValueError("correctAnswer must be one of the options")
		return self


LearningNotes = List[NoteSection]
Quiz = List[QuizQuestion]
