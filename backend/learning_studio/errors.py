from __future__ import annotations


class StudioError(Exception):
	"""Base class for every error the studio reports to the page."""


class MissingCredentialError(StudioError, RuntimeError):
	pass


class GenerationError(StudioError):
	pass


class NotesGenerationError(GenerationError):
	pass


class QuizGenerationError(GenerationError):
	pass


class InvalidQuizDataError(QuizGenerationError):
	pass


class IllegalTransition(StudioError):
	"""Raised when an action is not allowed from the current view state."""
