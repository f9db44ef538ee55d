from __future__ import annotations
from typing import Any, Dict, Iterable

from .schemas import NoteSection


NOTES_RESPONSE_SCHEMA: Dict[str, Any] = {
	"type": "ARRAY",
	"items": {
		"type": "OBJECT",
		"properties": {
			"heading": {
				"type": "STRING",
				"description": "A concise, descriptive title for this section of the notes.",
			},
			"content": {
				"type": "STRING",
				"description": "The detailed notes for this section, written in clear, well-structured paragraphs. Aim for 2-4 paragraphs.",
			},
			"imagePrompt": {
				"type": "STRING",
				"description": (
					"A short, descriptive prompt for an image generation model to create a relevant visual for this section. "
					"The prompt should focus on key concepts and be suitable for a clean, vector-style educational illustration."
				),
			},
		},
		"required": ["heading", "content", "imagePrompt"],
	},
}

QUIZ_RESPONSE_SCHEMA: Dict[str, Any] = {
	"type": "ARRAY",
	"items": {
		"type": "OBJECT",
		"properties": {
			"question": {
				"type": "STRING",
				"description": "The quiz question, testing a key concept from the notes.",
			},
			"options": {
				"type": "ARRAY",
				"items": {"type": "STRING"},
				"description": "An array of 4 distinct multiple-choice options.",
			},
			"correctAnswer": {
				"type": "STRING",
				"description": "The correct answer from the provided options array.",
			},
			"explanation": {
				"type": "STRING",
				"description": "A brief and clear explanation for why the answer is correct, reinforcing the learning concept.",
			},
		},
		"required": ["question", "options", "correctAnswer", "explanation"],
	},
}


def build_notes_prompt(topic: str) -> str:
	return (
		"You are an expert educator. "
		f"Create a detailed, comprehensive set of learning notes on the topic of \"{topic}\". "
		"Structure your response as a valid JSON array, strictly following the provided schema. "
		"Each object in the array represents a distinct section of the notes. "
		"Ensure the content is informative, well-organized, and suitable for someone new to the topic."
	)


def notes_transcript(notes: Iterable[NoteSection]) -> str:
	return "\n\n".join(f"## {note.heading}\n{note.content}" for note in notes)


def build_quiz_prompt(topic: str, notes: Iterable[NoteSection], count: int) -> str:
	return (
		f"You are a quiz master. Based on the following notes about \"{topic}\", "
		f"create a {count}-question multiple-choice quiz to test understanding. "
		"For each question, provide the question, 4 plausible options, the correct answer, "
		"and a brief explanation for the correct answer. "
		"Ensure the questions cover diverse key concepts from the notes. "
		"Structure your response as a valid JSON array, strictly following the provided schema.\n\n"
		"Here are the notes:\n---\n"
		f"{notes_transcript(notes)}\n"
		"---\n"
	)


def decorate_image_prompt(prompt: str, style_prefix: str) -> str:
	return f"{style_prefix}{prompt}"
