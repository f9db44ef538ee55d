from __future__ import annotations
import logging
import time
import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..errors import IllegalTransition
from ..narration import BrowserSpeechEngine
from ..studio import StudySession

router = APIRouter(prefix="/sessions", tags=["studio"])
logger = logging.getLogger(__name__)


class TopicRequest(BaseModel):
	topic: str


class AnswerRequest(BaseModel):
	option: str


# One session per open page; nothing outlives the process
_sessions: Dict[str, StudySession] = {}


def get_session(session_id: str) -> StudySession:
	session = _sessions.get(session_id)
	if not session:
		raise HTTPException(status_code=404, detail="Session not found")
	session.touch()
	return session


async def prune_idle_sessions(max_idle_seconds: float, now: Optional[float] = None) -> int:
	"""Close sessions no request has touched for max_idle_seconds. Returns how many were closed."""
	now = time.monotonic() if now is None else now
	expired = [sid for sid, s in _sessions.items() if now - s.last_seen > max_idle_seconds]
	for sid in expired:
		session = _sessions.pop(sid, None)
		if session:
			await session.aclose()
	if expired:
		logger.info("Closed %d idle sessions", len(expired))
	return len(expired)


def snapshot(session: StudySession) -> Dict[str, Any]:
	data = session.snapshot()
	engine = session.engine
	data["narration"]["commands"] = engine.drain() if isinstance(engine, BrowserSpeechEngine) else []
	return data


def _conflict(err: IllegalTransition) -> HTTPException:
	return HTTPException(status_code=409, detail=str(err))


@router.post("", status_code=201)
async def create_session(request: Request):
	session_id = uuid.uuid4().hex
	session = StudySession(session_id, request.app.state.generation, BrowserSpeechEngine())
	_sessions[session_id] = session
	return snapshot(session)


@router.get("/{session_id}")
async def get_state(session_id: str):
	return snapshot(get_session(session_id))


@router.delete("/{session_id}", status_code=204)
async def delete_session(session_id: str):
	session = _sessions.pop(session_id, None)
	if not session:
		raise HTTPException(status_code=404, detail="Session not found")
	await session.aclose()


@router.post("/{session_id}/topic", status_code=202)
async def submit_topic(session_id: str, req: TopicRequest):
	session = get_session(session_id)
	try:
		session.submit_topic(req.topic)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	except IllegalTransition as e:
		raise _conflict(e)
	return snapshot(session)


@router.post("/{session_id}/reset")
async def reset(session_id: str):
	session = get_session(session_id)
	session.reset()
	return snapshot(session)


@router.post("/{session_id}/quiz", status_code=202)
async def start_quiz(session_id: str):
	session = get_session(session_id)
	try:
		session.start_quiz()
	except IllegalTransition as e:
		raise _conflict(e)
	return snapshot(session)


@router.post("/{session_id}/quiz/answer")
async def answer(session_id: str, req: AnswerRequest):
	session = get_session(session_id)
	try:
		session.quiz_session().select(req.option)
	except IllegalTransition as e:
		raise _conflict(e)
	except ValueError as e:
		raise HTTPException(status_code=400, detail=str(e))
	return snapshot(session)


@router.post("/{session_id}/quiz/{action}")
async def quiz_action(session_id: str, action: str):
	session = get_session(session_id)
	try:
		if action == "back":
			session.back_to_notes()
			return snapshot(session)
		quiz = session.quiz_session()
		if action == "next":
			quiz.next()
		elif action == "prev":
			quiz.prev()
		elif action == "submit":
			quiz.submit()
		elif action == "retake":
			quiz.retake()
		else:
			raise HTTPException(status_code=404, detail=f"Unknown quiz action: {action}")
	except IllegalTransition as e:
		raise _conflict(e)
	return snapshot(session)
