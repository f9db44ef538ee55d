from __future__ import annotations
from typing import List, Literal, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..narration import BrowserSpeechEngine, Voice
from .studio import get_session, snapshot

router = APIRouter(prefix="/sessions/{session_id}/narration", tags=["narration"])


class VoiceIn(BaseModel):
	name: str
	lang: str = ""
	local_service: bool = Field(default=True, alias="localService")
	default: bool = False

	model_config = {"populate_by_name": True}


class VoicesRequest(BaseModel):
	voices: List[VoiceIn]


class UtteranceEvent(BaseModel):
	utterance_id: str
	type: Literal["start", "end", "error"]
	error: Optional[str] = None


@router.post("/voices")
async def report_voices(session_id: str, req: VoicesRequest):
	session = get_session(session_id)
	session.narration.set_voices([
		Voice(name=v.name, lang=v.lang, local_service=v.local_service, default=v.default) for v in req.voices
	])
	return snapshot(session)


@router.post("/events")
async def utterance_event(session_id: str, event: UtteranceEvent):
	session = get_session(session_id)
	if not isinstance(session.engine, BrowserSpeechEngine):
		raise HTTPException(status_code=409, detail="Session narration is not browser driven")
	session.engine.dispatch(event.utterance_id, event.type, event.error)
	return snapshot(session)


@router.post("/{action}")
async def transport(session_id: str, action: str):
	session = get_session(session_id)
	controls = {
		"play": session.narration.play,
		"pause": session.narration.pause,
		"stop": session.narration.stop,
	}
	if action not in controls:
		raise HTTPException(status_code=404, detail=f"Unknown narration action: {action}")
	controls[action]()
	return snapshot(session)
