"""
Narration of generated notes.

The page owns the actual speech engine (``window.speechSynthesis``). The
server-side model of it is a ``NarrationEngine``: something that accepts
utterances and play/pause/resume/cancel commands, and reports per-utterance
start/end/error back through the utterance callbacks.

``BrowserSpeechEngine`` is the engine used in production. It buffers commands
in an outbox that is drained into every session snapshot, and the page posts
utterance events back to ``dispatch``. Tests substitute an in-memory fake.

``NarrationController`` is the playback state machine for one notes view:

    stopped --play--> playing --pause--> paused --play--> playing
    playing/paused --stop--> stopped
    playing --(last utterance ends)--> stopped
    any --(utterance error)--> stopped

Every transition that touches the engine cancels it first, so speech from a
stale queue is never heard.
"""

from __future__ import annotations

import enum
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from .schemas import NoteSection
from .settings import settings

logger = logging.getLogger(__name__)


PREFERRED_VOICE_NAMES: List[str] = [
    "Google US English",
    "Microsoft David - English (United States)",
    "Microsoft Zira - English (United States)",
    "Samantha",  # Apple
    "Alex",  # Apple
    "Google UK English Female",
    "Google UK English Male",
]


@dataclass(frozen=True)
class Voice:
    name: str
    lang: str = ""
    local_service: bool = True
    default: bool = False


def select_voice(voices: Sequence[Voice], preferred: Sequence[str] = PREFERRED_VOICE_NAMES) -> Optional[Voice]:
    """
    Pick the narration voice.

    Only English voices are considered when any are available. Fallback order:
    exact preferred name, first non-local (cloud) voice, engine default,
    first available.
    """
    candidates = [v for v in voices if v.lang.startswith("en-")] or list(voices)
    for chooser in (
        lambda v: v.name in preferred,
        lambda v: not v.local_service,
        lambda v: v.default,
    ):
        match = next((v for v in candidates if chooser(v)), None)
        if match is not None:
            return match
    return candidates[0] if candidates else None


@dataclass
class Utterance:
    text: str
    voice: Optional[str] = None
    rate: float = 1.0
    pitch: float = 1.0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    on_start: Optional[Callable[[], None]] = None
    on_end: Optional[Callable[[], None]] = None
    on_error: Optional[Callable[[str], None]] = None


class NarrationEngine(ABC):
    @abstractmethod
    def speak(self, utterance: Utterance) -> None:
        """Append an utterance to the engine queue."""

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def resume(self) -> None: ...

    @abstractmethod
    def cancel(self) -> None:
        """Drop every queued and active utterance."""


class BrowserSpeechEngine(NarrationEngine):
    """Relays engine commands to the page and utterance events back."""

    def __init__(self) -> None:
        self._utterances: Dict[str, Utterance] = {}
        self._outbox: List[Dict[str, Any]] = []

    def speak(self, utterance: Utterance) -> None:
        self._utterances[utterance.id] = utterance
        self._outbox.append({
            "op": "speak",
            "id": utterance.id,
            "text": utterance.text,
            "voice": utterance.voice,
            "rate": utterance.rate,
            "pitch": utterance.pitch,
        })

    def pause(self) -> None:
        self._outbox.append({"op": "pause"})

    def resume(self) -> None:
        self._outbox.append({"op": "resume"})

    def cancel(self) -> None:
        self._utterances.clear()
        # Commands queued before a cancel would be cancelled by the page anyway
        self._outbox = [{"op": "cancel"}]

    def drain(self) -> List[Dict[str, Any]]:
        commands, self._outbox = self._outbox, []
        return commands

    def dispatch(self, utterance_id: str, kind: str, error: Optional[str] = None) -> bool:
        """Route a page event to its utterance. Returns False for unknown or stale ids."""
        utterance = self._utterances.get(utterance_id)
        if utterance is None:
            logger.debug("Ignoring %s event for stale utterance %s", kind, utterance_id)
            return False
        if kind == "start":
            if utterance.on_start:
                utterance.on_start()
        elif kind == "end":
            self._utterances.pop(utterance_id, None)
            if utterance.on_end:
                utterance.on_end()
        elif kind == "error":
            self._utterances.pop(utterance_id, None)
            if utterance.on_error:
                utterance.on_error(error or "unknown error")
        else:
            raise ValueError(f"Unknown utterance event: {kind}")
        return True


class PlaybackState(str, enum.Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


class NarrationController:
    def __init__(self, engine: NarrationEngine, *, rate: Optional[float] = None, pitch: Optional[float] = None) -> None:
        self.engine = engine
        self.rate = rate if rate is not None else settings.narration_rate
        self.pitch = pitch if pitch is not None else settings.narration_pitch
        self.state = PlaybackState.STOPPED
        self.speaking_index: Optional[int] = None
        self.voice: Optional[Voice] = None
        self._sections: List[NoteSection] = []
        self._utterances: List[Utterance] = []

    @property
    def queue(self) -> List[Utterance]:
        return list(self._utterances)

    def load(self, sections: Sequence[NoteSection]) -> None:
        """Acquire the engine for a (new) note set, discarding any previous queue."""
        self._sections = list(sections)
        self._rebuild()

    def release(self) -> None:
        self.engine.cancel()
        self._sections = []
        self._utterances = []
        self._to_stopped()

    def set_voices(self, voices: Sequence[Voice]) -> Optional[Voice]:
        chosen = select_voice(voices)
        if chosen != self.voice:
            self.voice = chosen
            if self._sections:
                self._rebuild()
        return self.voice

    def play(self) -> None:
        if not self._utterances:
            return
        if self.state is PlaybackState.PAUSED:
            self.engine.resume()
            self.state = PlaybackState.PLAYING
        elif self.state is PlaybackState.STOPPED:
            self.engine.cancel()
            # fresh ids so events from an earlier run stay stale
            self._utterances = self._build_utterances()
            for utterance in self._utterances:
                self.engine.speak(utterance)
            self.state = PlaybackState.PLAYING

    def pause(self) -> None:
        if self.state is PlaybackState.PLAYING:
            self.engine.pause()
            self.state = PlaybackState.PAUSED

    def stop(self) -> None:
        self.engine.cancel()
        self._to_stopped()

    def _to_stopped(self) -> None:
        self.state = PlaybackState.STOPPED
        self.speaking_index = None

    def _rebuild(self) -> None:
        self.engine.cancel()
        self._to_stopped()
        self._utterances = self._build_utterances()

    def _build_utterances(self) -> List[Utterance]:
        return [self._utterance_for(i, s) for i, s in enumerate(self._sections)]

    def _utterance_for(self, index: int, section: NoteSection) -> Utterance:
        utterance = Utterance(
            text=section.narration_text(),
            voice=self.voice.name if self.voice else None,
            rate=self.rate,
            pitch=self.pitch,
        )
        utterance.on_start = lambda: self._on_start(index)
        utterance.on_end = lambda: self._on_end(index)
        utterance.on_error = self._on_error
        return utterance

    def _on_start(self, index: int) -> None:
        self.speaking_index = index

    def _on_end(self, index: int) -> None:
        if index == len(self._utterances) - 1:
            self._to_stopped()

    def _on_error(self, error: str) -> None:
        logger.error("Speech synthesis error: %s", error)
        self.engine.cancel()
        self._to_stopped()

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "speaking_index": self.speaking_index,
            "voice": self.voice.name if self.voice else None,
            "sections": len(self._utterances),
        }
