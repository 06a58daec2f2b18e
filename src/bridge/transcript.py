from __future__ import annotations

from collections.abc import Iterable

from bridge.session_store import Speaker, TranscriptLine

AGENT_MESSAGE_NOT_FOUND = "Agent message not found"


_SPEAKER_LABELS: dict[str, str] = {"user": "User", "agent": "Agent"}


def speaker_label(speaker: Speaker) -> str:
    return _SPEAKER_LABELS[speaker]


def render_transcript(lines: Iterable[TranscriptLine]) -> str:
    """Render transcript lines as the plain-text block handed to extraction."""

    return "".join(f"{speaker_label(line.speaker)}: {line.text}\n" for line in lines)
