"""Transcript normalization.

The bot service delivers transcripts in one of three shapes:

    (a) a list of speaker-tagged, word-timed segments
        ``[{"speaker": "Alice", "words": [{"word": "hi", "start_time": 0.4}, ...]}, ...]``
    (b) a plain string
    (c) an object with a ``text`` field

The shape is resolved here, once, into a ``NormalizedTranscript``. No
enrichment stage re-implements shape detection. Normalization is pure:
identical input always yields identical output.
"""
import logging
import re
from typing import Any, Iterable, List, Optional

from models.transcript import NormalizedTranscript, TimeWindow, TranscriptSegment

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 30

# Plain-text transcripts carry no timing; each line is spaced this far apart.
UNTIMED_LINE_SPACING_SECONDS = 60

DEFAULT_SEGMENT_SPEAKER = "Speaker"
UNKNOWN_SPEAKER = "Unknown"

_SPEAKER_PREFIX = re.compile(r"^\s*([^:\n]{1,50}?)\s*:\s*(.*)$")


def normalize_transcript(raw: Any) -> NormalizedTranscript:
    """Resolve any supported transcript shape into the canonical form.

    Args:
        raw: Transcript as delivered by the webhook or stored on the record.

    Returns:
        NormalizedTranscript (empty text when nothing usable was found)
    """
    if isinstance(raw, list):
        segments = list(_segments_from_word_list(raw))
        labelled = any(isinstance(item, dict) and item.get("speaker") for item in raw)
        lines = [segment.line for segment in segments]
    elif isinstance(raw, str):
        segments, lines, labelled = _segments_from_text(raw)
    elif isinstance(raw, dict) and isinstance(raw.get("text"), str):
        segments, lines, labelled = _segments_from_text(raw["text"])
    else:
        if raw is not None:
            logger.warning(f"Unsupported transcript shape: type={type(raw).__name__}")
        segments, lines, labelled = [], [], False

    text = "\n".join(lines)
    return NormalizedTranscript(
        text=text,
        segments=segments,
        windows=build_windows(segments),
        speakers=_unique(segment.speaker for segment in segments),
        has_speaker_labels=labelled,
    )


def build_windows(
    segments: List[TranscriptSegment],
    window_seconds: int = WINDOW_SECONDS
) -> List[TimeWindow]:
    """Partition segments into fixed-size windows by start time.

    Windows with no segments are not represented.
    """
    buckets: dict[int, list[TranscriptSegment]] = {}
    for segment in segments:
        start = int(max(segment.start, 0.0) // window_seconds) * window_seconds
        buckets.setdefault(start, []).append(segment)

    return [
        TimeWindow(
            start=start,
            lines=[segment.line for segment in buckets[start]],
            speakers=_unique(segment.speaker for segment in buckets[start]),
        )
        for start in sorted(buckets)
    ]


def _segments_from_word_list(items: list) -> Iterable[TranscriptSegment]:
    for item in items:
        if not isinstance(item, dict):
            continue

        speaker = str(item.get("speaker") or DEFAULT_SEGMENT_SPEAKER).strip() or DEFAULT_SEGMENT_SPEAKER
        words = item.get("words")

        if isinstance(words, list) and words:
            text = " ".join(
                str(w.get("word", "")).strip() if isinstance(w, dict) else str(w).strip()
                for w in words
            ).strip()
            start = _first_word_start(words, default=item.get("offset"))
        elif isinstance(item.get("text"), str):
            text = item["text"].strip()
            start = _as_seconds(item.get("start_time", item.get("offset")))
        else:
            continue

        if not text:
            continue

        yield TranscriptSegment(speaker=speaker, text=text, start=start)


def _segments_from_text(text: str) -> tuple[List[TranscriptSegment], List[str], bool]:
    """Split untimed text into segments.

    A line without a ``Name:`` prefix continues the previous labelled
    speaker, or is ``Unknown`` when no label has appeared yet. The source
    lines are returned unchanged for the canonical text.
    """
    segments = []
    labelled = False
    speaker = UNKNOWN_SPEAKER
    lines = [line.strip() for line in text.splitlines() if line.strip()]

    for index, line in enumerate(lines):
        match = _SPEAKER_PREFIX.match(line)
        if match and match.group(2).strip():
            speaker, body = match.group(1).strip(), match.group(2).strip()
            labelled = True
        else:
            body = line
        segments.append(TranscriptSegment(
            speaker=speaker,
            text=body,
            start=float(index * UNTIMED_LINE_SPACING_SECONDS),
        ))

    return segments, lines, labelled


def _first_word_start(words: list, default: Any = None) -> float:
    first = words[0]
    if isinstance(first, dict):
        value = first.get("start_time", first.get("start"))
        if value is not None:
            return _as_seconds(value)
    return _as_seconds(default)


def _as_seconds(value: Optional[Any]) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _unique(values: Iterable[str]) -> List[str]:
    seen: dict[str, None] = {}
    for value in values:
        seen.setdefault(value, None)
    return list(seen)
