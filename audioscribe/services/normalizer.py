# audioscribe/services/normalizer.py
"""
Turns provider tokens into display segments.

Providers return either per-word tokens (Whisper) or per-utterance tokens
(AssemblyAI). Both are converted into ``Token`` at the adapter boundary and
then merged here, so storage and export never care which provider ran.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_MAX_SEGMENT_CHARS = 200


@dataclass(frozen=True)
class WordToken:
    """A single word with timing, as returned by word-level providers."""
    text: str
    start: float
    end: float


@dataclass(frozen=True)
class UtteranceToken:
    """A diarized utterance, as returned by utterance-level providers."""
    text: str
    start: float
    end: float
    speaker_id: Optional[str] = None
    confidence: Optional[float] = None


@dataclass(frozen=True)
class Token:
    speaker: Optional[str]
    text: str
    start: float
    end: float
    confidence: Optional[float] = None


@dataclass(frozen=True)
class Segment:
    speaker: Optional[str]
    text: str
    start: float
    end: float
    confidence: Optional[float] = None


def placeholder_speaker(index: int) -> str:
    """Alternating stand-in label for tokens without speaker identity."""
    return f"Speaker {(index % 2) + 1}"


def assign_placeholder_speakers(tokens: Sequence[Token]) -> List[Token]:
    """Give every token lacking a speaker the placeholder for its position."""
    return [
        tok if tok.speaker else Token(placeholder_speaker(i), tok.text, tok.start, tok.end, tok.confidence)
        for i, tok in enumerate(tokens)
    ]


def tokens_from_words(words: Iterable[WordToken]) -> List[Token]:
    """Word tokens carry no speaker, so each gets a placeholder by index parity."""
    return assign_placeholder_speakers([Token(None, w.text, w.start, w.end) for w in words])


def tokens_from_utterances(utterances: Iterable[UtteranceToken]) -> List[Token]:
    tokens = [
        Token(
            f"Speaker {u.speaker_id}" if u.speaker_id else None,
            u.text,
            u.start,
            u.end,
            u.confidence,
        )
        for u in utterances
    ]
    return assign_placeholder_speakers(tokens)


class _Accumulator:
    def __init__(self, speaker: Optional[str], start: float, end: float):
        self.speaker = speaker
        self.start = start
        self.end = end
        self.text = ""
        self.confidences: List[float] = []

    def append(self, token: Token) -> None:
        self.text += token.text + " "
        self.end = token.end
        if token.confidence is not None:
            self.confidences.append(token.confidence)

    def flush(self) -> Optional[Segment]:
        text = self.text.strip()
        if not text:
            return None
        confidence = sum(self.confidences) / len(self.confidences) if self.confidences else None
        return Segment(self.speaker, text, self.start, self.end, confidence)


def normalize_segments(tokens: Sequence[Token], max_chars: int = DEFAULT_MAX_SEGMENT_CHARS) -> List[Segment]:
    """
    Merge consecutive tokens from the same speaker into readable segments.

    A new segment starts when the speaker changes or when the text gathered so
    far has reached ``max_chars`` before the next token is added, so a segment
    may run past the limit by one token. Segment bounds are the start of its
    first token and the end of its last.
    """
    if not tokens:
        return []

    first = tokens[0]
    current = _Accumulator(first.speaker or placeholder_speaker(0), first.start, first.end)
    segments: List[Segment] = []

    for token in tokens:
        if token.speaker == current.speaker and len(current.text) < max_chars:
            current.append(token)
            continue

        segment = current.flush()
        if segment:
            segments.append(segment)
        current = _Accumulator(token.speaker, token.start, token.end)
        current.append(token)

    # The last group is still open once the tokens run out
    segment = current.flush()
    if segment:
        segments.append(segment)

    logger.debug(f"Normalized {len(tokens)} tokens into {len(segments)} segments")
    return segments
