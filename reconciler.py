"""
Token reconciliation for spell-check results.

Turns the flagged tokens returned by a spell-check service into a corrected
sentence plus a report of which corrections were applied and which tokens
were skipped.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

EMPTY_SUGGESTIONS = "empty_suggestions"
TOKEN_NOT_FOUND = "token_not_found"


class InvalidArgumentError(ValueError):
    """Raised when reconcile() is called with structurally invalid input."""


@dataclass(frozen=True)
class Suggestion:
    text: str
    score: Optional[float] = None


@dataclass(frozen=True)
class FlaggedToken:
    token: str
    suggestions: Tuple[Suggestion, ...] = ()
    offset: Optional[int] = None
    type: Optional[str] = None

    def __post_init__(self):
        # Accept any iterable from callers but store an immutable copy
        object.__setattr__(self, "suggestions", tuple(self.suggestions))


@dataclass(frozen=True)
class AppliedCorrection:
    original_token: str
    replacement: str
    occurrence_index: int
    occurrences: int = 1


@dataclass(frozen=True)
class SkippedToken:
    token: str
    reason: str


@dataclass(frozen=True)
class Segment:
    """A run of the working text; replaced runs are never searched again."""
    text: str
    replaced: bool = False


@dataclass(frozen=True)
class CorrectionResult:
    corrected_text: str
    applied_corrections: Tuple[AppliedCorrection, ...] = ()
    skipped: Tuple[SkippedToken, ...] = ()
    segments: Tuple[Segment, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.applied_corrections)


def _replace_in_segments(segments: List[Segment], token: str, replacement: str):
    """
    Replace every occurrence of token inside the original segments.

    Returns the new segment list, the working-text offset of the first
    occurrence (None when not found) and the number of occurrences replaced.
    """
    result = []
    first = None
    count = 0
    position = 0
    for segment in segments:
        if segment.replaced or token not in segment.text:
            result.append(segment)
            position += len(segment.text)
            continue
        pieces = segment.text.split(token)
        if first is None:
            first = position + len(pieces[0])
        count += len(pieces) - 1
        for i, piece in enumerate(pieces):
            if i:
                result.append(Segment(text=replacement, replaced=True))
            if piece:
                result.append(Segment(text=piece))
        position += len(segment.text)
    return result, first, count


def reconcile(original_text: str, flagged_tokens: Iterable[FlaggedToken],
              on_skip: Optional[Callable[[SkippedToken], None]] = None) -> CorrectionResult:
    """
    Apply the top suggestion of each flagged token to the text.

    Tokens are handled in input order and every literal occurrence of a token
    is replaced. Matching only looks at text that came from the original
    input: a replacement is never searched by later tokens, so it cannot be
    substituted twice. A token with no suggestions, or one that no longer
    appears outside earlier replacements, is skipped and reported through
    ``on_skip`` and the result's ``skipped`` list.

    Args:
        original_text: The text that was sent to the spell checker.
        flagged_tokens: Flagged tokens in the order the service returned them.
        on_skip: Optional callback invoked with each SkippedToken.

    Returns:
        CorrectionResult: The corrected text, the correction report and the
        original/replaced segments of the corrected text.
    """
    if not isinstance(original_text, str):
        raise InvalidArgumentError(f"original_text must be a string, got {type(original_text).__name__}")
    if flagged_tokens is None:
        raise InvalidArgumentError("flagged_tokens must be a sequence, got None")

    segments = [Segment(text=original_text)] if original_text else []
    applied = []
    skipped = []

    def skip(token, reason):
        entry = SkippedToken(token=token, reason=reason)
        skipped.append(entry)
        logger.debug(f"Skipped flagged token '{token}': {reason}")
        if on_skip is not None:
            on_skip(entry)

    for flagged in flagged_tokens:
        if not flagged.suggestions:
            skip(flagged.token, EMPTY_SUGGESTIONS)
            continue
        if not flagged.token:
            skip(flagged.token, TOKEN_NOT_FOUND)
            continue

        replacement = flagged.suggestions[0].text
        # str.split matches literally, so API tokens are never treated as patterns
        segments, position, occurrences = _replace_in_segments(segments, flagged.token, replacement)
        if position is None:
            skip(flagged.token, TOKEN_NOT_FOUND)
            continue

        applied.append(AppliedCorrection(
            original_token=flagged.token,
            replacement=replacement,
            occurrence_index=position,
            occurrences=occurrences,
        ))

    return CorrectionResult(
        corrected_text="".join(segment.text for segment in segments),
        applied_corrections=tuple(applied),
        skipped=tuple(skipped),
        segments=tuple(segments),
    )
