"""
Question matching for the support assistant.

Scores an utterance against every bank question with the Sorensen-Dice
coefficient over character n-grams and answers with the best entry when it
clears the threshold.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Optional, Sequence

from simdesk.services.question_bank import QAEntry

FALLBACK_ANSWER = "Sorry, I don't understand. Could you please rephrase your question?"
FOLLOW_UP = "Can I help you with anything else?"

# Answers carrying either marker already close the exchange.
APOLOGY_MARKER = "sorry"
NO_PROBLEM_MARKER = "no problem"

DEFAULT_THRESHOLD = 0.5
DEFAULT_SHORT_INPUT_LENGTH = 10


@dataclass(frozen=True)
class MatchResult:
    answer: str
    index: Optional[int]  # None when nothing cleared the threshold
    score: float

    @property
    def matched(self) -> bool:
        return self.index is not None


def _ngrams(text: str, size: int) -> Counter:
    return Counter(text[i:i + size] for i in range(len(text) - size + 1))


def similarity(a: str, b: str, substring_length: int = 2) -> float:
    """Dice coefficient of the two strings' n-gram multisets, case-insensitive, in [0, 1]."""
    a, b = a.lower(), b.lower()
    if a == b:
        return 1.0
    if len(a) < substring_length or len(b) < substring_length:
        return 0.0

    overlap = sum((_ngrams(a, substring_length) & _ngrams(b, substring_length)).values())
    total = len(a) + len(b) - 2 * (substring_length - 1)
    return 2.0 * overlap / total


def best_match(
    utterance: str,
    bank: Sequence[QAEntry],
    threshold: float = DEFAULT_THRESHOLD,
    short_input_length: int = DEFAULT_SHORT_INPUT_LENGTH,
) -> MatchResult:
    substring_length = 1 if len(utterance) < short_input_length else 2

    best_index = None
    best_score = 0.0
    for i, entry in enumerate(bank):
        score = similarity(utterance, entry.question, substring_length)
        if best_index is None or score > best_score:
            best_index, best_score = i, score

    if best_index is None or not best_score > threshold:
        return MatchResult(answer=FALLBACK_ANSWER, index=None, score=best_score)
    return MatchResult(answer=bank[best_index].answer, index=best_index, score=best_score)


def match(
    utterance: str,
    bank: Sequence[QAEntry],
    threshold: float = DEFAULT_THRESHOLD,
    short_input_length: int = DEFAULT_SHORT_INPUT_LENGTH,
) -> str:
    """Return the answer of the closest bank question, or the fallback text."""
    return best_match(utterance, bank, threshold, short_input_length).answer


def needs_follow_up(answer: str) -> bool:
    lower = answer.lower()
    return APOLOGY_MARKER not in lower and NO_PROBLEM_MARKER not in lower


def compose_reply(answer: str) -> str:
    """Append the follow-up prompt unless the answer apologises or acknowledges thanks."""
    if needs_follow_up(answer):
        return f"{answer}\n{FOLLOW_UP}"
    return answer
