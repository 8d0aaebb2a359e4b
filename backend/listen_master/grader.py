"""
Cloze Grader

Grades a fill-in-the-blank submission. A masked transcript is the original
sentence with some words replaced by the placeholder ``***``; the learner
supplies one answer per blank, in left-to-right order. Each blank is
checked against the original word at the same position.

Matching is case-insensitive exact equality. Nothing is trimmed and
punctuation is significant, so ``dont`` does not match ``don't``.
Tokenization is a plain split on the single space character; empty tokens
produced by repeated spaces keep their positions.

Everything here is pure: no I/O, no shared state.
"""

from __future__ import annotations
from typing import List, Sequence

from pydantic import BaseModel

PLACEHOLDER = "***"


class GradingError(ValueError):
    """Base class for rejected grading input."""


class MalformedInput(GradingError):
    """Masked and original token sequences do not line up."""


class InputMismatch(GradingError):
    """Answer count differs from the number of blanks (strict mode only)."""


class GradeSummary(BaseModel):
    total: int
    correct: int
    passed: bool
    score: float


def tokenize(text: str) -> List[str]:
    return text.split(" ")


def count_blanks(masked_tokens: Sequence[str]) -> int:
    return sum(1 for token in masked_tokens if token == PLACEHOLDER)


def _check_aligned(masked_tokens: Sequence[str], original_tokens: Sequence[str]) -> None:
    if len(masked_tokens) != len(original_tokens):
        raise MalformedInput(
            f"masked transcript has {len(masked_tokens)} tokens but original has {len(original_tokens)}"
        )


def grade(
    masked_tokens: Sequence[str],
    original_tokens: Sequence[str],
    answers: Sequence[str],
    *,
    strict: bool = False,
) -> List[bool]:
    """
    Grade each blank of a masked transcript.

    Args:
        masked_tokens: Transcript tokens, blanks equal to ``PLACEHOLDER``
        original_tokens: Ground-truth tokens, same length as ``masked_tokens``
        answers: One answer per blank in order of appearance
        strict: Reject an answer count that differs from the blank count
            instead of treating missing answers as empty strings

    Returns:
        List[bool]: One verdict per blank, in blank order

    Raises:
        MalformedInput: If the token sequences differ in length
        InputMismatch: If ``strict`` and the answer count is wrong
    """
    _check_aligned(masked_tokens, original_tokens)
    if strict:
        blanks = count_blanks(masked_tokens)
        if len(answers) != blanks:
            raise InputMismatch(f"expected {blanks} answers, got {len(answers)}")

    results: List[bool] = []
    blank = 0
    for index, token in enumerate(masked_tokens):
        if token != PLACEHOLDER:
            continue
        answer = answers[blank] if blank < len(answers) else ""
        results.append(original_tokens[index].lower() == answer.lower())
        blank += 1
    return results


def grade_text(masked_text: str, original_text: str, answers: Sequence[str], *, strict: bool = False) -> List[bool]:
    return grade(tokenize(masked_text), tokenize(original_text), answers, strict=strict)


def blank_answers(masked_tokens: Sequence[str], original_tokens: Sequence[str]) -> List[str]:
    """Return the original words hidden behind the blanks (the answer key)."""
    _check_aligned(masked_tokens, original_tokens)
    return [original_tokens[i] for i, token in enumerate(masked_tokens) if token == PLACEHOLDER]


def summarize(results: Sequence[bool]) -> GradeSummary:
    total = len(results)
    correct = sum(1 for ok in results if ok)
    # Zero blanks pass vacuously
    score = correct / total if total else 1.0
    return GradeSummary(total=total, correct=correct, passed=correct == total, score=score)
