"""
Support question bank — loaded once at startup, read-only afterwards.
"""

import json
from typing import Iterable, Tuple

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field


class QAEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    question: str = Field(min_length=1)
    answer: str


class QuestionBankFile(BaseModel):
    questions: list[QAEntry] = []


QuestionBank = Tuple[QAEntry, ...]


def build_bank(entries: Iterable[dict]) -> QuestionBank:
    """Validate raw ``{question, answer}`` dicts into an immutable bank, keeping order."""
    return tuple(QAEntry(**entry) for entry in entries)


def load_bank(path: str) -> QuestionBank:
    with open(path, encoding="utf-8") as f:
        document = QuestionBankFile(**json.load(f))

    bank = tuple(document.questions)
    if not bank:
        logger.warning(f"Question bank at {path} is empty — every message will get the fallback reply")
    else:
        logger.info(f"Loaded {len(bank)} questions from {path}")
    return bank
