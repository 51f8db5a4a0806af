"""Keyword extraction and FAQ short-circuit matching.

A user message is reduced to at most ``MAX_KEYWORDS`` significant tokens.
Each active FAQ of the agent is scored as::

    score = 2 * (stored keywords found in the message) + (question tokens found in the message)

and qualifies when ``score >= max(2, floor(0.5 * len(message keywords)))``.
The best score wins; equal scores keep the oldest FAQ.
"""

import re
import time
import unicodedata
from dataclasses import dataclass
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from arbiter.config import settings
from arbiter.logging_config import get_logger
from arbiter.models import FAQEntry

logger = get_logger("faq_matcher")

MAX_KEYWORDS = 10
MIN_KEYWORD_LENGTH = 3
KEYWORD_WEIGHT = 2
MIN_THRESHOLD = 2
THRESHOLD_RATIO = 0.5

_PUNCTUATION_RE = re.compile(r"[^\w\s]")

_RAW_STOP_WORDS = """
o a os as um uma uns umas de da do das dos em na no nas nos por para com sem sob sobre
entre até após antes durante e ou mas porém contudo que qual quais quando quanto como onde
porque se não sim já ainda também só apenas muito pouco mais menos bem mal aqui ali lá aí
esse essa este esta isso isto aquele aquela meu minha seu sua nosso nossa dele dela deles
delas eu tu ele ela nós vós eles elas você vocês me te lhe lhes ser estar ter haver fazer
ir vir poder dever querer é são foi eram será seria tem tinha terá teria
"""


class MatchLookupFailed(Exception):
    def __init__(self, agent_id):
        self.agent_id = agent_id
        super().__init__(f"Failed to load FAQ candidates for agent {agent_id}")


@dataclass
class FaqMatch:
    faq: FAQEntry
    score: int


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_text(text: str) -> list[str]:
    """Lowercase, drop accents and punctuation, split on whitespace."""
    if not text:
        return []
    normalized = strip_diacritics(text.lower())
    normalized = _PUNCTUATION_RE.sub(" ", normalized)
    return normalized.split()


# Stored normalized so accented entries ("não", "você") still filter.
STOP_WORDS = frozenset(strip_diacritics(word) for word in _RAW_STOP_WORDS.split())


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    keywords: list[str] = []
    seen: set[str] = set()
    for token in normalize_text(text):
        if len(token) < MIN_KEYWORD_LENGTH or token in STOP_WORDS or token in seen:
            continue
        keywords.append(token)
        seen.add(token)
        if len(keywords) >= limit:
            break
    return keywords


def normalize_keywords(keywords: Iterable[str]) -> list[str]:
    """Bring operator-supplied keywords into the same form as extracted ones."""
    normalized: list[str] = []
    for keyword in keywords:
        for token in normalize_text(keyword):
            if token not in normalized:
                normalized.append(token)
    return normalized


def match_threshold(keyword_count: int) -> int:
    return max(MIN_THRESHOLD, int(keyword_count * THRESHOLD_RATIO))


def score_candidate(user_keywords: list[str], faq_keywords: Iterable[str], question: str) -> int:
    user_words = set(user_keywords)
    keyword_matches = sum(1 for keyword in (faq_keywords or []) if keyword in user_words)
    question_words = set(extract_keywords(question))
    question_matches = len(user_words & question_words)
    return KEYWORD_WEIGHT * keyword_matches + question_matches


def find_best_match(
    candidates: list[FAQEntry],
    user_message: str,
    *,
    max_candidates: Optional[int] = None,
    budget_ms: Optional[int] = None,
) -> Optional[FaqMatch]:
    """Pure scoring over already-loaded candidates.

    Returns None when the message has no keywords, nothing qualifies, or the
    iteration/time budget runs out.
    """
    user_keywords = extract_keywords(user_message)
    if not user_keywords or not candidates:
        return None

    max_candidates = max_candidates if max_candidates is not None else settings.faq_max_candidates
    budget_ms = budget_ms if budget_ms is not None else settings.faq_match_budget_ms

    if len(candidates) > max_candidates:
        logger.warning(
            "FAQ candidate set over limit, skipping match",
            extra={"context": {"candidates": len(candidates), "limit": max_candidates}},
        )
        return None

    threshold = match_threshold(len(user_keywords))
    deadline = time.monotonic() + budget_ms / 1000.0
    best: Optional[FaqMatch] = None

    for faq in candidates:
        if time.monotonic() > deadline:
            logger.warning(
                "FAQ match budget exceeded",
                extra={"context": {"budget_ms": budget_ms, "candidates": len(candidates)}},
            )
            return None

        score = score_candidate(user_keywords, faq.keywords, faq.question)
        if score >= threshold and (best is None or score > best.score):
            best = FaqMatch(faq=faq, score=score)

    return best


def load_candidates(db: Session, agent_id: UUID) -> list[FAQEntry]:
    try:
        return (
            db.query(FAQEntry)
            .filter(FAQEntry.agent_id == agent_id, FAQEntry.is_active.is_(True))
            .order_by(FAQEntry.created_at, FAQEntry.id)
            .all()
        )
    except SQLAlchemyError as e:
        raise MatchLookupFailed(agent_id) from e


def match_faq(db: Session, agent_id: UUID, user_message: str) -> Optional[FaqMatch]:
    """Best canned answer for the message, or None (fails open on storage errors)."""
    if not extract_keywords(user_message):
        return None

    try:
        candidates = load_candidates(db, agent_id)
    except MatchLookupFailed as e:
        # The failed statement leaves the transaction unusable.
        db.rollback()
        logger.error(
            "FAQ lookup failed, falling back to generative reply",
            extra={"context": {"agent_id": str(agent_id), "error": str(e.__cause__ or e)}},
        )
        return None

    match = find_best_match(candidates, user_message)
    if match:
        logger.info(
            "FAQ matched",
            extra={"context": {"agent_id": str(agent_id), "faq_id": str(match.faq.id), "score": match.score}},
        )
    return match
