from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable
from typing import Any

from rapidfuzz.distance import Levenshtein

from proof_explore.models import MatchResult

EXACT_SCORE = 100.0
SUBSTRING_SCORE = 90.0
COMPACT_SUBSTRING_SCORE = 85.0
WORD_PREFIX_SCORE = 75.0
WORD_INFIX_SCORE = 60.0
TYPO_BASE_SCORE = 50.0
TYPO_DISTANCE_PENALTY = 10.0
SUBSEQUENCE_CAP = 40.0

MIN_TYPO_TOKEN_LENGTH = 3
MAX_LENGTH_DIFFERENCE = 3
MAX_RUN_BONUS = 5
MULTI_WORD_MATCH_RATIO = 0.7

_SEPARATORS = re.compile(r"[\s\-_.]+")

TierEvaluator = Callable[[str, str], float]


def compact(value: str) -> str:
    """Drop whitespace, hyphens, underscores and periods."""
    return _SEPARATORS.sub("", value)


def split_words(value: str) -> list[str]:
    return [word for word in _SEPARATORS.split(value) if word]


def levenshtein_distance(left: str, right: str) -> float:
    """Edit distance, or ``math.inf`` when the lengths differ by more than 3."""
    if abs(len(left) - len(right)) > MAX_LENGTH_DIFFERENCE:
        return math.inf
    return Levenshtein.distance(left, right)


def exact_tier(text: str, token: str) -> float:
    if text == token:
        return EXACT_SCORE
    compact_token = compact(token)
    # Separator-only tokens have no compact form and must not match every text.
    if compact_token and compact(text) == compact_token:
        return EXACT_SCORE
    return 0.0


def substring_tier(text: str, token: str) -> float:
    if token in text:
        return SUBSTRING_SCORE
    compact_token = compact(token)
    # An empty compact token would be "contained" in any text.
    if compact_token and compact_token in compact(text):
        return COMPACT_SUBSTRING_SCORE
    return 0.0


def word_boundary_tier(text: str, token: str) -> float:
    words = split_words(text)
    if any(word.startswith(token) for word in words):
        return WORD_PREFIX_SCORE
    if any(token in word for word in words):
        return WORD_INFIX_SCORE
    return 0.0


def typo_tier(text: str, token: str) -> float:
    if len(token) < MIN_TYPO_TOKEN_LENGTH:
        return 0.0

    allowed = len(token) // 3
    for word in split_words(text):
        distance = levenshtein_distance(word, token)
        if distance <= allowed:
            return TYPO_BASE_SCORE - TYPO_DISTANCE_PENALTY * distance
    return 0.0


def subsequence_tier(text: str, token: str) -> float:
    compact_text = compact(text)
    compact_token = compact(token)
    if not compact_token:
        return 0.0

    matched = 0
    points = 0
    bonus = 1
    for char in compact_text:
        if matched == len(compact_token):
            break
        if char == compact_token[matched]:
            points += bonus
            bonus = min(bonus + 1, MAX_RUN_BONUS)
            matched += 1
        else:
            bonus = 1

    if matched != len(compact_token):
        return 0.0
    return float(min(points, SUBSEQUENCE_CAP))


# Ordered from the strongest to the weakest evidence of a match.
SINGLE_TOKEN_TIERS: tuple[TierEvaluator, ...] = (
    exact_tier,
    substring_tier,
    word_boundary_tier,
    typo_tier,
    subsequence_tier,
)


def score_token(text: str, token: str) -> float:
    """Score one lower-cased token against lower-cased text."""
    for tier in SINGLE_TOKEN_TIERS:
        score = tier(text, token)
        if score > 0:
            return score
    return 0.0


def fuzzy_score(text: str | None, query: str | None) -> float:
    """Score how well ``query`` matches ``text``; 0 means no match.

    Multi-word queries are scored token by token and only count when at least
    70% of the tokens hit. The result is then the sum of the hitting token
    scores divided by the total token count.
    """
    if not text or not query:
        return 0.0

    text_lower = text.lower()
    query_lower = query.lower().strip()
    if not query_lower:
        return 0.0
    if text_lower == query_lower:
        return EXACT_SCORE

    tokens = query_lower.split()

    if len(tokens) == 1:
        return score_token(text_lower, tokens[0])

    token_scores = [score_token(text_lower, token) for token in tokens]
    contributing = [score for score in token_scores if score > 0]
    if len(contributing) < math.ceil(len(tokens) * MULTI_WORD_MATCH_RATIO):
        return 0.0
    return sum(contributing) / len(tokens)


def candidate_score(candidate: Any, query: str) -> float:
    return max(
        fuzzy_score(getattr(candidate, "name", None), query),
        fuzzy_score(getattr(candidate, "username", None), query),
    )


def filter_and_rank(candidates: Iterable[Any], query: str | None) -> list[MatchResult]:
    """Rank candidates by their best name/username score, dropping non-matches.

    Equal scores keep their input order.
    """
    if query is None or not query.strip():
        return []

    scored_results: list[MatchResult] = []
    for candidate in candidates:
        score = candidate_score(candidate, query)
        if score > 0:
            scored_results.append(MatchResult(candidate=candidate, score=score))

    scored_results.sort(key=lambda result: -result.score)
    return scored_results


def rank_people(
    people: Iterable[Any],
    query: str | None,
    *,
    list_all_when_blank: bool = False,
) -> list[MatchResult]:
    """Rank ``people`` for a listing view.

    Friends and request lists show every entry, unscored, until a query is
    typed. The explore list stays empty instead.
    """
    if list_all_when_blank and (query is None or not query.strip()):
        return [MatchResult(candidate=person, score=0.0) for person in people]
    return filter_and_rank(people, query)
