"""Pure-Python cosine ranking. Used when the indexed match_messages path is unavailable."""

import math
from collections.abc import Iterable, Sequence


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """dot(a, b) / (|a| * |b|), clamped to [-1, 1]. Zero-norm or mismatched vectors score 0.0."""
    if len(a) != len(b) or not a:
        return 0.0
    dot = 0.0
    na = 0.0
    nb = 0.0
    for x, y in zip(a, b):
        dot += x * y
        na += x * x
        nb += y * y
    if na == 0.0 or nb == 0.0:
        return 0.0
    sim = dot / (math.sqrt(na) * math.sqrt(nb))
    return max(-1.0, min(1.0, sim))


def rank_by_cosine(
    query: Sequence[float],
    candidates: Iterable[tuple[int, Sequence[float]]],
    threshold: float,
    limit: int,
) -> list[tuple[int, float]]:
    """
    Score (id, vector) candidates against query.
    Returns [(id, similarity)] with similarity >= threshold, similarity desc then id asc, at most limit.
    """
    if limit <= 0:
        return []
    scored = []
    for cid, vec in candidates:
        sim = cosine_similarity(query, vec)
        if sim >= threshold:
            scored.append((cid, sim))
    scored.sort(key=lambda t: (-t[1], t[0]))
    return scored[:limit]
