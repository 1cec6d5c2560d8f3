"""Least-recently-classified scheduling for the per-tick sampling budget."""

from __future__ import annotations


def select_for_sampling(
    candidate_ids: list[str],
    last_classified: dict[str, int],
    budget: int,
) -> list[str]:
    """Pick up to ``budget`` ids, never-classified first, then oldest.

    Ties keep the candidate order.
    """
    ranked = sorted(candidate_ids, key=lambda sid: last_classified.get(sid, -1))
    return ranked[:budget]
