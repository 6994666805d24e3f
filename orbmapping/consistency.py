"""Covisibility consistency of loop candidates across consecutive keyframes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable


@dataclass(frozen=True)
class ConsistentGroup:
    """A loop candidate's covisibility group and how many keyframes in a row it was seen."""

    keyframes: frozenset
    consistency: int


def update_consistent_groups(candidates: Iterable[Any],
                             previous_groups: Iterable[ConsistentGroup],
                             threshold: int = 3) -> tuple[list[ConsistentGroup], list[Any]]:
    """Match the candidates' groups against the previous groups.

    Each candidate's group is the candidate together with its connected
    keyframes (``connected_keyframes()``). A group is consistent with a
    previous group when they share a keyframe; its consistency is then one
    more than the previous one. Returns the new list of groups and the
    candidates whose consistency reached ``threshold``.
    """
    previous = list(previous_groups)
    used = [False] * len(previous)
    current: list[ConsistentGroup] = []
    enough: list[Any] = []

    for candidate in candidates:
        group = frozenset(candidate.connected_keyframes()) | {candidate}
        is_enough = False
        consistent_with_some = False
        for i, prev in enumerate(previous):
            if group.isdisjoint(prev.keyframes):
                continue
            consistent_with_some = True
            consistency = prev.consistency + 1
            if not used[i]:
                current.append(ConsistentGroup(group, consistency))
                used[i] = True
            if consistency >= threshold and not is_enough:
                enough.append(candidate)
                is_enough = True
        if not consistent_with_some:
            current.append(ConsistentGroup(group, 0))

    return current, enough