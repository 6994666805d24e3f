"""Quadtree distribution of keypoints so that features cover the image evenly."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable

from orbmapping.keypoint import KeyPoint

Point = tuple[int, int]


@dataclass(eq=False)
class ExtractorNode:
    """A rectangular image region and the keypoints that fall inside it."""

    ul: Point
    ur: Point
    bl: Point
    br: Point
    keys: list[KeyPoint] = field(default_factory=list)
    no_more: bool = False

    def divide(self) -> tuple["ExtractorNode", "ExtractorNode", "ExtractorNode", "ExtractorNode"]:
        """Split into four quadrants (upper-left, upper-right, lower-left, lower-right)."""
        half_x = math.ceil((self.ur[0] - self.ul[0]) / 2)
        half_y = math.ceil((self.br[1] - self.ul[1]) / 2)
        ux, uy = self.ul

        n1 = ExtractorNode(self.ul, (ux + half_x, uy), (ux, uy + half_y), (ux + half_x, uy + half_y))
        n2 = ExtractorNode(n1.ur, self.ur, n1.br, (self.ur[0], uy + half_y))
        n3 = ExtractorNode(n1.bl, n1.br, self.bl, (n1.br[0], self.bl[1]))
        n4 = ExtractorNode(n3.ur, n2.br, n3.br, self.br)

        split_x, split_y = n1.ur[0], n1.br[1]
        for kp in self.keys:
            if kp.x < split_x:
                (n1 if kp.y < split_y else n3).keys.append(kp)
            elif kp.y < split_y:
                n2.keys.append(kp)
            else:
                n4.keys.append(kp)

        children = (n1, n2, n3, n4)
        for child in children:
            child.no_more = len(child.keys) == 1
        return children


def _refine(nodes: list[ExtractorNode], expandable: list[ExtractorNode], n: int) -> None:
    """Divide the most populated nodes first until ``n`` nodes exist or nothing changes."""
    while True:
        prev_size = len(nodes)
        previous = sorted(expandable, key=lambda node: len(node.keys))
        expandable = []
        for node in reversed(previous):
            for child in node.divide():
                if child.keys:
                    nodes.insert(0, child)
                    if len(child.keys) > 1:
                        expandable.append(child)
            nodes.remove(node)
            if len(nodes) >= n:
                break
        if len(nodes) >= n or len(nodes) == prev_size:
            return


def distribute_oct_tree(keypoints: Iterable[KeyPoint], min_x: int, max_x: int,
                        min_y: int, max_y: int, n: int) -> list[KeyPoint]:
    """Keep the strongest keypoint of each cell of an adaptive quadtree.

    Keypoint coordinates are relative to ``(min_x, min_y)``. The tree is split
    until it has at least ``n`` non-empty cells or cannot be split further.
    """
    width = max_x - min_x
    height = max_y - min_y
    if width <= 0 or height <= 0:
        raise ValueError("the distribution region must have a positive width and height")

    n_ini = max(1, int(math.floor(width / height + 0.5)))
    h_x = width / n_ini

    initial = [
        ExtractorNode((int(h_x * i), 0), (int(h_x * (i + 1)), 0),
                      (int(h_x * i), height), (int(h_x * (i + 1)), height))
        for i in range(n_ini)
    ]
    for kp in keypoints:
        index = min(max(int(kp.x / h_x), 0), n_ini - 1)
        initial[index].keys.append(kp)

    nodes = []
    for node in initial:
        if node.keys:
            node.no_more = len(node.keys) == 1
            nodes.append(node)

    while True:
        prev_size = len(nodes)
        pushed: list[ExtractorNode] = []
        kept: list[ExtractorNode] = []
        expandable: list[ExtractorNode] = []
        for node in nodes:
            if node.no_more:
                kept.append(node)
                continue
            for child in node.divide():
                if child.keys:
                    pushed.append(child)
                    if len(child.keys) > 1:
                        expandable.append(child)
        nodes = pushed[::-1] + kept

        if len(nodes) >= n or len(nodes) == prev_size:
            break
        if len(nodes) + 3 * len(expandable) > n:
            _refine(nodes, expandable, n)
            break

    return [max(node.keys, key=lambda kp: kp.response) for node in nodes]