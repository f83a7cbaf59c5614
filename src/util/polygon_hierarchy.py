from __future__ import annotations

"""
どこで: `util` の入れ子ポリゴン階層ヘルパ。
何を: 外環＋穴（穴の中の島を含む任意深さ）の階層を、穴を持たない単純リングの列へ平坦化する。
なぜ: 三角形分割は単純リングしか扱えないため、`engine.render.polygon.Polygon` の前段で正規化するため。

提供:
- `HierarchyNode`：`outer`（外環）と `holes`（子ノード列）を持つ再帰構造。
- `HierarchyNode.from_mapping({"positions": [...], "holes": [...]})`：入れ子辞書からの構築。
- `flatten_hierarchy(root, eliminate_holes=...) -> tuple[np.ndarray, ...]`

アルゴリズム（幅優先）:
- FIFO をルートで初期化し、取り出したノードごとに
  - 穴なし: `outer` をそのまま出力へ追加。
  - 穴あり: 直下の穴の `outer` を集めて `eliminate_holes(outer, holes)` を 1 回だけ呼び、結果を追加。
    同時に、各穴が持つ子（穴の中の島）をキューへ積み、後で独立した外環として処理する。
- 出力順はキューの取り出し順。再帰は使わない（深さ制限なし）。

    # 例: R の中に穴 H、H の中に島 I
    #   R ─ holes ─ H ─ holes ─ I
    # 出力: [eliminate_holes(R, [H]), I]
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import numpy as np

from common.errors import ConfigurationError
from common.types import FlattenedPolygonSet, PointsLike, as_boundary_loop

EliminateHoles = Callable[[np.ndarray, Sequence[np.ndarray]], np.ndarray]

MIN_RING_POINTS = 3

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class HierarchyNode:
    """外環 `outer` と、その内側の穴ノード列 `holes` を持つ階層ノード。

    穴ノードの `outer` は親の内環として扱われ、穴ノード自身の `holes` は
    穴の中に浮かぶ島（新たな外環）として平坦化時に再投入される。
    点数の検証は平坦化時に行う（構築時は形状の正規化のみ）。
    """

    outer: np.ndarray
    holes: tuple["HierarchyNode", ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "outer", as_boundary_loop(self.outer))
        holes = tuple(self.holes)
        for h in holes:
            if not isinstance(h, HierarchyNode):
                raise ConfigurationError(f"holes の要素は HierarchyNode である必要があります: {type(h)!r}")
        object.__setattr__(self, "holes", holes)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HierarchyNode":
        """`{"positions": [...], "holes": [{...}, ...]}` 形式の入れ子辞書から構築する。

        `holes` は省略可。葉ノードは `positions` のみを持つ。
        深い入れ子でも再帰しないよう、幅優先で列挙してから葉側より組み立てる。
        """
        order: list[tuple[Mapping[str, Any], int]] = []
        queue: deque[tuple[Mapping[str, Any], int]] = deque([(data, -1)])
        while queue:
            item, parent = queue.popleft()
            if not isinstance(item, Mapping):
                raise ConfigurationError(f"階層ノードは dict である必要があります: {type(item)!r}")
            idx = len(order)
            order.append((item, parent))
            for child in item.get("holes") or ():
                queue.append((child, idx))

        children: list[list[HierarchyNode]] = [[] for _ in order]
        root: HierarchyNode | None = None
        # 子は親より後ろに並ぶため、末尾から組み立てれば子は常に完成済み
        for idx in range(len(order) - 1, -1, -1):
            item, parent = order[idx]
            if "positions" not in item:
                raise ConfigurationError("階層ノードには positions が必要です")
            node = cls(outer=item["positions"], holes=tuple(reversed(children[idx])))
            if parent < 0:
                root = node
            else:
                children[parent].append(node)
        assert root is not None
        return root


def coerce_hierarchy(root: HierarchyNode | Mapping[str, Any]) -> HierarchyNode:
    """`HierarchyNode` または入れ子辞書を `HierarchyNode` に揃える。"""
    if isinstance(root, HierarchyNode):
        return root
    if isinstance(root, Mapping):
        return HierarchyNode.from_mapping(root)
    raise ConfigurationError(f"階層は HierarchyNode か dict である必要があります: {type(root)!r}")


def _check_ring(ring: np.ndarray) -> np.ndarray:
    if len(ring) < MIN_RING_POINTS:
        raise ConfigurationError("At least three positions are required.")
    return ring


def flatten_hierarchy(
    root: HierarchyNode | Mapping[str, Any],
    *,
    eliminate_holes: EliminateHoles | None = None,
) -> FlattenedPolygonSet:
    """入れ子階層を穴なしリングの列へ平坦化する。

    引数:
        root: ルートノード（`HierarchyNode` または入れ子辞書）。
        eliminate_holes: 外環と直下の穴から単一の単純リングを作る関数。
            省略時は `util.hole_elimination.eliminate_holes`。

    返り値:
        幅優先の取り出し順に並んだリングのタプル。

    例外:
        ConfigurationError: いずれかのリングが 3 点未満（取り出し時に検出）。
    """
    if eliminate_holes is None:
        from util.hole_elimination import eliminate_holes as _default_eliminate

        eliminate_holes = _default_eliminate

    polygons: list[np.ndarray] = []
    queue: deque[HierarchyNode] = deque([coerce_hierarchy(root)])

    while queue:
        node = queue.popleft()
        outer = _check_ring(node.outer)

        if not node.holes:
            # 穴を持たない単純ポリゴン
            polygons.append(outer)
            continue

        holes: list[np.ndarray] = []
        for hole in node.holes:
            holes.append(_check_ring(hole.outer))
            # 穴の中の島は独立した外環として後で処理
            queue.extend(hole.holes)
        polygons.append(eliminate_holes(outer, holes))

    logger.debug("flatten_hierarchy: %d polygon(s)", len(polygons))
    return tuple(polygons)


def ring_from_points(points: PointsLike) -> np.ndarray:
    """単独リング入力を正規化し、3 点未満なら `ConfigurationError` を送出する。"""
    return _check_ring(as_boundary_loop(points))


__all__ = [
    "HierarchyNode",
    "EliminateHoles",
    "MIN_RING_POINTS",
    "coerce_hierarchy",
    "flatten_hierarchy",
    "ring_from_points",
]
