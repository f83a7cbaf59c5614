"""
どこで: `common` の型定義。
何を: 点/リング/平坦化結果の軽量エイリアスと、リング入力の正規化ヘルパ。
なぜ: 依存の少ない場所に配置し、util/engine の双方から循環なく参照するため。
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .errors import ConfigurationError

Vec3 = tuple[float, float, float]
RGBA = tuple[float, float, float, float]

# (K, 3) float64。閉じ点の重複は持たない。
BoundaryLoop = np.ndarray
FlattenedPolygonSet = tuple[np.ndarray, ...]

PointsLike = np.ndarray | Sequence[Sequence[float]]


def as_boundary_loop(points: PointsLike) -> np.ndarray:
    """点列を `(K, 3) float64` の連続配列へ正規化する（2D 入力は Z=0 で補完）。

    点数の検証は行わない（呼び出し側の責務）。形状が不正なら `ConfigurationError`。
    """
    try:
        arr = np.array(points, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"点列を数値配列へ変換できません: {e}") from e
    if arr.ndim == 1 and arr.size == 0:
        return np.empty((0, 3), dtype=np.float64)
    if arr.ndim != 2:
        raise ConfigurationError(f"点列は (K, 2) または (K, 3) の配列である必要があります: {arr.shape}")
    if arr.shape[1] == 2:
        arr = np.hstack([arr, np.zeros((arr.shape[0], 1), dtype=np.float64)])
    elif arr.shape[1] != 3:
        raise ConfigurationError(f"座標配列の形状が不正です: {arr.shape}")
    return np.ascontiguousarray(arr)


__all__ = [
    "Vec3",
    "RGBA",
    "BoundaryLoop",
    "FlattenedPolygonSet",
    "PointsLike",
    "as_boundary_loop",
]
