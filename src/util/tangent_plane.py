from __future__ import annotations

"""
どこで: `util` の接平面フレームヘルパ。
何を: 3D リング（楕円体表面上の点列など）に最も良く合う平面を PCA(SVD) で推定し、2D 座標へ投影する。
なぜ: 穴の橋渡し・耳切り三角形分割・テクスチャ座標生成を、すべて同じ 2D 空間で行うため。

提供:
- `TangentFrame`：原点と直交基底（`axis_u`, `axis_v`, `normal`、右手系）。
- `fit_tangent_frame(points, up=None) -> TangentFrame`
- `project_to_plane(points, frame) -> np.ndarray (K, 2)`
- `signed_area_2d(uv) -> float`（反時計回りで正）

実装メモ:
- 法線の向きは `up` と同じ側にそろえる（楕円体上では測地法線を渡す）。
  `up` 未指定時は絶対値最大成分が正になる向きに固定し、結果を決定的にする。
"""

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True, eq=False)
class TangentFrame:
    """平面の原点と右手系の直交基底。"""

    origin: np.ndarray
    axis_u: np.ndarray
    axis_v: np.ndarray
    normal: np.ndarray


def fit_tangent_frame(points: np.ndarray, up: np.ndarray | None = None) -> TangentFrame:
    """点群の最良近似平面を求める。

    Parameters
    ----------
    points : np.ndarray
        形状 `(K, 3)` の点列（K >= 1）。
    up : np.ndarray | None
        法線を向けたい方向。`None` なら決定的な既定の向きを使う。

    Returns
    -------
    TangentFrame
        `axis_u` は最大分散方向、`normal` は最小分散方向。
    """
    P = np.asarray(points, dtype=np.float64)
    origin = np.mean(P, axis=0)
    C = P - origin
    if P.shape[0] >= 3:
        _u, _s, Vt = np.linalg.svd(C, full_matrices=False)
        axis_u = Vt[0, :]
        normal = Vt[-1, :]
    else:
        axis_u = np.array([1.0, 0.0, 0.0])
        normal = np.array([0.0, 0.0, 1.0])

    n_norm = float(np.linalg.norm(normal))
    normal = normal / n_norm if n_norm > 0.0 else np.array([0.0, 0.0, 1.0])

    if up is not None:
        if float(np.dot(normal, up)) < 0.0:
            normal = -normal
    elif normal[int(np.argmax(np.abs(normal)))] < 0.0:
        normal = -normal

    # axis_u を法線に直交化してから v を外積で作る（右手系）
    axis_u = axis_u - float(np.dot(axis_u, normal)) * normal
    u_norm = float(np.linalg.norm(axis_u))
    if u_norm == 0.0:
        seed = np.array([1.0, 0.0, 0.0]) if abs(normal[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
        axis_u = seed - float(np.dot(seed, normal)) * normal
        u_norm = float(np.linalg.norm(axis_u))
    axis_u = axis_u / u_norm
    axis_v = np.cross(normal, axis_u)
    return TangentFrame(origin=origin, axis_u=axis_u, axis_v=axis_v, normal=normal)


def project_to_plane(points: np.ndarray, frame: TangentFrame) -> np.ndarray:
    """点列をフレームの (u, v) 座標へ投影する。"""
    C = np.asarray(points, dtype=np.float64) - frame.origin
    return np.stack([C @ frame.axis_u, C @ frame.axis_v], axis=1)


def signed_area_2d(uv: np.ndarray) -> float:
    """2D 多角形の符号付き面積（反時計回りで正）。"""
    if uv.shape[0] < 3:
        return 0.0
    x = uv[:, 0]
    y = uv[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


__all__ = ["TangentFrame", "fit_tangent_frame", "project_to_plane", "signed_area_2d"]
