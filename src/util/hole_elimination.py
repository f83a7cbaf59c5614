from __future__ import annotations

"""
どこで: `util` の穴除去（橋渡し）。
何を: 外環 1 本と、その内側の互いに素な穴 N 本から、面積の等しい単一の単純リングを作る。
なぜ: 耳切り三角形分割（`util.earcut`）は穴を扱えないため、穴を外環へ縫い込んで 1 本にするため。

提供関数:
- `eliminate_holes(outer, holes) -> np.ndarray (K, 3)`

アルゴリズム（Eberly "Triangulation by Ear Clipping" の橋渡しを簡略化）:
1) 外環の接平面（`util.tangent_plane`）へ全リングを投影。外環は反時計回り、穴は時計回りへそろえる。
2) 穴を「最大 u 座標の降順」に処理する。
3) 各穴の最大 u 頂点 M から、現在のリング頂点のうち
   - 橋 (M, V) がどのリング辺・未処理の穴の辺とも真に交差せず、
   - 橋の中点が現在のリングの内側で、この穴と他の穴の外側にあり、
   - 橋が V と M の両端で内部側の角に入る（V が橋渡しで重複した頂点なら正しい複製を選ぶ）
   最も近い頂点 V を選ぶ。
4) リングを `... V, M, (穴を一周), M, V, ...` の順に繋ぎ直す（橋の両端は重複する）。

前提（検証しない）: 穴は自己交差せず、互いに素で、外環の内側にある。
"""

import logging
from typing import Sequence

import numpy as np
from numba import njit  # type: ignore[attr-defined]

from common.errors import ConfigurationError
from common.types import PointsLike, as_boundary_loop

from .tangent_plane import fit_tangent_frame, project_to_plane, signed_area_2d

logger = logging.getLogger(__name__)


@njit(cache=True)
def point_in_polygon_njit(polygon: np.ndarray, x: float, y: float) -> bool:
    """レイキャスティングで点の内外を判定（Numba最適化）。

    半開区間の条件で辺上近傍の反転を抑制する。閉ループを前提に `% n` で終端を接続する。
    """
    n = len(polygon)
    inside = False

    p1x, p1y = polygon[0, 0], polygon[0, 1]
    for i in range(1, n + 1):
        p2x, p2y = polygon[i % n, 0], polygon[i % n, 1]
        if y > min(p1y, p2y):
            if y <= max(p1y, p2y):
                if x <= max(p1x, p2x):
                    xinters = p1x
                    if p1y != p2y:
                        xinters = (y - p1y) * (p2x - p1x) / (p2y - p1y) + p1x
                    if p1x == p2x or x <= xinters:
                        inside = not inside
        p1x, p1y = p2x, p2y

    return inside


@njit(cache=True)
def _orient(ax: float, ay: float, bx: float, by: float, cx: float, cy: float) -> float:
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


@njit(cache=True)
def bridge_is_clear_njit(
    mx: float, my: float, vx: float, vy: float, seg_a: np.ndarray, seg_b: np.ndarray
) -> bool:
    """線分 (M, V) が辺集合 `seg_a[i]-seg_b[i]` のどれとも真に交差しないか。

    端点の共有は交差とみなさない（橋の端点は既存頂点そのものであるため）。
    ただし辺の始点が橋の内部に乗る場合（頂点を素通りする橋）は交差とみなす。
    接平面への投影で共線性がわずかに崩れるため、橋からの距離が長さの 1e-9 倍以内なら乗っているとみなす。
    """
    dx, dy = vx - mx, vy - my
    length2 = dx * dx + dy * dy
    on_tol = 1e-9 * length2
    for i in range(seg_a.shape[0]):
        ax, ay = seg_a[i, 0], seg_a[i, 1]
        bx, by = seg_b[i, 0], seg_b[i, 1]
        d1 = _orient(mx, my, vx, vy, ax, ay)
        d2 = _orient(mx, my, vx, vy, bx, by)
        if abs(d1) <= on_tol and not ((ax == mx and ay == my) or (ax == vx and ay == vy)):
            t = (ax - mx) * dx + (ay - my) * dy
            if 0.0 < t < length2:
                return False
        d3 = _orient(ax, ay, bx, by, mx, my)
        d4 = _orient(ax, ay, bx, by, vx, vy)
        if ((d1 > 0.0 and d2 < 0.0) or (d1 < 0.0 and d2 > 0.0)) and (
            (d3 > 0.0 and d4 < 0.0) or (d3 < 0.0 and d4 > 0.0)
        ):
            return False
    return True


@njit(cache=True)
def in_cone_njit(
    px: float, py: float, vx: float, vy: float, nx: float, ny: float, qx: float, qy: float
) -> bool:
    """反時計回りリングの頂点 v（前 p, 次 n）で、v→q がリング内部側の角に入るか。

    橋渡しで同一座標の頂点が複数ある場合、どの複製に繋ぐかをこの判定で決める。
    """
    if _orient(vx, vy, nx, ny, px, py) >= 0.0:
        return _orient(vx, vy, qx, qy, px, py) > 0.0 and _orient(qx, qy, vx, vy, nx, ny) > 0.0
    return not (_orient(vx, vy, qx, qy, nx, ny) >= 0.0 and _orient(qx, qy, vx, vy, px, py) >= 0.0)


def _ring_edges(uv: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    return uv, np.roll(uv, -1, axis=0)


def _select_bridge_vertex(
    ring2d: np.ndarray,
    hole2d: np.ndarray,
    mi: int,
    pending2d: Sequence[np.ndarray],
) -> int:
    seg_as = [_ring_edges(ring2d)[0], _ring_edges(hole2d)[0]]
    seg_bs = [_ring_edges(ring2d)[1], _ring_edges(hole2d)[1]]
    for other in pending2d:
        a, b = _ring_edges(other)
        seg_as.append(a)
        seg_bs.append(b)
    seg_a = np.ascontiguousarray(np.concatenate(seg_as, axis=0))
    seg_b = np.ascontiguousarray(np.concatenate(seg_bs, axis=0))

    m = hole2d[mi]
    h_prev = hole2d[(mi - 1) % len(hole2d)]
    h_next = hole2d[(mi + 1) % len(hole2d)]
    n_ring = len(ring2d)

    d2 = np.sum((ring2d - m) ** 2, axis=1)
    order = np.argsort(d2, kind="stable")
    mx, my = float(m[0]), float(m[1])
    for j in order:
        vx, vy = float(ring2d[j, 0]), float(ring2d[j, 1])
        # 同一座標の複製のうち、橋が内部側の角に入るものだけを採る
        r_prev = ring2d[(j - 1) % n_ring]
        r_next = ring2d[(j + 1) % n_ring]
        if not in_cone_njit(r_prev[0], r_prev[1], vx, vy, r_next[0], r_next[1], mx, my):
            continue
        if not in_cone_njit(h_prev[0], h_prev[1], mx, my, h_next[0], h_next[1], vx, vy):
            continue
        if not bridge_is_clear_njit(mx, my, vx, vy, seg_a, seg_b):
            continue
        cx, cy = 0.5 * (mx + vx), 0.5 * (my + vy)
        if not point_in_polygon_njit(ring2d, cx, cy):
            continue
        if point_in_polygon_njit(hole2d, cx, cy):
            continue
        if any(point_in_polygon_njit(other, cx, cy) for other in pending2d):
            continue
        return int(j)

    logger.warning("eliminate_holes: no visible bridge vertex; falling back to nearest vertex")
    return int(order[0])


def eliminate_holes(outer: PointsLike, holes: Sequence[PointsLike]) -> np.ndarray:
    """外環と穴から、穴を縫い込んだ単一リングを返す。

    引数:
        outer: 外環 `(K, 3)`（K >= 3）。
        holes: 穴リングの列。空なら外環のコピーを返す。

    返り値:
        形状 `(K', 3)` の float64 配列。巻き方向は外環の向き（接平面で反時計回り）にそろう。

    例外:
        ConfigurationError: いずれかのリングが 3 点未満。
    """
    outer3d = as_boundary_loop(outer)
    if len(outer3d) < 3:
        raise ConfigurationError("At least three positions are required.")
    if not holes:
        return outer3d.copy()

    frame = fit_tangent_frame(outer3d)
    outer2d = project_to_plane(outer3d, frame)
    if signed_area_2d(outer2d) < 0.0:
        outer3d = outer3d[::-1]
        outer2d = outer2d[::-1]

    prepared: list[tuple[np.ndarray, np.ndarray]] = []
    for hole in holes:
        h3d = as_boundary_loop(hole)
        if len(h3d) < 3:
            raise ConfigurationError("At least three positions are required.")
        h2d = project_to_plane(h3d, frame)
        if signed_area_2d(h2d) > 0.0:
            h3d = h3d[::-1]
            h2d = h2d[::-1]
        prepared.append((h3d, h2d))

    # 最大 u の大きい穴から順に処理
    prepared.sort(key=lambda item: float(np.max(item[1][:, 0])), reverse=True)

    ring3d = np.ascontiguousarray(outer3d)
    ring2d = np.ascontiguousarray(outer2d)
    for idx, (h3d, h2d) in enumerate(prepared):
        mi = int(np.argmax(h2d[:, 0]))
        pending2d = [p[1] for p in prepared[idx + 1 :]]
        vj = _select_bridge_vertex(ring2d, h2d, mi, pending2d)

        hole_order = np.concatenate([np.arange(mi, len(h3d)), np.arange(0, mi + 1)])
        ring3d = np.concatenate(
            [ring3d[: vj + 1], h3d[hole_order], ring3d[vj : vj + 1], ring3d[vj + 1 :]], axis=0
        )
        ring2d = np.ascontiguousarray(
            np.concatenate(
                [ring2d[: vj + 1], h2d[hole_order], ring2d[vj : vj + 1], ring2d[vj + 1 :]], axis=0
            )
        )

    return np.ascontiguousarray(ring3d)


__all__ = ["eliminate_holes", "point_in_polygon_njit", "bridge_is_clear_njit", "in_cone_njit"]
