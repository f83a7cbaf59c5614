from __future__ import annotations

"""
どこで: `util` の三角形分割。
何を: 穴を持たない単純リング（2D）を耳切り法で三角形分割し、頂点 index の三つ組を返す。
なぜ: `engine.core.polygon_geometry` が平坦化済みリングを塗り面へ変換するため。

提供関数:
- `triangulate(uv) -> np.ndarray (T, 3) uint32`
    - 入力順の index を返す。三角形は 2D 上で反時計回り。
    - 時計回りのリングは内部で反転して扱う。

実装メモ:
- 耳判定（頂点 b、前後 a, c）は次をすべて満たすこと。判定ループは Numba で最適化。
    - b が凸。
    - a/b/c と同一座標でない残り頂点が、閉三角形 abc（辺上を含む）に無い。
    - 新しい対角線 c→a が残りの辺と真に交差しない。
    - 橋渡し（`util.hole_elimination`）で生じた a/b/c と同一座標の重複頂点について、
      その頂点から出る辺が三角形の内部へ入らない。
- 耳が見つからない場合は共線頂点を落とし、次に緩い判定（厳密な内部のみ）で探し、
  それも無ければ警告して打ち切る。
"""

import logging

import numpy as np
from numba import njit  # type: ignore[attr-defined]

from common.errors import ConfigurationError

from .tangent_plane import signed_area_2d

logger = logging.getLogger(__name__)


@njit(cache=True)
def _cross(ax: float, ay: float, bx: float, by: float, cx: float, cy: float) -> float:
    return (bx - ax) * (cy - ay) - (by - ay) * (cx - ax)


@njit(cache=True)
def _strictly_inside(
    ax: float, ay: float, bx: float, by: float, cx: float, cy: float, px: float, py: float
) -> bool:
    """反時計回り三角形 abc の厳密な内部に p があるか。"""
    return (
        _cross(ax, ay, bx, by, px, py) > 0.0
        and _cross(bx, by, cx, cy, px, py) > 0.0
        and _cross(cx, cy, ax, ay, px, py) > 0.0
    )


@njit(cache=True)
def _inside_or_on(
    ax: float, ay: float, bx: float, by: float, cx: float, cy: float, px: float, py: float
) -> bool:
    """反時計回り三角形 abc の内部または辺上に p があるか。"""
    return (
        _cross(ax, ay, bx, by, px, py) >= 0.0
        and _cross(bx, by, cx, cy, px, py) >= 0.0
        and _cross(cx, cy, ax, ay, px, py) >= 0.0
    )


@njit(cache=True)
def _segments_cross(
    ax: float, ay: float, bx: float, by: float, px: float, py: float, qx: float, qy: float
) -> bool:
    """線分 ab と pq が端点以外で真に交差するか（接触・共線は False）。"""
    d1 = _cross(ax, ay, bx, by, px, py)
    d2 = _cross(ax, ay, bx, by, qx, qy)
    if not ((d1 > 0.0 and d2 < 0.0) or (d1 < 0.0 and d2 > 0.0)):
        return False
    d3 = _cross(px, py, qx, qy, ax, ay)
    d4 = _cross(px, py, qx, qy, bx, by)
    return (d3 > 0.0 and d4 < 0.0) or (d3 < 0.0 and d4 > 0.0)


@njit(cache=True)
def _enters_corner(
    ax: float,
    ay: float,
    bx: float,
    by: float,
    cx: float,
    cy: float,
    ox: float,
    oy: float,
    qx: float,
    qy: float,
) -> bool:
    """三角形 abc の角 o（a/b/c のいずれかと同一座標）から q へ向かう辺が内部へ入るか。

    角 o を通る 2 辺の左側（内部側）の両方に q があれば、辺は o から内部へ入る。
    """
    s_ab = _cross(ax, ay, bx, by, qx, qy)
    s_bc = _cross(bx, by, cx, cy, qx, qy)
    s_ca = _cross(cx, cy, ax, ay, qx, qy)
    if ox == ax and oy == ay:
        return s_ab > 0.0 and s_ca > 0.0
    if ox == bx and oy == by:
        return s_ab > 0.0 and s_bc > 0.0
    return s_bc > 0.0 and s_ca > 0.0


@njit(cache=True)
def is_ear_njit(uv: np.ndarray, ring: np.ndarray, n: int, k: int, eps: float, strict: bool) -> bool:
    """有効長 `n` の `ring` の位置 `k` が耳か。

    `strict=False` は「a/b/c 以外の頂点が三角形の厳密な内部に無い」だけを見る緩い判定。
    """
    a = ring[(k - 1 + n) % n]
    b = ring[k]
    c = ring[(k + 1) % n]
    ax, ay = uv[a, 0], uv[a, 1]
    bx, by = uv[b, 0], uv[b, 1]
    cx, cy = uv[c, 0], uv[c, 1]
    if _cross(ax, ay, bx, by, cx, cy) <= eps:
        return False

    for m in range(n):
        p = ring[m]
        if p == a or p == b or p == c:
            continue
        px, py = uv[p, 0], uv[p, 1]
        at_corner = (px == ax and py == ay) or (px == bx and py == by) or (px == cx and py == cy)
        if not strict:
            if not at_corner and _strictly_inside(ax, ay, bx, by, cx, cy, px, py):
                return False
            continue

        q_prev = ring[(m - 1 + n) % n]
        q_next = ring[(m + 1) % n]
        if at_corner:
            if _enters_corner(ax, ay, bx, by, cx, cy, px, py, uv[q_prev, 0], uv[q_prev, 1]):
                return False
            if _enters_corner(ax, ay, bx, by, cx, cy, px, py, uv[q_next, 0], uv[q_next, 1]):
                return False
            continue
        if _inside_or_on(ax, ay, bx, by, cx, cy, px, py):
            return False
        if _segments_cross(cx, cy, ax, ay, px, py, uv[q_next, 0], uv[q_next, 1]):
            return False
    return True


@njit(cache=True)
def find_ear_njit(uv: np.ndarray, ring: np.ndarray, n: int, eps: float, strict: bool) -> int:
    """有効長 `n` の `ring` から最初の耳の位置を返す（無ければ -1）。"""
    for k in range(n):
        if is_ear_njit(uv, ring, n, k, eps, strict):
            return k
    return -1


def _find_collinear(uv: np.ndarray, ring: np.ndarray, n: int, eps: float) -> int:
    for k in range(n):
        a = ring[(k - 1 + n) % n]
        b = ring[k]
        c = ring[(k + 1) % n]
        if abs(_cross(uv[a, 0], uv[a, 1], uv[b, 0], uv[b, 1], uv[c, 0], uv[c, 1])) <= eps:
            return k
    return -1


def triangulate(uv: np.ndarray) -> np.ndarray:
    """単純リングを耳切り法で三角形分割する。

    引数:
        uv: 形状 `(K, 2)` の 2D 頂点列（閉じ点の重複なし、K >= 3）。
            穴を縫い込んだリング（橋の両端が同一座標で重複する）も受け付ける。

    返り値:
        形状 `(T, 3)` の uint32 index 配列。通常 T = K - 2。

    例外:
        ConfigurationError: 頂点が 3 点未満。
    """
    pts = np.ascontiguousarray(uv, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 2:
        raise ConfigurationError(f"uv は形状 (K, 2) である必要があります: {pts.shape}")
    k_total = pts.shape[0]
    if k_total < 3:
        raise ConfigurationError("At least three positions are required.")

    ring = np.arange(k_total, dtype=np.int64)
    if signed_area_2d(pts) < 0.0:
        ring = ring[::-1].copy()

    span = np.max(pts, axis=0) - np.min(pts, axis=0)
    eps = 1e-12 * float(np.dot(span, span))

    triangles: list[tuple[int, int, int]] = []
    n = k_total
    while n > 3:
        k = find_ear_njit(pts, ring, n, eps, True)
        if k < 0:
            k = _find_collinear(pts, ring, n, eps)
            if k >= 0:
                ring = np.delete(ring[:n], k)
                n -= 1
                continue
            k = find_ear_njit(pts, ring, n, eps, False)
            if k < 0:
                logger.warning(
                    "triangulate: no ear found (%d of %d vertices left); ring may self-intersect",
                    n,
                    k_total,
                )
                break
            logger.debug("triangulate: relaxed ear test used (%d of %d vertices left)", n, k_total)
        a = int(ring[(k - 1 + n) % n])
        b = int(ring[k])
        c = int(ring[(k + 1) % n])
        triangles.append((a, b, c))
        ring = np.delete(ring[:n], k)
        n -= 1

    if n == 3:
        a, b, c = (int(i) for i in ring[:3])
        if abs(_cross(pts[a, 0], pts[a, 1], pts[b, 0], pts[b, 1], pts[c, 0], pts[c, 1])) > eps:
            triangles.append((a, b, c))

    if not triangles:
        return np.empty((0, 3), dtype=np.uint32)
    return np.asarray(triangles, dtype=np.uint32)


__all__ = ["triangulate", "find_ear_njit", "is_ear_njit"]
