"""
どこで: `engine.core` の塗りポリゴンジオメトリ生成。
何を: 平坦化済みリング群（穴なし）を楕円体表面に沿った三角形メッシュへ変換する。
なぜ: `engine.render.polygon.Polygon` の再構築時に、GPU へ渡せる頂点/インデックスを一括生成するため。

処理の流れ（リングごと）:
1) 各点を測地法線に沿って楕円体表面へ射影（`Ellipsoid.scale_to_geodetic_surface`）。
2) 表面点の接平面（法線は重心の測地法線側）へ投影し、耳切り法で三角形分割（`util.earcut`）。
3) 中心角が `granularity` を超える辺を中点で二分し続ける（最長辺分割、中点は辺キーで共有）。
4) 細分化後の頂点を再び表面へ射影し、測地法線に沿って `height` だけ持ち上げる。
5) `VertexFormat` に応じて法線・テクスチャ座標（接平面座標を `st_rotation` 回転し [0, 1] 正規化）を付与。

データモデル:
- `PolygonMesh.positions (N,3) float64`：絶対座標。GPU 転送時は `center` からの相対値を float32 化する。
- `PolygonMesh.indices (3T,) uint32`：三角形リスト。
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from common.errors import ConfigurationError
from common.settings import get as _get_settings
from common.types import as_boundary_loop
from util.earcut import triangulate
from util.tangent_plane import fit_tangent_frame, project_to_plane

from .ellipsoid import DEFAULT_GRANULARITY, Ellipsoid
from .vertex_format import VertexFormat

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PolygonGeometryOptions:
    """ジオメトリ生成の入力一式。`positions` と `polygon_hierarchy` はどちらか一方のみ。"""

    positions: np.ndarray | None = None
    polygon_hierarchy: tuple[np.ndarray, ...] | None = None
    height: float = 0.0
    vertex_format: VertexFormat = VertexFormat.POSITION_AND_ST
    st_rotation: float | None = None
    ellipsoid: Ellipsoid = Ellipsoid.WGS84
    granularity: float = DEFAULT_GRANULARITY

    def __post_init__(self) -> None:
        if self.positions is not None and self.polygon_hierarchy is not None:
            raise ConfigurationError("positions と polygon_hierarchy は同時に指定できません")

    def loops(self) -> tuple[np.ndarray, ...]:
        if self.positions is not None:
            return (self.positions,)
        if self.polygon_hierarchy is not None:
            return tuple(self.polygon_hierarchy)
        return ()


@dataclass(frozen=True, eq=False)
class PolygonMesh:
    """三角形メッシュ（CPU 側）。"""

    positions: np.ndarray
    indices: np.ndarray
    vertex_format: VertexFormat
    normals: np.ndarray | None = None
    st: np.ndarray | None = None

    @property
    def vertex_count(self) -> int:
        return int(self.positions.shape[0])

    @property
    def index_count(self) -> int:
        return int(self.indices.shape[0])

    @property
    def is_empty(self) -> bool:
        return self.index_count == 0

    @property
    def center(self) -> np.ndarray:
        if self.vertex_count == 0:
            return np.zeros(3, dtype=np.float64)
        return np.mean(self.positions, axis=0)

    def interleaved(self) -> np.ndarray:
        """VBO 用の `(N, floats_per_vertex)` float32 配列（位置は `center` 相対）。"""
        cols = [self.positions - self.center]
        if self.vertex_format.normal:
            if self.normals is None:
                raise ValueError("vertex_format が法線を要求していますが normals がありません")
            cols.append(self.normals)
        if self.vertex_format.st:
            if self.st is None:
                raise ValueError("vertex_format がテクスチャ座標を要求していますが st がありません")
            cols.append(self.st)
        return np.ascontiguousarray(np.hstack(cols), dtype=np.float32)


def subdivide_triangles(
    positions: np.ndarray,
    triangles: np.ndarray,
    granularity: float,
    *,
    max_depth: int,
) -> tuple[np.ndarray, np.ndarray]:
    """中心角が `granularity` を超える辺を持つ三角形を最長辺の中点で二分する。

    中点は辺キー `(min, max)` で共有し、隣接三角形と同じ頂点を使う。
    分割は `max_depth` 段で打ち切る。向き（巻き方向）は保存される。
    """
    verts: list[np.ndarray] = [p for p in np.asarray(positions, dtype=np.float64)]
    midpoints: dict[tuple[int, int], int] = {}
    out: list[tuple[int, int, int]] = []

    stack: list[tuple[int, int, int, int]] = [
        (int(a), int(b), int(c), 0) for a, b, c in reversed(np.asarray(triangles).tolist())
    ]
    while stack:
        a, b, c, depth = stack.pop()
        angles = central_angle(
            np.stack([verts[a], verts[b], verts[c]]), np.stack([verts[b], verts[c], verts[a]])
        )
        worst = int(np.argmax(angles))
        if float(angles[worst]) <= granularity or depth >= max_depth:
            out.append((a, b, c))
            continue

        i, j, k = ((a, b, c), (b, c, a), (c, a, b))[worst]
        key = (min(i, j), max(i, j))
        m = midpoints.get(key)
        if m is None:
            m = len(verts)
            verts.append(0.5 * (verts[i] + verts[j]))
            midpoints[key] = m
        stack.append((m, j, k, depth + 1))
        stack.append((i, m, k, depth + 1))

    pos = np.asarray(verts, dtype=np.float64).reshape(-1, 3)
    tris = np.asarray(out, dtype=np.uint32).reshape(-1, 3)
    return pos, tris


def central_angle(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """楕円体中心から見た 2 点間の角度（ラジアン）。`(N, 3)` 同士で要素ごとに計算する。

    原点に一致する点との角度は 0 とする。
    """
    A = np.asarray(a, dtype=np.float64)
    B = np.asarray(b, dtype=np.float64)
    na = np.linalg.norm(A, axis=-1)
    nb = np.linalg.norm(B, axis=-1)
    denom = na * nb
    safe = np.where(denom == 0.0, 1.0, denom)
    cos_t = np.where(denom == 0.0, 1.0, np.sum(A * B, axis=-1) / safe)
    return np.arccos(np.clip(cos_t, -1.0, 1.0))


def _texture_coordinates(uv: np.ndarray, st_rotation: float | None) -> np.ndarray:
    if st_rotation:
        cos_r = math.cos(st_rotation)
        sin_r = math.sin(st_rotation)
        uv = np.stack(
            [cos_r * uv[:, 0] - sin_r * uv[:, 1], sin_r * uv[:, 0] + cos_r * uv[:, 1]], axis=1
        )
    mins = np.min(uv, axis=0)
    span = np.max(uv, axis=0) - mins
    span = np.where(span == 0.0, 1.0, span)
    return (uv - mins) / span


def _build_loop(
    loop: np.ndarray,
    options: PolygonGeometryOptions,
    max_depth: int,
) -> tuple[np.ndarray, np.ndarray, np.ndarray | None, np.ndarray]:
    ellipsoid = options.ellipsoid
    ring = as_boundary_loop(loop)
    if len(ring) < 3:
        raise ConfigurationError("At least three positions are required.")

    surface = ellipsoid.scale_to_geodetic_surface(ring)
    up = ellipsoid.geodetic_surface_normal(np.mean(surface, axis=0))
    frame = fit_tangent_frame(surface, up=up)
    # 橋渡しで重複した点は一度だけ投影し、2D 座標を完全に一致させる
    unique, inverse = np.unique(surface, axis=0, return_inverse=True)
    tris = triangulate(project_to_plane(unique, frame)[inverse.reshape(-1)])

    pos, tris = subdivide_triangles(surface, tris, options.granularity, max_depth=max_depth)
    pos = ellipsoid.scale_to_geodetic_surface(pos)
    normals = ellipsoid.geodetic_surface_normal(pos)

    st = None
    if options.vertex_format.st:
        st = _texture_coordinates(project_to_plane(pos, frame), options.st_rotation)

    if options.height:
        pos = pos + normals * float(options.height)
    return pos, normals, st, tris


def build_polygon_geometry(options: PolygonGeometryOptions) -> PolygonMesh:
    """平坦化済みリングから三角形メッシュを生成する。

    Parameters
    ----------
    options : PolygonGeometryOptions
        リング（`positions` または `polygon_hierarchy`）、高さ、楕円体、粒度、頂点フォーマット。

    Returns
    -------
    PolygonMesh
        全リングを連結したメッシュ。`vertex_format` に無い属性は `None`。

    Raises
    ------
    ConfigurationError
        リングが無い、3 点未満のリングがある、または `granularity <= 0`。
    """
    loops = options.loops()
    if not loops:
        raise ConfigurationError("positions か polygon_hierarchy のどちらかが必要です")
    if not (options.granularity > 0.0):
        raise ConfigurationError("granularity は正の値である必要があります")

    max_depth = int(_get_settings().MAX_SUBDIVISION_DEPTH)
    fmt = options.vertex_format

    positions: list[np.ndarray] = []
    normals: list[np.ndarray] = []
    sts: list[np.ndarray] = []
    indices: list[np.ndarray] = []
    base = 0
    for loop in loops:
        pos, nrm, st, tris = _build_loop(loop, options, max_depth)
        positions.append(pos)
        normals.append(nrm)
        if st is not None:
            sts.append(st)
        indices.append(tris.reshape(-1).astype(np.uint32) + np.uint32(base))
        base += pos.shape[0]

    mesh = PolygonMesh(
        positions=_concat(positions, 3),
        indices=np.concatenate(indices).astype(np.uint32, copy=False),
        vertex_format=fmt,
        normals=_concat(normals, 3) if fmt.normal else None,
        st=_concat(sts, 2) if fmt.st else None,
    )
    logger.debug(
        "build_polygon_geometry: loops=%d verts=%d tris=%d",
        len(loops),
        mesh.vertex_count,
        mesh.index_count // 3,
    )
    return mesh


def _concat(parts: Sequence[np.ndarray], width: int) -> np.ndarray:
    if not parts:
        return np.empty((0, width), dtype=np.float64)
    return np.concatenate(parts, axis=0)


__all__ = [
    "PolygonGeometryOptions",
    "PolygonMesh",
    "build_polygon_geometry",
    "subdivide_triangles",
    "central_angle",
]
