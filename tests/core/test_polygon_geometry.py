from __future__ import annotations

"""
どこで: tests/core
何を: 既定のジオメトリ生成（表面追従・細分化・高さ・テクスチャ座標）と細分化ヘルパを検証する。
なぜ: `Polygon` が委譲する生成処理が、粒度と高さの設定どおりのメッシュを返すことを保証するため。
"""

import math

import numpy as np
import pytest

from common.errors import ConfigurationError
from engine.core.ellipsoid import Ellipsoid
from engine.core.polygon_geometry import (
    PolygonGeometryOptions,
    PolygonMesh,
    build_polygon_geometry,
    central_angle,
    subdivide_triangles,
)
from engine.core.vertex_format import VertexFormat
from util.hole_elimination import eliminate_holes

WGS84 = Ellipsoid.WGS84


def _ring(coords) -> np.ndarray:
    return WGS84.cartesian_from_degrees(coords)


SQUARE = [(10, 20), (11, 20), (11, 21), (10, 21)]


def _edge_angles(positions: np.ndarray, indices: np.ndarray) -> np.ndarray:
    tris = indices.reshape(-1, 3)
    out = []
    for i, j in ((0, 1), (1, 2), (2, 0)):
        out.append(central_angle(positions[tris[:, i]], positions[tris[:, j]]))
    return np.concatenate(out)


def test_mesh_lies_on_surface_with_st_only():
    mesh = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), granularity=math.radians(2.0)))
    assert mesh.index_count % 3 == 0
    assert mesh.index_count >= 6
    assert mesh.indices.dtype == np.uint32
    assert int(mesh.indices.max()) < mesh.vertex_count
    assert mesh.normals is None
    assert mesh.st is not None and mesh.st.shape == (mesh.vertex_count, 2)
    assert np.all((mesh.st >= -1e-12) & (mesh.st <= 1.0 + 1e-12))
    on = np.sum((mesh.positions / WGS84.radii) ** 2, axis=1)
    np.testing.assert_allclose(on, 1.0, atol=1e-11)


def test_granularity_bounds_edge_angles():
    g = math.radians(0.25)
    coarse = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), granularity=math.radians(5.0)))
    fine = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), granularity=g))
    assert fine.index_count > coarse.index_count
    # 細分化後に表面へ射影し直すため、わずかな誤差を許容
    assert float(_edge_angles(fine.positions, fine.indices).max()) <= g * 1.001


def test_triangles_face_outward():
    mesh = build_polygon_geometry(
        PolygonGeometryOptions(positions=_ring(SQUARE), granularity=math.radians(0.5))
    )
    tris = mesh.indices.reshape(-1, 3)
    a, b, c = (mesh.positions[tris[:, k]] for k in range(3))
    n = np.cross(b - a, c - a)
    up = WGS84.geodetic_surface_normal((a + b + c) / 3.0)
    assert np.all(np.sum(n * up, axis=1) > 0.0)


def test_height_offsets_along_normal():
    base = PolygonGeometryOptions(positions=_ring(SQUARE), granularity=math.radians(0.5))
    ground = build_polygon_geometry(base)
    lifted = build_polygon_geometry(
        PolygonGeometryOptions(positions=base.positions, granularity=base.granularity, height=1000.0)
    )
    assert lifted.vertex_count == ground.vertex_count
    np.testing.assert_allclose(np.linalg.norm(lifted.positions - ground.positions, axis=1), 1000.0, rtol=1e-6)


def test_clockwise_input_also_faces_outward():
    mesh = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE[::-1])))
    tris = mesh.indices.reshape(-1, 3)
    a, b, c = (mesh.positions[tris[:, k]] for k in range(3))
    n = np.cross(b - a, c - a)
    assert np.all(np.sum(n * WGS84.geodetic_surface_normal(a), axis=1) > 0.0)


def test_st_rotation_changes_st_only():
    plain = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE)))
    rotated = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), st_rotation=math.radians(30.0)))
    np.testing.assert_array_equal(plain.positions, rotated.positions)
    np.testing.assert_array_equal(plain.indices, rotated.indices)
    assert not np.allclose(plain.st, rotated.st)


def test_all_attributes_and_interleaving():
    mesh = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), vertex_format=VertexFormat.ALL))
    assert mesh.normals is not None and mesh.normals.shape == (mesh.vertex_count, 3)
    inter = mesh.interleaved()
    assert inter.dtype == np.float32
    assert inter.shape == (mesh.vertex_count, 8)
    np.testing.assert_allclose(inter[:, :3].mean(axis=0), 0.0, atol=1e-2)

    pos_only = build_polygon_geometry(
        PolygonGeometryOptions(positions=_ring(SQUARE), vertex_format=VertexFormat.POSITION_ONLY)
    )
    assert pos_only.st is None
    assert pos_only.interleaved().shape == (pos_only.vertex_count, 3)
    assert VertexFormat.ALL.layout() == ("3f 3f 2f", ("in_position", "in_normal", "in_st"))


def test_hierarchy_rings_are_concatenated():
    outer = _ring([(0, 0), (4, 0), (4, 4), (0, 4)])
    hole = _ring([(1.5, 1.5), (2.5, 1.5), (2.5, 2.5), (1.5, 2.5)])
    island = _ring([(1.8, 1.8), (2.2, 1.8), (2.2, 2.2), (1.8, 2.2)])
    rings = (eliminate_holes(outer, [hole]), island)

    both = build_polygon_geometry(PolygonGeometryOptions(polygon_hierarchy=rings, granularity=math.radians(5.0)))
    first = build_polygon_geometry(PolygonGeometryOptions(polygon_hierarchy=rings[:1], granularity=math.radians(5.0)))
    second = build_polygon_geometry(PolygonGeometryOptions(polygon_hierarchy=rings[1:], granularity=math.radians(5.0)))

    assert both.vertex_count == first.vertex_count + second.vertex_count
    assert both.index_count == first.index_count + second.index_count
    assert int(both.indices[first.index_count :].min()) >= first.vertex_count


def test_hole_area_is_excluded():
    outer = _ring([(0, 0), (4, 0), (4, 4), (0, 4)])
    hole = _ring([(1.5, 1.5), (2.5, 1.5), (2.5, 2.5), (1.5, 2.5)])

    def area(mesh) -> float:
        tris = mesh.indices.reshape(-1, 3)
        a, b, c = (mesh.positions[tris[:, k]] for k in range(3))
        return float(np.sum(0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)))

    g = math.radians(0.5)
    full = build_polygon_geometry(PolygonGeometryOptions(positions=outer, granularity=g))
    hole_only = build_polygon_geometry(PolygonGeometryOptions(positions=hole, granularity=g))
    punched = build_polygon_geometry(
        PolygonGeometryOptions(polygon_hierarchy=(eliminate_holes(outer, [hole]),), granularity=g)
    )
    assert area(punched) == pytest.approx(area(full) - area(hole_only), rel=1e-3)


def test_invalid_options_raise():
    with pytest.raises(ConfigurationError):
        build_polygon_geometry(PolygonGeometryOptions())
    with pytest.raises(ConfigurationError):
        build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), granularity=0.0))
    with pytest.raises(ConfigurationError):
        PolygonGeometryOptions(positions=_ring(SQUARE), polygon_hierarchy=(_ring(SQUARE),))
    with pytest.raises(ConfigurationError):
        build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE)[:2]))


def test_subdivide_splits_long_edges_and_shares_midpoints():
    pts = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    pos, tris = subdivide_triangles(pts, np.array([[0, 1, 2]]), math.radians(50.0), max_depth=12)
    assert len(tris) > 1
    # 隣接三角形の中点は共有され、重複頂点は生じない
    assert len(np.unique(pos, axis=0)) == len(pos)
    unit = pos / np.linalg.norm(pos, axis=1, keepdims=True)
    a, b, c = (unit[tris[:, k]] for k in range(3))
    angles = np.arccos(np.clip(np.concatenate([np.sum(a * b, 1), np.sum(b * c, 1), np.sum(c * a, 1)]), -1, 1))
    assert float(angles.max()) <= math.radians(50.0) + 1e-12
    # 巻き方向は保存される
    assert np.all(np.einsum("ij,ij->i", np.cross(b - a, c - a), a + b + c) > 0.0)


def test_subdivide_respects_max_depth():
    pts = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]])
    pos, tris = subdivide_triangles(pts, np.array([[0, 1, 2]]), 1e-6, max_depth=0)
    assert len(tris) == 1
    assert len(pos) == 3


def test_subdivision_depth_setting(settings_env):
    from common import settings as settings_mod

    settings_env.setenv("PXP_MAX_SUBDIVISION_DEPTH", "0")
    settings_mod.reload_from_env()
    mesh = build_polygon_geometry(PolygonGeometryOptions(positions=_ring(SQUARE), granularity=1e-6))
    assert mesh.index_count == 6


def test_several_holes_are_excluded():
    outer = _ring([(0, 0), (6, 0), (6, 6), (0, 6)])
    holes = [
        _ring([(1, 1), (2, 1), (2, 2), (1, 2)]),
        _ring([(3, 1), (4, 1), (4, 2), (3, 2)]),
        _ring([(1, 3.5), (2, 3.5), (2, 4.5), (1, 4.5)]),
        _ring([(3.5, 3.5), (5, 3.5), (5, 5), (3.5, 5)]),
    ]
    g = math.radians(0.5)

    def area(mesh) -> float:
        tris = mesh.indices.reshape(-1, 3)
        a, b, c = (mesh.positions[tris[:, k]] for k in range(3))
        return float(np.sum(0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)))

    full = area(build_polygon_geometry(PolygonGeometryOptions(positions=outer, granularity=g)))
    removed = sum(area(build_polygon_geometry(PolygonGeometryOptions(positions=h, granularity=g))) for h in holes)
    punched = build_polygon_geometry(
        PolygonGeometryOptions(polygon_hierarchy=(eliminate_holes(outer, holes),), granularity=g)
    )
    assert area(punched) == pytest.approx(full - removed, rel=1e-3)


def test_central_angle():
    a = Ellipsoid.UNIT_SPHERE.cartesian_from_degrees([(0, 0), (0, 0)])
    b = Ellipsoid.UNIT_SPHERE.cartesian_from_degrees([(90, 0), (0, 45)])
    np.testing.assert_allclose(central_angle(a, b), [math.pi / 2, math.pi / 4])
    assert float(central_angle(np.zeros(3), np.array([1.0, 0.0, 0.0]))) == 0.0


def test_interleaved_rejects_missing_attributes():
    pos = np.zeros((3, 3))
    inds = np.array([0, 1, 2], dtype=np.uint32)
    with pytest.raises(ValueError):
        PolygonMesh(positions=pos, indices=inds, vertex_format=VertexFormat.POSITION_AND_ST).interleaved()
    with pytest.raises(ValueError):
        PolygonMesh(positions=pos, indices=inds, vertex_format=VertexFormat.ALL, st=np.zeros((3, 2))).interleaved()
