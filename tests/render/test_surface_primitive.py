from __future__ import annotations

import numpy as np
import pytest

from common.errors import UseAfterDestroy
from engine.core.ellipsoid import Ellipsoid
from engine.core.polygon_geometry import PolygonMesh
from engine.core.vertex_format import VertexFormat
from engine.render.appearance import (
    COLOR_TYPE,
    STRIPE_TYPE,
    Material,
    SurfaceAppearance,
    default_polygon_material,
)
from engine.render.context import RenderContext
from engine.render.polygon import Polygon
from engine.render.primitive import SurfacePrimitive, build_renderable
from tests._utils.fakes import DummyCtx, floats_from


def _mesh(offset: float = 100.0) -> PolygonMesh:
    pos = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]]) + offset
    st = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
    inds = np.array([0, 1, 2, 0, 2, 3], dtype=np.uint32)
    return PolygonMesh(positions=pos, indices=inds, vertex_format=VertexFormat.POSITION_AND_ST, st=st)


def _primitive(material: Material | None = None) -> SurfacePrimitive:
    appearance = SurfaceAppearance(material=material or Material.from_type(COLOR_TYPE))
    return build_renderable(_mesh(), appearance)


def test_first_draw_uploads_once_and_renders_each_time():
    ctx = DummyCtx()
    rc = RenderContext(ctx)
    prim = _primitive()

    prim.draw(rc)
    prim.draw(rc)

    assert len(ctx.programs) == 1
    assert len(ctx.buffers) == 2  # VBO + IBO
    assert len(ctx.vaos) == 1
    vao = ctx.vaos[0]
    assert vao.index_element_size == 4
    assert vao.content[0][1:] == ("3f 2f", "in_position", "in_st")
    assert [count for _mode, count in vao.render_calls] == [6, 6]


def test_vertices_are_uploaded_relative_to_center():
    ctx = DummyCtx()
    prim = _primitive()
    prim.draw(RenderContext(ctx))

    vbo = floats_from(ctx.buffers[0].data).reshape(-1, 5)
    np.testing.assert_allclose(vbo[:, :3].mean(axis=0), 0.0, atol=1e-6)
    np.testing.assert_allclose(vbo[0, :3], [-0.5, -0.5, 0.0], atol=1e-6)
    ibo = np.frombuffer(ctx.buffers[1].data, dtype=np.uint32)
    np.testing.assert_array_equal(ibo, [0, 1, 2, 0, 2, 3])


def test_mvp_includes_center_translation():
    ctx = DummyCtx()
    prim = _primitive()
    prim.draw(RenderContext(ctx))

    program = ctx.programs[0]
    written = floats_from(program.uniforms["u_mvp"].written[-1]).reshape(4, 4)
    # 列優先で書かれるため転置して戻す
    np.testing.assert_allclose(written.T[:3, 3], [100.5, 100.5, 100.0], rtol=1e-6)


def test_material_uniforms_follow_set_material():
    ctx = DummyCtx()
    rc = RenderContext(ctx)
    prim = _primitive(Material.from_type(COLOR_TYPE, color=(0.1, 0.2, 0.3, 1.0)))
    prim.draw(rc)
    program = ctx.programs[0]
    assert program.uniforms["u_material_kind"].value == 0
    assert program.uniforms["u_color"].value == (0.1, 0.2, 0.3, 1.0)

    prim.set_material(Material.from_type(STRIPE_TYPE, repeat=3.0))
    prim.draw(rc)
    assert program.uniforms["u_material_kind"].value == 1
    assert program.uniforms["u_repeat"].value == 3.0
    assert program.uniforms["u_horizontal"].value is True
    assert len(ctx.buffers) == 2


def test_dispose_releases_gpu_resources_once():
    ctx = DummyCtx()
    prim = _primitive()
    prim.draw(RenderContext(ctx))
    prim.dispose()

    assert ctx.vaos[0].release_count == 1
    assert [b.release_count for b in ctx.buffers] == [1, 1]
    with pytest.raises(UseAfterDestroy):
        prim.draw(RenderContext(ctx))
    with pytest.raises(UseAfterDestroy):
        prim.set_material(Material.from_type(COLOR_TYPE))
    with pytest.raises(UseAfterDestroy):
        prim.dispose()


def test_dispose_before_draw_allocates_nothing():
    ctx = DummyCtx()
    prim = _primitive()
    prim.dispose()
    assert ctx.buffers == []


def test_empty_mesh_draws_nothing():
    ctx = DummyCtx()
    empty = PolygonMesh(
        positions=np.empty((0, 3)),
        indices=np.empty((0,), dtype=np.uint32),
        vertex_format=VertexFormat.POSITION_AND_ST,
        st=np.empty((0, 2)),
    )
    prim = build_renderable(empty, SurfaceAppearance(material=Material.from_type(COLOR_TYPE)))
    prim.draw(RenderContext(ctx))
    assert ctx.buffers == []
    assert ctx.vaos == []
    prim.dispose()


def test_unknown_material_type_is_rejected():
    with pytest.raises(ValueError):
        Material.from_type("Checkerboard")


def test_render_context_caches_programs_and_releases():
    ctx = DummyCtx()
    rc = RenderContext(ctx)
    a = rc.program("p", lambda c: c.program("v", "f"))
    b = rc.program("p", lambda c: c.program("v", "f"))
    assert a is b
    assert rc.advance(0.016) is rc
    assert rc.frame_number == 1
    rc.release()
    assert a.release_count == 1


@pytest.mark.integration
def test_polygon_end_to_end_with_default_collaborators():
    ctx = DummyCtx()
    rc = RenderContext(ctx)
    poly = Polygon(granularity=np.radians(0.5))
    poly.set_flat_boundary(Ellipsoid.WGS84.cartesian_from_degrees([(0, 0), (2, 0), (2, 1), (0, 1)]))

    poly.tick(rc)
    poly.tick(rc.advance(0.016))

    assert poly.get_stats() == {"rebuilds": 1, "disposals": 0}
    assert len(ctx.vaos) == 1
    assert len(ctx.vaos[0].render_calls) == 2
    assert ctx.vaos[0].render_calls[0][1] % 3 == 0

    poly.destroy()
    assert ctx.vaos[0].release_count == 1


def test_default_material_is_translucent_yellow():
    m = default_polygon_material()
    assert m.type == COLOR_TYPE
    assert m.uniforms["color"] == (1.0, 1.0, 0.0, 0.5)
    assert Material.from_type(COLOR_TYPE).uniforms["color"][3] == 1.0
