"""
どこで: `engine.render` の描画可能プリミティブ。
何を: 塗り面メッシュと見た目を束ね、初回描画時に GPU へ転送、以降はマテリアル適用と描画のみ行う。
なぜ: `Polygon` が排他的に所有する「差し替え専用」の描画ハンドルを提供し、解放を明示的に行うため。

寿命:
- 生成（`build_renderable`）→ `set_material`/`draw` を任意回 → `dispose()` で GPU 資源を同期解放。
- `dispose()` 後の `draw`/`set_material`/`dispose` は `UseAfterDestroy`。
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import numpy as np

from common.errors import UseAfterDestroy
from engine.core.polygon_geometry import PolygonMesh

from .appearance import Material, SurfaceAppearance
from .context import RenderContext
from .shader import SURFACE_PROGRAM_NAME, SurfaceShader
from .surface_mesh import SurfaceMesh

logger = logging.getLogger(__name__)


class Renderable(Protocol):
    """`Polygon` が所有する描画ハンドルの最小インターフェース。"""

    def set_material(self, material: Material) -> None: ...

    def draw(self, render_context: Any) -> None: ...

    def dispose(self) -> None: ...


def _translation(offset: np.ndarray) -> np.ndarray:
    m = np.eye(4, dtype=np.float64)
    m[:3, 3] = offset
    return m


class SurfacePrimitive:
    """1 つの塗りポリゴンメッシュの GPU 表現。"""

    def __init__(self, geometry: PolygonMesh, appearance: SurfaceAppearance):
        self.geometry = geometry
        self.appearance = appearance
        self._gpu: SurfaceMesh | None = None
        self._disposed = False

    def _check_alive(self) -> None:
        if self._disposed:
            raise UseAfterDestroy("This primitive was disposed, i.e., dispose() was called.")

    def set_material(self, material: Material) -> None:
        self._check_alive()
        self.appearance.material = material

    def draw(self, render_context: RenderContext) -> None:
        """必要なら GPU へ転送し、マテリアルと MVP を適用して描画する。"""
        self._check_alive()
        program = render_context.program(SURFACE_PROGRAM_NAME, SurfaceShader.create_shader)
        if self._gpu is None:
            self._gpu = SurfaceMesh(render_context.ctx, program, self.geometry)
            if logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    "Uploading surface: verts=%d, inds=%d",
                    self.geometry.vertex_count,
                    self.geometry.index_count,
                )

        # 頂点は中心相対で転送しているため、平行移動は倍精度で行列側へ畳み込む
        mvp = np.asarray(render_context.view_projection, dtype=np.float64) @ _translation(
            self.geometry.center
        )
        mvp_member = program.get("u_mvp", None)
        if mvp_member is not None:
            mvp_member.write(mvp.T.astype(np.float32).tobytes())
        self.appearance.apply(program)
        self._gpu.render()

    def dispose(self) -> None:
        """GPU 資源を同期的に解放する。"""
        self._check_alive()
        if self._gpu is not None:
            self._gpu.release()
            self._gpu = None
        self._disposed = True


def build_renderable(geometry: PolygonMesh, appearance: SurfaceAppearance) -> SurfacePrimitive:
    """既定の描画ハンドル生成（`Polygon` の renderable_factory）。"""
    return SurfacePrimitive(geometry, appearance)


__all__ = ["Renderable", "SurfacePrimitive", "build_renderable"]
