"""
どこで: `engine.render` の低レベルメッシュ層。
何を: `PolygonMesh` から VBO/IBO/VAO を確保し、三角形として描画・解放する。
なぜ: GPU 転送の詳細を `SurfacePrimitive` から切り離し、解放を 1 箇所で確実に行うため。
"""

from __future__ import annotations

from typing import Any

import moderngl as mgl
import numpy as np

from engine.core.polygon_geometry import PolygonMesh


class SurfaceMesh:
    """
    GPUに塗り面の頂点とインデックスを送り込み、寿命を管理する
    """

    def __init__(self, ctx: Any, program: Any, mesh: PolygonMesh):
        """
        ctx: ModernGL コンテキスト
        program: `SurfaceShader` で生成したプログラム
        VBO: 頂点（中心相対位置 + 任意で法線/テクスチャ座標）を interleave した float32 配列
        IBO: 三角形リストの uint32 インデックス
        """
        self.ctx = ctx
        self.program = program
        self.index_count: int = mesh.index_count
        self.vbo: Any = None
        self.ibo: Any = None
        self.vao: Any = None
        self.released = False

        if mesh.is_empty:
            return
        fmt, names = mesh.vertex_format.layout()
        self.vbo = ctx.buffer(mesh.interleaved().tobytes())
        self.ibo = ctx.buffer(np.ascontiguousarray(mesh.indices, dtype=np.uint32).tobytes())
        self.vao = ctx.vertex_array(
            program, [(self.vbo, fmt, *names)], index_buffer=self.ibo, index_element_size=4
        )

    def render(self) -> None:
        if self.released:
            raise RuntimeError("解放済みの SurfaceMesh は描画できません")
        if self.vao is not None and self.index_count > 0:
            self.vao.render(mgl.TRIANGLES, vertices=self.index_count)

    def release(self) -> None:
        """GPUのメモリを解放する（VAO → バッファの順）"""
        if self.released:
            return
        for res in (self.vao, self.vbo, self.ibo):
            if res is not None:
                res.release()
        self.vao = self.vbo = self.ibo = None
        self.released = True


__all__ = ["SurfaceMesh"]
