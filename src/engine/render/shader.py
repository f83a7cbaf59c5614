"""
どこで: `engine.render` のシェーダ定義。
何を: 塗り面（三角形）用の GLSL と、ModernGL プログラムを生成するファクトリ。
なぜ: マテリアル種別（Color/Stripe）を uniform で切り替え、プリミティブ間で 1 つのプログラムを共有するため。
"""

from __future__ import annotations

from typing import Any

SURFACE_PROGRAM_NAME = "surface"

VERTEX_SHADER = """
#version 330

uniform mat4 u_mvp;

in vec3 in_position;
in vec2 in_st;

out vec2 v_st;

void main() {
    v_st = in_st;
    gl_Position = u_mvp * vec4(in_position, 1.0);
}
"""

FRAGMENT_SHADER = """
#version 330

uniform int u_material_kind;  // 0: Color, 1: Stripe
uniform vec4 u_color;
uniform vec4 u_odd_color;
uniform float u_repeat;
uniform bool u_horizontal;

in vec2 v_st;

out vec4 f_color;

void main() {
    if (u_material_kind == 1) {
        float coord = u_horizontal ? v_st.t : v_st.s;
        f_color = fract(coord * u_repeat) < 0.5 ? u_color : u_odd_color;
    } else {
        f_color = u_color;
    }
}
"""


class SurfaceShader:
    @staticmethod
    def create_shader(ctx: Any) -> Any:
        """塗り面用プログラムを生成する（`RenderContext.program` のファクトリ）。"""
        return ctx.program(vertex_shader=VERTEX_SHADER, fragment_shader=FRAGMENT_SHADER)


__all__ = ["SURFACE_PROGRAM_NAME", "SurfaceShader", "VERTEX_SHADER", "FRAGMENT_SHADER"]
