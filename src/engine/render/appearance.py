"""
どこで: `engine.render` の見た目定義。
何を: マテリアル（Color/Stripe）と、楕円体表面用の見た目 `SurfaceAppearance`（要求頂点フォーマット付き）。
なぜ: マテリアルはジオメトリと独立に差し替わるため、再構築せずに毎フレーム uniform として適用するため。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from common.types import RGBA
from engine.core.vertex_format import VertexFormat

COLOR_TYPE = "Color"
STRIPE_TYPE = "Stripe"

_MATERIAL_DEFAULTS: dict[str, dict[str, Any]] = {
    COLOR_TYPE: {"color": (1.0, 1.0, 1.0, 1.0)},
    STRIPE_TYPE: {
        "even_color": (1.0, 1.0, 1.0, 0.5),
        "odd_color": (0.0, 0.0, 1.0, 0.5),
        "repeat": 5.0,
        "horizontal": True,
    },
}
_MATERIAL_KIND = {COLOR_TYPE: 0, STRIPE_TYPE: 1}


@dataclass(eq=False)
class Material:
    """種類名と uniform 値の組。`uniforms` は実行時に書き換えてよい。"""

    type: str = COLOR_TYPE
    uniforms: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_type(cls, type_name: str, **uniforms: Any) -> "Material":
        """既定値を持つ組込みマテリアルを作る（未知の種類は `ValueError`）。"""
        if type_name not in _MATERIAL_DEFAULTS:
            raise ValueError(f"未知のマテリアル種別です: {type_name!r}")
        merged = dict(_MATERIAL_DEFAULTS[type_name])
        merged.update(uniforms)
        return cls(type=type_name, uniforms=merged)


def default_polygon_material() -> Material:
    """Polygon 既定のマテリアル（半透明の黄色）。"""
    color: RGBA = (1.0, 1.0, 0.0, 0.5)
    return Material.from_type(COLOR_TYPE, color=color)


def _set_uniform(program: Any, name: str, value: Any) -> None:
    # 未使用 uniform はドライバ最適化で消えるため存在するものだけ書く
    member = program.get(name, None)
    if member is not None:
        member.value = value


@dataclass
class SurfaceAppearance:
    """楕円体表面に張り付く塗り面の見た目。"""

    VERTEX_FORMAT: ClassVar[VertexFormat] = VertexFormat.POSITION_AND_ST

    above_ground: bool = False
    material: Material | None = None

    @property
    def vertex_format(self) -> VertexFormat:
        return self.VERTEX_FORMAT

    def apply(self, program: Any) -> None:
        """現在のマテリアルを uniform としてプログラムへ書き込む。"""
        material = self.material
        if material is None:
            return
        u = material.uniforms
        _set_uniform(program, "u_material_kind", _MATERIAL_KIND.get(material.type, 0))
        if material.type == STRIPE_TYPE:
            _set_uniform(program, "u_color", tuple(u["even_color"]))
            _set_uniform(program, "u_odd_color", tuple(u["odd_color"]))
            _set_uniform(program, "u_repeat", float(u["repeat"]))
            _set_uniform(program, "u_horizontal", bool(u["horizontal"]))
        else:
            _set_uniform(program, "u_color", tuple(u["color"]))


__all__ = [
    "COLOR_TYPE",
    "STRIPE_TYPE",
    "Material",
    "SurfaceAppearance",
    "default_polygon_material",
]
