"""
どこで: `engine.core` の頂点フォーマット定義。
何を: ジオメトリ生成で出力する頂点属性（位置/法線/テクスチャ座標）の組み合わせを表す。
なぜ: 見た目（appearance）が要求する属性だけを生成・転送し、不要な計算と VBO 容量を省くため。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class VertexFormat:
    """頂点属性のフラグ集合。`position` は常に必須。"""

    position: bool = True
    normal: bool = False
    st: bool = False

    POSITION_ONLY: ClassVar["VertexFormat"]
    POSITION_AND_ST: ClassVar["VertexFormat"]
    ALL: ClassVar["VertexFormat"]

    def __post_init__(self) -> None:
        if not self.position:
            raise ValueError("VertexFormat.position は常に True である必要があります")

    @property
    def floats_per_vertex(self) -> int:
        return 3 + (3 if self.normal else 0) + (2 if self.st else 0)

    def layout(self) -> tuple[str, tuple[str, ...]]:
        """ModernGL の `vertex_array` 用の (フォーマット文字列, 属性名) を返す。"""
        fmt = ["3f"]
        names = ["in_position"]
        if self.normal:
            fmt.append("3f")
            names.append("in_normal")
        if self.st:
            fmt.append("2f")
            names.append("in_st")
        return " ".join(fmt), tuple(names)


VertexFormat.POSITION_ONLY = VertexFormat()
VertexFormat.POSITION_AND_ST = VertexFormat(st=True)
VertexFormat.ALL = VertexFormat(normal=True, st=True)

__all__ = ["VertexFormat"]
