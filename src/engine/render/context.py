"""
どこで: `engine.render` の描画コンテキスト。
何を: ModernGL コンテキスト・ビュー射影行列・フレーム情報・シェーダキャッシュを 1 つにまとめる。
なぜ: `Polygon.tick(context)` から描画先の詳細を隠し、プリミティブ間でシェーダを共有するため。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np


@dataclass
class RenderContext:
    """1 フレーム分の描画先。`advance(dt)` で次フレームへ進める。"""

    ctx: Any
    view_projection: np.ndarray = field(default_factory=lambda: np.eye(4, dtype=np.float64))
    dt: float = 0.0
    frame_number: int = 0
    _programs: dict[str, Any] = field(default_factory=dict, repr=False)

    def advance(self, dt: float) -> "RenderContext":
        """経過時間を記録してフレーム番号を進め、自身を返す（FrameClock の context_factory 用）。"""
        self.dt = float(dt)
        self.frame_number += 1
        return self

    def program(self, name: str, factory: Callable[[Any], Any]) -> Any:
        """名前付きシェーダプログラムを 1 度だけ生成して返す。"""
        prog = self._programs.get(name)
        if prog is None:
            prog = factory(self.ctx)
            self._programs[name] = prog
        return prog

    def release(self) -> None:
        """キャッシュ済みプログラムを解放する。"""
        for prog in self._programs.values():
            prog.release()
        self._programs.clear()


__all__ = ["RenderContext"]
