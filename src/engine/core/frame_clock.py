"""
どこで: `engine.core` の簡易フレームドライバ。
何を: `Tickable` の列を固定順序で呼び出す FrameClock（dt 測定とフレームコンテキスト生成）。
なぜ: GUI/ループから呼び出すだけで複数プリミティブの評価順を統一するため。
"""

from __future__ import annotations

import time
from typing import Any, Callable, Sequence

from .tickable import Tickable


class FrameClock:
    """登録された Tickable を固定順序で実行するだけの極小クラス。

    `context_factory(dt)` が返すオブジェクトを、そのフレームの全 Tickable に渡す。
    """

    def __init__(self, tickables: Sequence[Tickable], context_factory: Callable[[float], Any]):
        self._tickables = tuple(tickables)
        self._context_factory = context_factory
        self._last_time = time.perf_counter()
        self.frame_count = 0

    # `RenderWindow.add_draw_callback` 経由で on_draw ごとに呼ばせる（dt 省略時は実測）
    def tick(self, dt: float | None = None) -> None:
        if dt is None:  # pyglet は dt を渡してくれる
            now = time.perf_counter()  # 他フレームワーク用
            dt = now - self._last_time
            self._last_time = now

        context = self._context_factory(dt)
        for t in self._tickables:
            t.tick(context)
        self.frame_count += 1
