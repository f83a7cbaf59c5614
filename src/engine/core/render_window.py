"""
どこで: `engine.core` の描画ウィンドウ薄ラッパ。
何を: Pyglet Window（MSAA/深度バッファ/背景クリア）と描画コールバック登録を提供。
なぜ: プリミティブ/ジオメトリ層から GUI 依存を切り離し、最小インターフェイスで統一するため。

使用例:
    win = RenderWindow(1280, 720, bg_color=(0, 0, 0, 1))
    clock = FrameClock([polygon], context.advance)
    win.add_draw_callback(clock.tick)
    pyglet.app.run()
"""

from typing import Callable

import pyglet
from pyglet.gl import Config, glClearColor


class RenderWindow(pyglet.window.Window):
    def __init__(
        self,
        width: int,
        height: int,
        *,
        caption: str = "pyxipoly",
        bg_color: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 1.0),
    ):
        """ウィンドウを生成する。

        引数:
            width: ウィンドウ幅（ピクセル）。
            height: ウィンドウ高さ（ピクセル）。
            caption: タイトル。
            bg_color: 背景色 RGBA（0.0〜1.0）。
        """
        # 塗り面の縁を滑らかにするために MSAA を有効化、重なり判定に深度バッファを確保
        config = Config(double_buffer=True, sample_buffers=1, samples=4, depth_size=24, vsync=True)
        super().__init__(width=width, height=height, caption=caption, config=config)
        self._bg_color = bg_color
        self._draw_callbacks: list[Callable[[], None]] = []

    def add_draw_callback(self, func: Callable[[], None]) -> None:
        """
        `on_draw` 中に呼び出す描画関数を登録する。

        - 関数は引数を取らず、副作用で描画を行うこと。
        - 登録順に呼び出される。
        """
        self._draw_callbacks.append(func)

    def on_draw(self):  # Pyglet 既定のイベント名
        """ウィンドウ描画イベントハンドラ。登録された描画コールバックを呼び出す。"""
        r, g, b, a = self._bg_color
        glClearColor(r, g, b, a)
        self.clear()
        for cb in self._draw_callbacks:
            cb()

    @property
    def aspect(self) -> float:
        return float(self.width) / float(max(1, self.height))
