"""
どこで: `engine.core` の更新インターフェース。
何を: 1 フレーム評価 `tick(context)` を持つ `Tickable` Protocol を定義。
なぜ: フレーム駆動のプリミティブ（Polygon 等）を FrameClock から一様に扱うため。
"""

from typing import Any, Protocol


class Tickable(Protocol):
    """1 フレーム分の評価を行うインターフェース。"""

    def tick(self, context: Any) -> None:
        """フレームのコンテキスト（描画先や経過時間）を受け取り、必要なら再構築して描画する。"""
