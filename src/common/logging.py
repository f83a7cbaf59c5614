"""
プロジェクト向けの軽量ロギングユーティリティ。

要点:
- 各モジュールは `logging.getLogger(__name__)` でロガーを取得する（再構築/破棄は DEBUG）。
- デモ等のエントリポイントから、未設定時に限り最小構成を 1 度だけ適用する。
"""

from __future__ import annotations

import logging


def setup_default_logging(level: int | str = "INFO") -> None:
    """最小限のロギング設定を 1 度だけ適用する。

    - ルートロガーにハンドラが既にあれば何もしない（no-op）
    - `common.settings.DEBUG_REBUILD` が有効なら再構築ログを出すため DEBUG に引き上げる
    """
    if isinstance(level, str):
        lvl = getattr(logging, level.upper(), logging.INFO)
    else:
        lvl = int(level)

    from .settings import get as _get_settings

    if _get_settings().DEBUG_REBUILD:
        lvl = min(lvl, logging.DEBUG)

    root = logging.getLogger()
    if root.handlers:
        return
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


__all__ = ["setup_default_logging"]
