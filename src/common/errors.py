"""
どこで: `common.errors`
何を: ポリゴンプリミティブ全体で共有する例外型（設定不正/不変条件違反/破棄後使用）を定義。
なぜ: 呼び出し側の入力ミスとプログラミングエラーを型で区別し、捕捉範囲を明確にするため。
"""

from __future__ import annotations


class PolygonError(Exception):
    """本パッケージ由来の例外の基底。"""


class ConfigurationError(PolygonError, ValueError):
    """構造的に不正な入力（3 点未満のリング等）。

    セッター/平坦化の呼び出し時点で同期的に送出し、既存の設定は変更しない。
    """


class InvariantViolation(PolygonError, RuntimeError):
    """tick 時に必須フィールド（ellipsoid/material/granularity）が欠落・不正。"""


class UseAfterDestroy(PolygonError, RuntimeError):
    """`destroy()` 後に `is_destroyed()` 以外を呼び出した。"""


__all__ = ["PolygonError", "ConfigurationError", "InvariantViolation", "UseAfterDestroy"]
