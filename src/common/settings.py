"""
どこで: `common.settings`
何を: ポリゴンプリミティブの環境変数設定を型付きで一元管理し、import 時に読み込む。
なぜ: 既定粒度や楕円体比較方式などの切替を散在させず、テストから再読込できるようにするため。
"""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_bool, env_float, env_int


@dataclass
class _Settings:
    # Polygon 既定値
    DEFAULT_GRANULARITY_DEG: float = 1.0

    # 変更検知: False なら楕円体は同一性（is）で比較する
    ELLIPSOID_VALUE_EQUALITY: bool = False

    # ジオメトリ生成
    MAX_SUBDIVISION_DEPTH: int = 12

    # Misc
    DEBUG_REBUILD: bool = False


_settings = _Settings()


def reload_from_env() -> None:
    """環境変数から設定を再読込。

    - 粒度は正の値のみ採用（0 以下は既定値へ戻す）。
    - 細分化の深さは 0 以上に丸める。
    """
    granularity = env_float("PXP_DEFAULT_GRANULARITY_DEG", 1.0)
    _settings.DEFAULT_GRANULARITY_DEG = granularity if granularity > 0.0 else 1.0

    _settings.ELLIPSOID_VALUE_EQUALITY = env_bool("PXP_ELLIPSOID_VALUE_EQUALITY", False)
    _settings.MAX_SUBDIVISION_DEPTH = env_int("PXP_MAX_SUBDIVISION_DEPTH", 12, min_value=0) or 0
    _settings.DEBUG_REBUILD = env_bool("PXP_DEBUG_REBUILD", False)


def get() -> _Settings:
    """現在の設定スナップショットを返す。"""
    return _settings


# 初期ロード
reload_from_env()


__all__ = ["get", "reload_from_env", "_Settings"]
