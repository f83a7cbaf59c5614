"""
どこで: `common.env`
何を: `PXP_*` 環境変数を型付きで読み出すヘルパ（bool/int/float）。
なぜ: 設定読込の例外処理と下限丸めを一箇所にまとめ、`common.settings` を単純に保つため。
"""

from __future__ import annotations

import os
from typing import Optional

_TRUE_WORDS = frozenset({"true", "t", "yes", "y", "on"})
_FALSE_WORDS = frozenset({"false", "f", "no", "n", "off"})


def env_bool(name: str, default: bool = False) -> bool:
    """真偽値を取得する。`0/1` と `true/false/yes/no/on/off` を解釈する。"""
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    s = raw.strip().lower()
    if s.lstrip("-").isdigit():
        return int(s) != 0
    if s in _TRUE_WORDS:
        return True
    if s in _FALSE_WORDS:
        return False
    return bool(default)


def env_int(
    name: str, default: Optional[int] = None, *, min_value: Optional[int] = None
) -> Optional[int]:
    """整数を取得する（未設定/不正値は `default`、`min_value` 未満は下限に丸める）。"""
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        val = int(raw.strip())
    except ValueError:
        return default
    if min_value is not None and val < min_value:
        val = min_value
    return val


def env_float(
    name: str, default: float, *, min_value: Optional[float] = None
) -> float:
    """浮動小数を取得する。

    Parameters
    ----------
    name : str
        環境変数名。
    default : float
        未設定・不正値・非有限値のときに返す既定値。
    min_value : Optional[float]
        下限。結果がこれを下回れば下限に丸める。
    """
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        val = float(raw.strip())
    except ValueError:
        return float(default)
    if val != val or val in (float("inf"), float("-inf")):
        return float(default)
    if min_value is not None and val < min_value:
        val = float(min_value)
    return val


__all__ = ["env_bool", "env_int", "env_float"]
