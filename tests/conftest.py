"""共通フィクスチャ。

- 乱数シード固定
- 小さなリング試料（平面の正方形/三角形、楕円体上の経緯度四角形）
- 協調者ダブルを差し込んだ `Polygon`
- 設定（環境変数）の差し替えと復元
"""

from __future__ import annotations

from typing import Callable, Iterator

import numpy as np
import pytest

from common import settings as settings_mod
from engine.core.ellipsoid import Ellipsoid
from engine.render.polygon import Polygon
from tests._utils.fakes import RecordingBuilder, RecordingFactory


@pytest.fixture(scope="session", autouse=True)
def np_seed() -> None:
    """NumPy の乱数を固定。"""
    np.random.seed(12345)


@pytest.fixture()
def settings_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[pytest.MonkeyPatch]:
    """PXP_* を未設定にした状態で設定を読み直し、終了後も読み直す（環境変数の差し替え用）。"""
    for name in (
        "PXP_DEFAULT_GRANULARITY_DEG",
        "PXP_ELLIPSOID_VALUE_EQUALITY",
        "PXP_MAX_SUBDIVISION_DEPTH",
        "PXP_DEBUG_REBUILD",
    ):
        monkeypatch.delenv(name, raising=False)
    settings_mod.reload_from_env()
    yield monkeypatch
    monkeypatch.undo()
    settings_mod.reload_from_env()


@pytest.fixture()
def triangle() -> np.ndarray:
    return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])


@pytest.fixture()
def square() -> np.ndarray:
    return np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0], [0.0, 1.0, 0.0]])


@pytest.fixture()
def lonlat_square() -> np.ndarray:
    """WGS84 上の 1 度四方（反時計回り）。"""
    return Ellipsoid.WGS84.cartesian_from_degrees([(10, 20), (11, 20), (11, 21), (10, 21)])


@pytest.fixture()
def builder() -> RecordingBuilder:
    return RecordingBuilder()


@pytest.fixture()
def factory() -> RecordingFactory:
    return RecordingFactory()


@pytest.fixture()
def make_polygon(builder: RecordingBuilder, factory: RecordingFactory) -> Callable[..., Polygon]:
    """協調者ダブルを差し込んだ `Polygon` を作るファクトリ。"""

    def _make(**kwargs) -> Polygon:
        kwargs.setdefault("geometry_builder", builder)
        kwargs.setdefault("renderable_factory", factory)
        return Polygon(**kwargs)

    return _make
