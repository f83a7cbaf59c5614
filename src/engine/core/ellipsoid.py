"""
どこで: `engine.core` の参照楕円体。
何を: 3 軸半径を持つ楕円体（WGS84/単位球）と、測地法線・表面への射影・経緯度→直交座標変換を提供。
なぜ: ポリゴンは楕円体表面上の点で定義されるため、ジオメトリ生成で表面追従と高さオフセットを行う必要がある。

注意:
- `Ellipsoid` は値で等価比較できる（frozen dataclass）。ただし `Polygon` の変更検知は
  既定で同一性（`is`）比較を行う（`common.settings.ELLIPSOID_VALUE_EQUALITY` 参照）。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import ClassVar, Sequence

import numpy as np

# 表面射影の Newton 反復の収束判定
_EPSILON12 = 1e-12
_CENTER_TOLERANCE_SQUARED = 0.1
_MAX_ITERATIONS = 64


@dataclass(frozen=True)
class Ellipsoid:
    """中心が原点の 3 軸楕円体。"""

    radius_x: float
    radius_y: float
    radius_z: float

    _radii: np.ndarray = field(init=False, repr=False, compare=False)
    _radii_squared: np.ndarray = field(init=False, repr=False, compare=False)
    _one_over_radii_squared: np.ndarray = field(init=False, repr=False, compare=False)

    WGS84: ClassVar["Ellipsoid"]
    UNIT_SPHERE: ClassVar["Ellipsoid"]

    def __post_init__(self) -> None:
        radii = np.array([self.radius_x, self.radius_y, self.radius_z], dtype=np.float64)
        if np.any(radii <= 0.0) or not np.all(np.isfinite(radii)):
            raise ValueError(f"楕円体の半径は正の有限値である必要があります: {radii.tolist()}")
        object.__setattr__(self, "_radii", radii)
        object.__setattr__(self, "_radii_squared", radii * radii)
        object.__setattr__(self, "_one_over_radii_squared", 1.0 / (radii * radii))

    @property
    def radii(self) -> np.ndarray:
        return self._radii.copy()

    @property
    def maximum_radius(self) -> float:
        return float(np.max(self._radii))

    # ── 変換 ───────────────────
    def geodetic_surface_normal(self, positions: np.ndarray) -> np.ndarray:
        """表面上の点における測地法線（単位ベクトル）。`(3,)` と `(N, 3)` の両方を受け付ける。"""
        p = np.asarray(positions, dtype=np.float64)
        n = p * self._one_over_radii_squared
        norm = np.linalg.norm(n, axis=-1, keepdims=True)
        norm = np.where(norm == 0.0, 1.0, norm)
        return n / norm

    def cartographic_to_cartesian(
        self, longitude: float | np.ndarray, latitude: float | np.ndarray, height: float | np.ndarray = 0.0
    ) -> np.ndarray:
        """経度・緯度（ラジアン）と高さから直交座標を求める。"""
        lon = np.asarray(longitude, dtype=np.float64)
        lat = np.asarray(latitude, dtype=np.float64)
        h = np.asarray(height, dtype=np.float64)
        cos_lat = np.cos(lat)
        n = np.stack([cos_lat * np.cos(lon), cos_lat * np.sin(lon), np.sin(lat)], axis=-1)
        k = self._radii_squared * n
        gamma = np.sqrt(np.sum(n * k, axis=-1, keepdims=True))
        return k / gamma + n * h[..., None]

    def cartesian_from_degrees(self, lonlat: Sequence[Sequence[float]], height: float = 0.0) -> np.ndarray:
        """`[(lon_deg, lat_deg), ...]` を `(K, 3)` の直交座標へ変換する（ポリゴン入力の作成用）。"""
        arr = np.asarray(lonlat, dtype=np.float64).reshape(-1, 2)
        return self.cartographic_to_cartesian(np.radians(arr[:, 0]), np.radians(arr[:, 1]), height)

    def scale_to_geodetic_surface(self, positions: np.ndarray) -> np.ndarray:
        """各点を測地法線に沿って楕円体表面へ射影する。

        中心付近（射影が不定）の点は中心方向のスケーリング結果を返す。
        `(3,)` と `(N, 3)` の両方を受け付ける。
        """
        p = np.asarray(positions, dtype=np.float64)
        single = p.ndim == 1
        P = p.reshape(-1, 3)
        inv_r2 = self._one_over_radii_squared

        sq = P * P * inv_r2
        squared_norm = np.sum(sq, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            ratio = np.sqrt(1.0 / squared_norm)
        intersection = P * ratio[:, None]
        near_center = squared_norm < _CENTER_TOLERANCE_SQUARED

        gradient = intersection * inv_r2 * 2.0
        grad_norm = np.linalg.norm(gradient, axis=1)
        with np.errstate(divide="ignore", invalid="ignore"):
            lam = (1.0 - ratio) * np.linalg.norm(P, axis=1) / (0.5 * grad_norm)
        lam = np.where(np.isfinite(lam), lam, 0.0)

        multipliers = np.ones_like(P)
        active = ~near_center
        for _ in range(_MAX_ITERATIONS):
            if not np.any(active):
                break
            multipliers = 1.0 / (1.0 + lam[:, None] * inv_r2)
            m2 = multipliers * multipliers
            m3 = m2 * multipliers
            func = np.sum(sq * m2, axis=1) - 1.0
            derivative = -2.0 * np.sum(sq * m3 * inv_r2, axis=1)
            with np.errstate(divide="ignore", invalid="ignore"):
                correction = np.where(derivative != 0.0, func / derivative, 0.0)
            active = active & (np.abs(func) > _EPSILON12)
            lam = np.where(active, lam - correction, lam)

        out = np.where(near_center[:, None], intersection, P * multipliers)
        return out[0] if single else out


Ellipsoid.WGS84 = Ellipsoid(6378137.0, 6378137.0, 6356752.3142451793)
Ellipsoid.UNIT_SPHERE = Ellipsoid(1.0, 1.0, 1.0)

DEFAULT_GRANULARITY = math.radians(1.0)

__all__ = ["Ellipsoid", "DEFAULT_GRANULARITY"]
