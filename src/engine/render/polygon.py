"""
どこで: `engine.render` の塗りポリゴンプリミティブ。
何を: 楕円体表面上のポリゴン（単純リング or 入れ子階層）の設定を保持し、変更された場合だけ
      ジオメトリを再生成して描画ハンドルを差し替える。
なぜ: 三角形分割と GPU 転送は重いため、毎フレームの評価を「再利用 / 何もしない / 再構築」に振り分けるため。

状態:
- 公開属性（呼び出し側が自由に書き換える）: `ellipsoid`, `granularity`, `height`,
  `texture_rotation_angle`, `show`, `material`。
- 境界: `Unset` / `FlatBoundary(positions)` / `HierarchyBoundary(polygons)` のいずれか 1 つ。
- 前回再構築時のスナップショット `GeometrySnapshot` と再構築要求フラグ。
- 描画ハンドル（`Renderable`）。排他的に所有し、再構築時は破棄してから作り直す。

tick の判定:
1) 不変条件（ellipsoid/material あり、granularity > 0）を検査。違反は `InvariantViolation`。
2) `show` が False なら何もしない。
3) 再構築要求もハンドルも無ければ何もしない。
4) 要求あり、またはスナップショットと差分あり（楕円体は既定で同一性比較）なら再構築。
5) マテリアルを毎フレーム適用し、描画を委譲する。

使用例:
    polygon = Polygon()
    polygon.set_flat_boundary(Ellipsoid.WGS84.cartesian_from_degrees([(-72, 40), (-70, 35), (-75, 30)]))
    polygon.tick(render_context)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

import numpy as np

from common.errors import ConfigurationError, InvariantViolation, UseAfterDestroy
from common.settings import get as _get_settings
from common.types import FlattenedPolygonSet, PointsLike, as_boundary_loop
from engine.core.ellipsoid import Ellipsoid
from engine.core.polygon_geometry import PolygonGeometryOptions, build_polygon_geometry
from util.polygon_hierarchy import (
    EliminateHoles,
    HierarchyNode,
    flatten_hierarchy,
    ring_from_points,
)

from .appearance import Material, SurfaceAppearance, default_polygon_material
from .primitive import Renderable, build_renderable

logger = logging.getLogger(__name__)

GeometryBuilder = Callable[[PolygonGeometryOptions], Any]
RenderableFactory = Callable[[Any, SurfaceAppearance], Renderable]


# ---- 境界の状態（タグ付き） -------------------------------------------------- #
@dataclass(frozen=True)
class Unset:
    """描画対象なし（クリア済み）。正当な終端状態。"""


@dataclass(frozen=True, eq=False)
class FlatBoundary:
    positions: np.ndarray


@dataclass(frozen=True, eq=False)
class HierarchyBoundary:
    polygons: FlattenedPolygonSet


BoundaryState = Unset | FlatBoundary | HierarchyBoundary
UNSET = Unset()


# ---- 変更検知用スナップショット ---------------------------------------------- #
@dataclass(frozen=True, eq=False)
class GeometrySnapshot:
    """ジオメトリ生成に影響する設定だけを写し取った不変値。"""

    ellipsoid: Ellipsoid
    granularity: float
    height: float
    texture_rotation_angle: float | None

    def changed_fields(
        self, previous: "GeometrySnapshot", *, ellipsoid_by_value: bool = False
    ) -> tuple[str, ...]:
        """`previous` と異なるフィールド名を返す。

        数値は値で比較し、楕円体は `ellipsoid_by_value=False` のとき同一性で比較する
        （値の等しい別インスタンスも「変更」とみなす）。
        """
        changed: list[str] = []
        if ellipsoid_by_value:
            if self.ellipsoid != previous.ellipsoid:
                changed.append("ellipsoid")
        elif self.ellipsoid is not previous.ellipsoid:
            changed.append("ellipsoid")
        if self.granularity != previous.granularity:
            changed.append("granularity")
        if self.height != previous.height:
            changed.append("height")
        if self.texture_rotation_angle != previous.texture_rotation_angle:
            changed.append("texture_rotation_angle")
        return tuple(changed)


class Polygon:
    """楕円体表面上の塗りポリゴン。

    Parameters
    ----------
    ellipsoid : Ellipsoid | None, default Ellipsoid.WGS84
        参照楕円体。
    granularity : float | None
        細分化の角度粒度（ラジアン）。`None` なら `PXP_DEFAULT_GRANULARITY_DEG`。
    height : float, default 0.0
        表面からの高さ。
    texture_rotation_angle : float | None
        テクスチャ座標の回転（ラジアン）。
    show : bool, default True
        False の間は再構築も描画も行わない。
    material : Material | None
        `None` なら半透明の黄色。
    positions, polygon_hierarchy
        初期境界（どちらか一方）。それぞれ `set_flat_boundary`/`set_hierarchy` と同じ検証を行う。
    geometry_builder, renderable_factory, eliminate_holes
        外部協調者の差し替え口（既定は本パッケージの実装）。
    """

    def __init__(
        self,
        *,
        ellipsoid: Ellipsoid | None = Ellipsoid.WGS84,
        granularity: float | None = None,
        height: float = 0.0,
        texture_rotation_angle: float | None = None,
        show: bool = True,
        material: Material | None = None,
        positions: PointsLike | None = None,
        polygon_hierarchy: HierarchyNode | Mapping[str, Any] | None = None,
        geometry_builder: GeometryBuilder | None = None,
        renderable_factory: RenderableFactory | None = None,
        eliminate_holes: EliminateHoles | None = None,
    ):
        if positions is not None and polygon_hierarchy is not None:
            raise ConfigurationError("positions と polygon_hierarchy は同時に指定できません")

        self.ellipsoid = ellipsoid
        self.granularity = (
            granularity
            if granularity is not None
            else math.radians(_get_settings().DEFAULT_GRANULARITY_DEG)
        )
        self.height = height
        self.texture_rotation_angle = texture_rotation_angle
        self.show = show
        self.material = material if material is not None else default_polygon_material()

        self._geometry_builder: GeometryBuilder = geometry_builder or build_polygon_geometry
        self._renderable_factory: RenderableFactory = renderable_factory or build_renderable
        self._eliminate_holes = eliminate_holes

        self._boundary: BoundaryState = UNSET
        self._rebuild_requested = False
        self._snapshot: GeometrySnapshot | None = None
        self._renderable: Renderable | None = None
        self._destroyed = False

        # HUD/デバッグ用
        self._rebuilds = 0
        self._disposals = 0

        if positions is not None:
            self.set_flat_boundary(positions)
        elif polygon_hierarchy is not None:
            self.set_hierarchy(polygon_hierarchy)

    # --------------------------------------------------------------------- #
    # 境界の設定                                                             #
    # --------------------------------------------------------------------- #
    def get_positions(self) -> np.ndarray | None:
        """単純リングとして設定された境界（無ければ None）。"""
        self._check_alive()
        if isinstance(self._boundary, FlatBoundary):
            return self._boundary.positions
        return None

    def set_flat_boundary(self, positions: PointsLike | None) -> None:
        """単純リングを設定する。`None`/空はクリア（描画対象なし）。

        同一内容でも常に再構築を要求する（点列の比較は行わない）。
        3 点未満なら `ConfigurationError` を送出し、既存の設定は変更しない。
        """
        self._check_alive()
        if positions is None:
            state: BoundaryState = UNSET
        else:
            ring = as_boundary_loop(positions)
            state = UNSET if len(ring) == 0 else FlatBoundary(ring_from_points(ring))
        self._boundary = state
        self._rebuild_requested = True

    set_positions = set_flat_boundary

    def get_hierarchy(self) -> FlattenedPolygonSet | None:
        """階層から平坦化済みのリング列（無ければ None）。"""
        self._check_alive()
        if isinstance(self._boundary, HierarchyBoundary):
            return self._boundary.polygons
        return None

    def set_hierarchy(self, hierarchy: HierarchyNode | Mapping[str, Any]) -> None:
        """入れ子階層（外環＋穴＋穴の中の島…）から境界を設定する。

        平坦化に成功してから状態を置き換えるため、失敗時（`ConfigurationError`）は既存の設定が残る。
        """
        self._check_alive()
        polygons = flatten_hierarchy(hierarchy, eliminate_holes=self._eliminate_holes)
        self._boundary = HierarchyBoundary(polygons)
        self._rebuild_requested = True

    configure_from_hierarchy = set_hierarchy

    @property
    def boundary(self) -> BoundaryState:
        self._check_alive()
        return self._boundary

    @property
    def renderable(self) -> Renderable | None:
        self._check_alive()
        return self._renderable

    # --------------------------------------------------------------------- #
    # フレーム評価                                                           #
    # --------------------------------------------------------------------- #
    def tick(self, render_context: Any) -> None:
        """1 フレーム分の評価（必要なら再構築し、マテリアルを適用して描画）。"""
        self._check_alive()
        self._validate()

        if not self.show:
            return

        if not self._rebuild_requested and self._renderable is None:
            # 境界が未設定
            return

        snapshot = GeometrySnapshot(
            ellipsoid=self.ellipsoid,  # type: ignore[arg-type]
            granularity=float(self.granularity),
            height=float(self.height),
            texture_rotation_angle=self.texture_rotation_angle,
        )
        reasons = self._dirty_reasons(snapshot)
        if reasons:
            self._rebuild(snapshot, reasons)
            if self._renderable is None:
                return

        assert self._renderable is not None
        self._renderable.set_material(self.material)  # type: ignore[arg-type]
        self._renderable.draw(render_context)

    def _validate(self) -> None:
        if self.ellipsoid is None:
            raise InvariantViolation("this.ellipsoid must be defined.")
        if self.material is None:
            raise InvariantViolation("this.material must be defined.")
        try:
            g = float(self.granularity)
        except (TypeError, ValueError) as e:
            raise InvariantViolation("this.granularity must be a number.") from e
        if not math.isfinite(g) or g <= 0.0:
            raise InvariantViolation("this.granularity must be greater than zero.")

    def _dirty_reasons(self, snapshot: GeometrySnapshot) -> tuple[str, ...]:
        if self._rebuild_requested:
            return ("boundary",)
        if self._snapshot is None:
            return ("initial",)
        return snapshot.changed_fields(
            self._snapshot, ellipsoid_by_value=_get_settings().ELLIPSOID_VALUE_EQUALITY
        )

    def _rebuild(self, snapshot: GeometrySnapshot, reasons: Sequence[str]) -> None:
        self._snapshot = snapshot
        self._release_renderable()
        self._rebuild_requested = False

        boundary = self._boundary
        if isinstance(boundary, Unset):
            logger.debug("Polygon cleared (reasons=%s)", ",".join(reasons))
            return

        appearance = SurfaceAppearance(above_ground=snapshot.height > 0.0)
        options = PolygonGeometryOptions(
            positions=boundary.positions if isinstance(boundary, FlatBoundary) else None,
            polygon_hierarchy=boundary.polygons if isinstance(boundary, HierarchyBoundary) else None,
            height=snapshot.height,
            vertex_format=appearance.vertex_format,
            st_rotation=snapshot.texture_rotation_angle,
            ellipsoid=snapshot.ellipsoid,
            granularity=snapshot.granularity,
        )
        geometry = self._geometry_builder(options)
        self._renderable = self._renderable_factory(geometry, appearance)
        self._rebuilds += 1
        logger.debug("Polygon rebuilt #%d (reasons=%s)", self._rebuilds, ",".join(reasons))

    def _release_renderable(self) -> None:
        if self._renderable is not None:
            renderable, self._renderable = self._renderable, None
            renderable.dispose()
            self._disposals += 1

    # --------------------------------------------------------------------- #
    # 破棄                                                                   #
    # --------------------------------------------------------------------- #
    def is_destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """描画ハンドルを解放し、以降の利用を禁止する。

        2 回目以降の呼び出しを含め、`is_destroyed()` 以外はすべて `UseAfterDestroy` になる。
        """
        self._check_alive()
        self._release_renderable()
        self._destroyed = True

    def _check_alive(self) -> None:
        if self._destroyed:
            raise UseAfterDestroy("This object was destroyed, i.e., destroy() was called.")

    # HUD 用: 再構築/破棄の回数
    def get_stats(self) -> dict[str, int]:
        self._check_alive()
        return {"rebuilds": int(self._rebuilds), "disposals": int(self._disposals)}


__all__ = [
    "Polygon",
    "BoundaryState",
    "Unset",
    "FlatBoundary",
    "HierarchyBoundary",
    "UNSET",
    "GeometrySnapshot",
    "GeometryBuilder",
    "RenderableFactory",
]
