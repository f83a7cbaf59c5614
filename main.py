from __future__ import annotations

import logging
import math

import moderngl as mgl
import numpy as np
import pyglet
from pyglet.window import key

from common.logging import setup_default_logging
from engine.core.ellipsoid import Ellipsoid
from engine.core.frame_clock import FrameClock
from engine.core.render_window import RenderWindow
from engine.render.appearance import COLOR_TYPE, STRIPE_TYPE, Material
from engine.render.context import RenderContext
from engine.render.polygon import Polygon

WINDOW_SIZE = (960, 720)

logger = logging.getLogger(__name__)


def perspective(fov_y: float, aspect: float, near: float, far: float) -> np.ndarray:
    f = 1.0 / math.tan(fov_y / 2.0)
    m = np.zeros((4, 4), dtype=np.float64)
    m[0, 0] = f / aspect
    m[1, 1] = f
    m[2, 2] = (far + near) / (near - far)
    m[2, 3] = 2.0 * far * near / (near - far)
    m[3, 2] = -1.0
    return m


def look_at(eye: np.ndarray, target: np.ndarray, up: np.ndarray) -> np.ndarray:
    fwd = target - eye
    fwd = fwd / np.linalg.norm(fwd)
    side = np.cross(fwd, up)
    side = side / np.linalg.norm(side)
    true_up = np.cross(side, fwd)
    m = np.eye(4, dtype=np.float64)
    m[0, :3] = side
    m[1, :3] = true_up
    m[2, :3] = -fwd
    m[:3, 3] = -m[:3, :3] @ eye
    return m


def make_hierarchy(ellipsoid: Ellipsoid) -> dict:
    """外環の中に穴、その穴の中に島を持つ階層。"""

    def ring(lon0: float, lat0: float, lon1: float, lat1: float) -> np.ndarray:
        return ellipsoid.cartesian_from_degrees([(lon0, lat0), (lon1, lat0), (lon1, lat1), (lon0, lat1)])

    return {
        "positions": ring(-80.0, 30.0, -70.0, 40.0),
        "holes": [
            {
                "positions": ring(-77.0, 33.0, -73.0, 37.0),
                "holes": [{"positions": ring(-76.0, 34.0, -74.0, 36.0)}],
            }
        ],
    }


def handle_key(polygon: Polygon, symbol: int, materials: tuple[Material, Material]) -> None:
    """デモのキー操作。M: マテリアル、R: テクスチャ回転、H: 高さ、S: 表示切替、I: 統計ログ。"""
    first, second = materials
    if symbol == key.M:
        # マテリアル差し替え（再構築なし）
        polygon.material = second if polygon.material is first else first
    elif symbol == key.R:
        # テクスチャ回転（再構築あり）
        polygon.texture_rotation_angle = (polygon.texture_rotation_angle or 0.0) + math.pi / 8
    elif symbol == key.H:
        polygon.height = 0.0 if polygon.height else 50_000.0
    elif symbol == key.S:
        polygon.show = not polygon.show
    elif symbol == key.I:
        logger.info("stats: %s", polygon.get_stats())


def main() -> None:
    setup_default_logging()
    ellipsoid = Ellipsoid.WGS84

    window = RenderWindow(*WINDOW_SIZE, caption="pyxipoly demo")
    ctx = mgl.create_context()
    ctx.enable(mgl.BLEND)
    ctx.blend_func = mgl.SRC_ALPHA, mgl.ONE_MINUS_SRC_ALPHA

    target = ellipsoid.cartographic_to_cartesian(math.radians(-75.0), math.radians(35.0))
    eye = target + ellipsoid.geodetic_surface_normal(target) * 2.5e6
    view = look_at(eye, target, np.array([0.0, 0.0, 1.0]))
    proj = perspective(math.radians(45.0), window.aspect, 1.0e4, 1.0e8)
    context = RenderContext(ctx=ctx, view_projection=proj @ view)

    polygon = Polygon(ellipsoid=ellipsoid, polygon_hierarchy=make_hierarchy(ellipsoid))
    stripe = Material.from_type(STRIPE_TYPE, repeat=12.0)
    solid = Material.from_type(COLOR_TYPE, color=(0.2, 0.7, 1.0, 0.6))

    clock = FrameClock([polygon], context.advance)
    window.add_draw_callback(clock.tick)

    @window.event
    def on_key_press(symbol: int, modifiers: int) -> None:
        handle_key(polygon, symbol, (stripe, solid))

    @window.event
    def on_close() -> None:
        polygon.destroy()
        context.release()

    polygon.material = stripe
    pyglet.app.run()


if __name__ == "__main__":
    main()
