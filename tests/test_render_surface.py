import unittest

from pydantic import ValidationError

from chartcore.models.chart import ChartOptions, SeriesPoint, ViewportRange
from chartcore.models.market import Bar, TradeEvent
from chartcore.render.placeholder import TOTAL_MS, PlaceholderAnimation, bar_count
from chartcore.render.scales import TimeScale
from chartcore.render.surface import (
    DOWN_COLOR,
    PLACEHOLDER,
    READY,
    UNINITIALIZED,
    UP_COLOR,
    VOLUME_DOWN_COLOR,
    VOLUME_UP_COLOR,
    RenderSurface,
    volume_colors,
)
from chartcore.render.tooltip import format_volume, place_tooltip

from fakes import make_bars


def ready_surface(width=500, height=400, chart_type="candlestick"):
    surface = RenderSurface(width, height, chart_type)
    surface.complete_placeholder()
    return surface


class TestVolumeColors(unittest.TestCase):
    def test_compares_against_previous_close(self):
        bars = [
            Bar("2024-01-01", open=10, high=11, low=9, close=9.5, volume=1),
            Bar("2024-01-02", open=9, high=11, low=9, close=10, volume=1),
            Bar("2024-01-03", open=10, high=11, low=9, close=10, volume=1),
            Bar("2024-01-04", open=10, high=11, low=9, close=9.9, volume=1),
        ]
        self.assertEqual(
            volume_colors(bars),
            [VOLUME_DOWN_COLOR, VOLUME_UP_COLOR, VOLUME_UP_COLOR, VOLUME_DOWN_COLOR],
        )


class TestTooltip(unittest.TestCase):
    def test_default_below_right(self):
        self.assertEqual(place_tooltip(100, 100, (180, 96), (800, 400)), (115, 115))

    def test_flips_near_right_and_bottom_edges(self):
        left, top = place_tooltip(700, 350, (180, 96), (800, 400))
        self.assertEqual((left, top), (700 - 180 - 15, 350 - 96 - 15))

    def test_clamped_inside_small_container(self):
        left, top = place_tooltip(100, 50, (180, 96), (200, 120))
        self.assertGreaterEqual(left, 0)
        self.assertGreaterEqual(top, 0)
        self.assertLessEqual(left + 180, 200)
        self.assertLessEqual(top + 96, 120)

    def test_volume_format(self):
        self.assertEqual(format_volume(9999), "9,999")
        self.assertEqual(format_volume(123456), "12.35万")


class TestPlaceholder(unittest.TestCase):
    def test_bar_count(self):
        self.assertEqual(bar_count(800, 0), 100)
        self.assertEqual(bar_count(100, 0), 30)
        self.assertEqual(bar_count(800, 35), 35)

    def test_phases_and_frames(self):
        anim = PlaceholderAnimation(width=800)
        self.assertFalse(anim.skip)
        self.assertEqual(anim.phase(0), "grow")
        self.assertEqual(anim.phase(1300), "color")
        self.assertEqual(anim.phase(1900), "display")
        self.assertEqual(anim.phase(2200), "fade")
        self.assertEqual(anim.phase(TOTAL_MS), "done")
        self.assertEqual(len(anim.frame(1500)), 100)
        self.assertEqual(anim.frame(TOTAL_MS), [])

    def test_deterministic_with_seed(self):
        a = PlaceholderAnimation(width=800, seed=3).frame(1500)
        b = PlaceholderAnimation(width=800, seed=3).frame(1500)
        self.assertEqual(a, b)

    def test_short_datasets_skip(self):
        self.assertTrue(PlaceholderAnimation(width=800, bars=make_bars(20)).skip)


class TestRenderSurface(unittest.TestCase):
    def setUp(self):
        self.bars = make_bars(10)
        self.visible = ViewportRange(from_index=0, to_index=9)

    def test_state_machine(self):
        surface = RenderSurface(800, 400)
        self.assertEqual(surface.state, UNINITIALIZED)

        delay = surface.begin_placeholder()
        self.assertEqual(surface.state, PLACEHOLDER)
        self.assertAlmostEqual(delay, TOTAL_MS / 1000.0)

        scene = surface.draw(self.bars, self.visible, {}, [], "ok", elapsed_ms=100)
        self.assertEqual(scene.candles, [])
        self.assertTrue(scene.placeholder)

        surface.complete_placeholder()
        self.assertEqual(surface.state, READY)
        # Plays once per mount.
        self.assertEqual(surface.begin_placeholder(), 0.0)
        self.assertEqual(surface.state, READY)

        surface.reset()
        self.assertEqual(surface.state, UNINITIALIZED)

    def test_narrow_surface_skips_placeholder(self):
        surface = RenderSurface(300, 400)
        self.assertEqual(surface.begin_placeholder(), 0.0)
        self.assertEqual(surface.state, READY)

    def test_candle_scene(self):
        surface = ready_surface()
        events = [TradeEvent("2020-01-05", "buy", 14.0, 100, 1400.0)]

        scene = surface.draw(self.bars, self.visible, {}, events, "ok")

        self.assertEqual(len(scene.candles), 10)
        self.assertEqual(len(scene.volume), 10)
        self.assertIsNone(scene.line)
        self.assertEqual(scene.candles[0].color, UP_COLOR)
        self.assertEqual(len(scene.markers), 1)
        self.assertEqual(scene.markers[0].date, "2020-01-05")
        for candle in scene.candles:
            self.assertLessEqual(candle.high_y, candle.low_y)
            self.assertTrue(0 <= candle.x <= 500)

    def test_down_candle_color(self):
        surface = ready_surface()
        bars = [Bar("2024-01-01", open=11, high=12, low=9, close=10, volume=5)]
        scene = surface.draw(bars, ViewportRange(from_index=0, to_index=0), {}, [], "ok")
        self.assertEqual(scene.candles[0].color, DOWN_COLOR)

    def test_line_scene_with_ma(self):
        surface = ready_surface(chart_type="line")
        ma = {"ma5": [SeriesPoint(time=b.time, value=b.close) for b in self.bars[4:]], "ma10": []}

        scene = surface.draw(self.bars, self.visible, ma, [], "ok")

        self.assertEqual(scene.candles, [])
        self.assertEqual(len(scene.line.points), 10)
        self.assertEqual([line.name for line in scene.moving_averages], ["MA5"])
        self.assertEqual(len(scene.moving_averages[0].points), 6)

    def test_not_ready_draws_nothing(self):
        surface = RenderSurface(500, 400)
        scene = surface.draw(self.bars, self.visible, {}, [], "loading", loading_more=True)
        self.assertEqual(scene.candles, [])
        self.assertFalse(scene.loading_more)

    def test_pointer_outside_hides_tooltip(self):
        surface = ready_surface()
        self.assertIsNone(surface.pointer_move(-1, 10, self.bars, self.visible, {}))
        self.assertIsNone(surface.pointer_move(10, 401, self.bars, self.visible, {}))
        self.assertIsNone(surface.hover_index)

    def test_pointer_past_last_bar(self):
        surface = ready_surface()
        wide = ViewportRange(from_index=0, to_index=19)
        self.assertIsNone(surface.pointer_move(490, 10, self.bars, wide, {}))

    def test_candle_tooltip(self):
        surface = ready_surface()
        ma = {"ma5": [SeriesPoint(time=self.bars[4].time, value=12.0)], "ma10": []}

        payload = surface.pointer_move(225, 100, self.bars, self.visible, ma)

        self.assertEqual(surface.hover_index, 4)
        self.assertEqual(payload.time, self.bars[4].time)
        self.assertEqual(payload.close, 14.0)
        self.assertIsNone(payload.price)
        self.assertEqual([(p.time, p.value) for p in payload.moving_averages], [("MA5", 12.0)])

    def test_line_tooltip(self):
        surface = ready_surface(chart_type="line")
        payload = surface.pointer_move(25, 100, self.bars, self.visible, {})
        self.assertEqual(payload.price, 10.0)
        self.assertIsNone(payload.open)

    def test_pointer_leave(self):
        surface = ready_surface()
        surface.pointer_move(25, 100, self.bars, self.visible, {})
        surface.pointer_leave()
        self.assertIsNone(surface.hover_index)

    def test_zero_width_has_no_bar_under_pointer(self):
        scale = TimeScale(width=0, visible=self.visible)
        self.assertIsNone(scale.x_to_index(0, len(self.bars)))

    def test_options_reject_non_positive_size(self):
        with self.assertRaises(ValidationError):
            ChartOptions(width=0)
        with self.assertRaises(ValidationError):
            ChartOptions(height=-1)

    def test_unknown_chart_type(self):
        with self.assertRaises(ValueError):
            ready_surface().set_chart_type("area")


if __name__ == "__main__":
    unittest.main()
