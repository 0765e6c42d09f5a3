import unittest

from chartcore.indicators.engine import compute_ma, compute_ma_overlays, sma_series

from fakes import make_bars


class TestMovingAverage(unittest.TestCase):
    def test_three_period_mean(self):
        bars = make_bars(5, closes=[1, 2, 3, 4, 5])

        series = compute_ma(bars, 3)

        self.assertEqual(
            [(p.time, p.value) for p in series],
            [(bars[2].time, 2.0), (bars[3].time, 3.0), (bars[4].time, 4.0)],
        )

    def test_no_points_before_period(self):
        bars = make_bars(4)
        self.assertEqual(compute_ma(bars, 5), [])
        self.assertEqual(len(compute_ma(bars, 4)), 1)

    def test_invalid_period(self):
        with self.assertRaises(ValueError):
            sma_series([1.0, 2.0], 0)

    def test_disabled_overlay_is_cleared(self):
        bars = make_bars(20)

        overlays = compute_ma_overlays(bars, {"ma5": True, "ma10": False})

        self.assertEqual(len(overlays["ma5"]), 16)
        self.assertEqual(overlays["ma10"], [])


if __name__ == "__main__":
    unittest.main()
