import unittest

from chartcore.bars.store import BarStore, merge_older, normalize_bars
from chartcore.models.market import Bar, ChartParams

from fakes import make_bars


def bar(time, close=1.0):
    return Bar(time=time, open=close, high=close, low=close, close=close, volume=1)


class TestMergeOlder(unittest.TestCase):
    def test_prepends_and_sorts(self):
        existing = make_bars(5)[2:]
        fetched = make_bars(5)[:3]

        merged = merge_older(existing, fetched)

        times = [b.time for b in merged]
        self.assertEqual(times, sorted(times))
        self.assertEqual(len(times), len(set(times)))
        self.assertEqual(times, [b.time for b in make_bars(5)])

    def test_idempotent(self):
        a = make_bars(10)[4:]
        b = make_bars(10)[:6]

        once = merge_older(a, b)
        twice = merge_older(once, b)

        self.assertEqual(once, twice)

    def test_superset_of_existing(self):
        existing = [bar("2024-01-03"), bar("2024-01-05")]
        fetched = [bar("2024-01-04"), bar("2024-01-01")]

        merged = merge_older(existing, fetched)

        self.assertTrue({b.time for b in existing} <= {b.time for b in merged})
        self.assertEqual([b.time for b in merged], ["2024-01-01", "2024-01-03", "2024-01-04", "2024-01-05"])

    def test_first_seen_wins_on_overlap(self):
        existing = [bar("2024-01-02", close=5.0)]
        fetched = [bar("2024-01-01", close=1.0), bar("2024-01-02", close=9.0)]

        merged = merge_older(existing, fetched)

        self.assertEqual(merged[-1].close, 9.0)

    def test_empty_fetch_returns_existing(self):
        existing = make_bars(3)
        self.assertEqual(merge_older(existing, []), existing)

    def test_unsorted_fetch_with_internal_duplicates(self):
        fetched = [bar("2024-01-02", 2.0), bar("2024-01-01", 1.0), bar("2024-01-02", 3.0)]

        result = normalize_bars(fetched)

        self.assertEqual([b.time for b in result], ["2024-01-01", "2024-01-02"])
        self.assertEqual(result[1].close, 2.0)


class TestBarStore(unittest.TestCase):
    def test_replace_and_lookup(self):
        store = BarStore()
        params = ChartParams("000001.SZ")
        store.replace(list(reversed(make_bars(4))), params)

        self.assertEqual(len(store), 4)
        self.assertEqual(store.params, params)
        self.assertEqual(store.earliest_time(), "2020-01-01")
        self.assertEqual(store.latest_time(), "2020-01-04")
        self.assertEqual(store.index_of("2020-01-03"), 2)
        self.assertIsNone(store.index_of("1999-01-01"))
        self.assertIsNotNone(store.last_updated)

    def test_prepend_older_reports_added(self):
        store = BarStore()
        store.replace(make_bars(10)[5:])

        added = store.prepend_older(make_bars(10)[:6])

        self.assertEqual(added, 5)
        self.assertEqual(len(store), 10)
        self.assertEqual(store.index_of("2020-01-06"), 5)

    def test_clear(self):
        store = BarStore()
        store.replace(make_bars(3))
        store.clear()
        self.assertFalse(store.has_any_data())
        self.assertIsNone(store.get("2020-01-01"))


if __name__ == "__main__":
    unittest.main()
