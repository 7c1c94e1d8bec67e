from __future__ import annotations

import math
import unittest

import acscan
from models import Sample
from tracegen import TraceBuilder


def _we(levels, **pins):
    return [
        Sample(time_ns=10 * i, io="00", n_ce0=0, ale=pins.get("ale", 0), cle=pins.get("cle", 0),
               n_we=v, n_re=1, rnb=pins.get("rnb", 0), n_wp=1, dqs=0)
        for i, v in enumerate(levels)
    ]


class EdgeScanTests(unittest.TestCase):
    def test_rising_and_falling_edges_scan_forward_only(self) -> None:
        s = _we([0, 1, 1, 0, 0, 1, 0])
        self.assertEqual(acscan.next_rising_edge(s, 0), 1)
        self.assertEqual(acscan.next_rising_edge(s, 1), 5)
        self.assertIsNone(acscan.next_rising_edge(s, 5))
        self.assertEqual(acscan.next_falling_edge(s, 1), 3)
        self.assertEqual(acscan.next_falling_edge(s, 3), 6)
        self.assertIsNone(acscan.next_falling_edge(s, 6))

    def test_edge_needs_a_previous_sample(self) -> None:
        s = _we([1, 1, 0])
        self.assertIsNone(acscan.next_rising_edge(s, -1))
        self.assertEqual(acscan.next_falling_edge(s, -1), 2)

    def test_window_runs_to_stream_end_without_fall(self) -> None:
        s = _we([0, 1, 1, 1], cle=1)
        w = acscan.classify_window(s, 1)
        self.assertIsNone(w.fall)
        self.assertEqual(w.end, 4)
        self.assertEqual(w.resume_at, 2)
        self.assertTrue(w.is_command)
        self.assertEqual(acscan.top_level_kind(w), acscan.WK_COMMAND)

    def test_top_level_kind_precedence(self) -> None:
        amb = acscan.Window(1, 2, 2, busy_held=True, cmd_held=True, addr_held=True)
        gating = acscan.Window(1, 2, 2, busy_held=False, cmd_held=True, addr_held=True)
        addr_only = acscan.Window(1, 2, 2, busy_held=True, cmd_held=False, addr_held=True)
        self.assertEqual(acscan.top_level_kind(amb), acscan.WK_AMBIGUOUS)
        self.assertEqual(acscan.top_level_kind(gating), acscan.WK_GATING_RNB_HIGH)
        self.assertIsNone(acscan.top_level_kind(addr_only))

    def test_measure_hold_stops_at_first_low_sample(self) -> None:
        tb = TraceBuilder().idle().cmd("30", hold_ns=27, we_high_ns=9)
        rise = acscan.next_rising_edge(tb.samples, 0)
        self.assertEqual(acscan.measure_hold_ns(tb.samples, rise, lambda x: x.cle == 1), 27.0)

    def test_measure_hold_runs_to_last_sample(self) -> None:
        s = _we([0, 1, 1, 1], ale=1)
        self.assertEqual(acscan.measure_hold_ns(s, 1, lambda x: x.ale == 1), 20.0)


class Round2Tests(unittest.TestCase):
    def test_half_rounds_away_from_zero(self) -> None:
        self.assertEqual(acscan.round2(0.125), 0.13)
        self.assertEqual(acscan.round2(-0.125), -0.13)
        self.assertEqual(acscan.round2(25.0), 25.0)
        self.assertEqual(acscan.round2(1.0 / 3.0), 0.33)

    def test_nan_passes_through(self) -> None:
        self.assertTrue(math.isnan(acscan.round2(math.nan)))


class StatsTests(unittest.TestCase):
    def test_empty_sink_is_undefined(self) -> None:
        st = acscan.stats([])
        self.assertFalse(st.is_defined())
        for v in (st.avg, st.min, st.max, st.std):
            self.assertTrue(math.isnan(v))

    def test_population_std(self) -> None:
        st = acscan.stats([10.0, 20.0])
        self.assertEqual((st.avg, st.min, st.max, st.std), (15.0, 10.0, 20.0, 5.0))

    def test_each_field_rounded(self) -> None:
        st = acscan.stats([1.0, 2.0, 2.0])
        self.assertEqual(st.avg, 1.67)
        self.assertEqual(st.std, 0.47)
        self.assertLessEqual(st.min, st.avg)
        self.assertLessEqual(st.avg, st.max)

    def test_single_value(self) -> None:
        st = acscan.stats(iter([25.0]))
        self.assertEqual((st.avg, st.min, st.max, st.std), (25.0, 25.0, 25.0, 0.0))


if __name__ == "__main__":
    unittest.main()
