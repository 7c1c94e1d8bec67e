from __future__ import annotations

import csv
import tempfile
import unittest
from pathlib import Path

import acscan
from sampleio import write_ac_detect_log, write_cmd_addr_rejects
from script_ac_summary import count_rejects, discover_outputs, main, summarize_detects
from tracegen import ADDR6, TraceBuilder


def _scan_into(directory: Path, tb: TraceBuilder) -> None:
    res = acscan.analyze(tb.samples)
    write_ac_detect_log(str(directory / "ac_detect_log.csv"), res.detects)
    write_cmd_addr_rejects(str(directory / "cmd_addr_reject.csv"), res.rejects)


class AcSummaryTests(unittest.TestCase):
    def test_summaries_merge_site_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _scan_into(root, TraceBuilder().idle().cmd("30", hold_ns=22).addrs(ADDR6, hold_ns=34))
            site = root / "site_1"
            site.mkdir()
            _scan_into(site, TraceBuilder().idle().cmd("30", hold_ns=26).addrs(ADDR6[:3]).latch("FF", cle=1, ale=1))

            detect_files, reject_files = discover_outputs([root])
            detects = summarize_detects(detect_files)
            rejects = count_rejects(reject_files)

        self.assertEqual(len(detect_files), 2)
        erase = detects[(detects["Stage"] == "Command") & (detects["Name"] == "Erase")].iloc[0]
        self.assertEqual(int(erase["count"]), 2)
        self.assertEqual(float(erase["mean"]), 24.0)
        addr = detects[detects["Stage"] == "Address"].iloc[0]
        self.assertEqual(int(addr["count"]), 9)
        self.assertEqual(float(addr["min"]), 34.0)

        self.assertEqual(
            list(zip(rejects["Kind"], rejects["Reason"], rejects["count"])),
            [("Command", "AmbiguousCLE_ALE", 1), ("Command", "NextCommandBefore6Addr", 1)],
        )

    def test_discovery_splits_files_and_skips_summaries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _scan_into(root, TraceBuilder().idle().cmd("30").addrs(ADDR6))
            for name in ("trace.csv", "ac_detect_summary.csv", "ac_reject_counts.csv"):
                (root / name).write_text("x\n", encoding="utf-8")
            (root / "other").mkdir()
            _scan_into(root / "other", TraceBuilder().idle())

            detect_files, reject_files = discover_outputs([root, root])

        self.assertEqual([p.name for p in detect_files], ["ac_detect_log.csv"])
        self.assertEqual([p.name for p in reject_files], ["cmd_addr_reject.csv"])

    def test_main_writes_outputs_and_flags_missing_columns(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            _scan_into(root, TraceBuilder().idle().cmd("20").addrs(ADDR6))
            out_dir = root / "summary"

            self.assertEqual(main([str(root), "--output-dir", str(out_dir)]), 0)
            with (out_dir / "ac_detect_summary.csv").open(encoding="utf-8", newline="") as f:
                rows = list(csv.reader(f))
            self.assertEqual(rows[0], ["Stage", "Name", "count", "mean", "min", "max"])
            self.assertIn(["Command", "Program", "1", "25.00", "25.00", "25.00"], rows)

            (root / "bad_reject.csv").write_text("Kind\nCommand\n", encoding="utf-8")
            self.assertEqual(main([str(root), "--output-dir", str(out_dir)]), 2)
            self.assertEqual(main([str(root / "missing")]), 1)


if __name__ == "__main__":
    unittest.main()
