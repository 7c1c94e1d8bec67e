from __future__ import annotations

import csv
import math
import os
from typing import Dict, Iterable, List, Sequence

from models import AcDetectLog, AcStats, CmdAddrReject, Sample, ValidCmdRow


# CSV column -> Sample field
SAMPLE_COLUMNS: Dict[str, str] = {
    "Time(ns)": "time_ns",
    "IO": "io",
    "nCE0": "n_ce0",
    "ALE": "ale",
    "CLE": "cle",
    "nWE": "n_we",
    "nRE": "n_re",
    "RnB": "rnb",
    "nWP": "n_wp",
    "DQS": "dqs",
}

COMPLETE_HEADER = ["Time", "CMD", "ADD1", "ADD2", "ADD3", "ADD4", "ADD5", "ADD6"]
REJECT_HEADER = ["Time", "Kind", "Reason", "Code", "TAC(ns)", "ParentCmdTime", "ParentCmdName"]
STATS_HEADER = ["", "AVG", "MIN", "MAX", "STDV"]
DETECT_HEADER = ["Time", "Stage", "Name", "Code", "TAC(ns)", "ParentCmdTime", "ParentCmdName"]


def _require_columns(path: str, fieldnames: Sequence[str]) -> Dict[str, int]:
    index = {name: i for i, name in enumerate(fieldnames)}
    missing = [c for c in SAMPLE_COLUMNS if c not in index]
    if missing:
        raise ValueError(f"{path} missing required columns: {', '.join(missing)}")
    return index


def read_samples(path: str) -> List[Sample]:
    """Read a logic-analyzer CSV export into Samples, in file order."""
    # utf-8-sig drops a leading BOM if present
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)
        header = next(reader, None)
        if header is None:
            raise ValueError(f"{path} is empty")
        index = _require_columns(path, [h.strip() for h in header])

        out: List[Sample] = []
        for row in reader:
            if not row or all(not c.strip() for c in row):
                continue
            try:
                vals = {fld: row[index[col]].strip() for col, fld in SAMPLE_COLUMNS.items()}
                out.append(Sample(
                    time_ns=int(vals["time_ns"]),
                    io=vals["io"],
                    **{k: int(v) for k, v in vals.items() if k not in ("time_ns", "io")},
                ))
            except (IndexError, ValueError) as exc:
                raise ValueError(f"{path}:{reader.line_num}: bad sample row: {exc}") from exc
    return out


# ------------------------------
# Result writers
# ------------------------------
def _ensure_dir(p: str) -> None:
    d = os.path.dirname(p)
    if d:
        os.makedirs(d, exist_ok=True)


def _fmt2(v: float) -> str:
    return "" if math.isnan(v) else f"{v:.2f}"


def _write_rows(path: str, header: List[str], rows: Iterable[List[object]]) -> str:
    _ensure_dir(path)
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.writer(f, lineterminator="\n")
        w.writerow(header)
        w.writerows(rows)
    return path


def write_complete_cmds(path: str, rows: Iterable[ValidCmdRow]) -> str:
    return _write_rows(path, COMPLETE_HEADER, ([r.time, r.cmd, *r.addrs] for r in rows))


def write_cmd_addr_rejects(path: str, rejects: Iterable[CmdAddrReject]) -> str:
    return _write_rows(path, REJECT_HEADER, (
        [e.time, e.kind, e.reason, e.code, _fmt2(e.tac_ns), e.parent_cmd_time, e.parent_cmd_name]
        for e in rejects
    ))


def write_ac_stats(path: str, tcmdh: AcStats, taddh: AcStats) -> str:
    rows = [
        [label, _fmt2(st.avg), _fmt2(st.min), _fmt2(st.max), _fmt2(st.std)]
        for label, st in (("tCMDH", tcmdh), ("tADDH", taddh))
    ]
    return _write_rows(path, STATS_HEADER, rows)


def write_ac_detect_log(path: str, detects: Iterable[AcDetectLog]) -> str:
    return _write_rows(path, DETECT_HEADER, (
        [e.time, e.stage, e.name, e.code, _fmt2(e.tac_ns), e.parent_cmd_time, e.parent_cmd_name]
        for e in detects
    ))
