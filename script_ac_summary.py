#!/usr/bin/env python3
"""Aggregate AC detect logs and reject logs from one or more output directories."""
from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

DEFAULT_DETECT_SUMMARY_FILENAME = "ac_detect_summary.csv"
DEFAULT_REJECT_COUNTS_FILENAME = "ac_reject_counts.csv"
DETECT_COLUMNS = ("Stage", "Name", "TAC(ns)")
REJECT_COLUMNS = ("Kind", "Reason")


SITE_DIR = re.compile(r"site_\d+")
SUMMARY_OUTPUTS = {DEFAULT_DETECT_SUMMARY_FILENAME, DEFAULT_REJECT_COUNTS_FILENAME}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Summarize tCMDH/tADDH detect logs and reject reasons across scan outputs")
    p.add_argument("directories", nargs="+", type=Path, help="Scan output dirs (site_N subdirs are included)")
    p.add_argument("--output-dir", type=Path, default=None, help="Where summaries go (default: cwd)")
    p.add_argument("--detect-output", type=Path, default=None, help="Override path of the detect summary CSV")
    p.add_argument("--reject-output", type=Path, default=None, help="Override path of the reject counts CSV")
    return p.parse_args(argv)


def _scan_dirs(root: Path) -> Iterable[Path]:
    if not root.exists():
        raise FileNotFoundError(f"directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"not a directory: {root}")
    yield root
    yield from (d for d in sorted(root.iterdir()) if d.is_dir() and SITE_DIR.fullmatch(d.name))


def discover_outputs(directories: Sequence[Path]) -> tuple[list[Path], list[Path]]:
    """Split scan outputs into (detect logs, reject logs) in one walk.

    A file is a detect log when its name contains "detect" and a reject log
    when it contains "reject"; our own summary files are skipped.
    """
    detects: list[Path] = []
    rejects: list[Path] = []
    seen: set[Path] = set()
    for root in directories:
        for d in _scan_dirs(root):
            for path in sorted(d.glob("*.csv")):
                if path in seen or path.name in SUMMARY_OUTPUTS:
                    continue
                seen.add(path)
                name = path.name.lower()
                if "detect" in name:
                    detects.append(path)
                elif "reject" in name:
                    rejects.append(path)
    return detects, rejects


def _require_columns(path: Path, columns: Iterable[str], required: Sequence[str]) -> None:
    available = set(columns)
    missing = [column for column in required if column not in available]
    if missing:
        joined = ", ".join(missing)
        raise ValueError(f"{path} missing required columns: {joined}")


def _load_frames(paths: Sequence[Path], required: Sequence[str]) -> pd.DataFrame:
    frames = []
    for path in paths:
        df = pd.read_csv(path, dtype={"Code": str}, keep_default_na=False, na_values={"TAC(ns)": [""]})
        _require_columns(path, df.columns, required)
        frames.append(df[list(required)])
    if not frames:
        return pd.DataFrame(columns=list(required))
    return pd.concat(frames, ignore_index=True)


def summarize_detects(paths: Sequence[Path]) -> pd.DataFrame:
    df = _load_frames(paths, DETECT_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["Stage", "Name", "count", "mean", "min", "max"])
    df["TAC(ns)"] = pd.to_numeric(df["TAC(ns)"])
    out = (
        df.groupby(["Stage", "Name"], sort=True)["TAC(ns)"]
        .agg(["count", "mean", "min", "max"])
        .reset_index()
    )
    out[["mean", "min", "max"]] = out[["mean", "min", "max"]].round(2)
    return out


def count_rejects(paths: Sequence[Path]) -> pd.DataFrame:
    df = _load_frames(paths, REJECT_COLUMNS)
    if df.empty:
        return pd.DataFrame(columns=["Kind", "Reason", "count"])
    out = df.groupby(["Kind", "Reason"]).size().reset_index(name="count")
    return out.sort_values(["count", "Kind", "Reason"], ascending=[False, True, True]).reset_index(drop=True)


def write_frame(path: Path, df: pd.DataFrame) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, lineterminator="\n", float_format="%.2f")


def _resolve_output_path(explicit: Path | None, base_dir: Path, default_name: str) -> Path:
    destination = explicit or base_dir / default_name
    destination.parent.mkdir(parents=True, exist_ok=True)
    return destination


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        detect_files, reject_files = discover_outputs(args.directories)
    except (FileNotFoundError, NotADirectoryError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    try:
        detects = summarize_detects(detect_files)
        rejects = count_rejects(reject_files)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    if not detect_files and not reject_files:
        print("warning: no detect/reject CSV files found", file=sys.stderr)

    base_dir = args.output_dir or Path.cwd()
    if args.output_dir:
        base_dir.mkdir(parents=True, exist_ok=True)

    detect_path = _resolve_output_path(args.detect_output, base_dir, DEFAULT_DETECT_SUMMARY_FILENAME)
    reject_path = _resolve_output_path(args.reject_output, base_dir, DEFAULT_REJECT_COUNTS_FILENAME)

    write_frame(detect_path, detects)
    write_frame(reject_path, rejects)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
