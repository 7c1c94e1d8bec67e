from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

import acscan
from acconfig import AcThresholds, ensure_min_cfg, load_cfg
from sampleio import (
    read_samples,
    write_ac_detect_log,
    write_ac_stats,
    write_cmd_addr_rejects,
    write_complete_cmds,
)


EXIT_OK = 0
EXIT_RUNTIME = 1
EXIT_USAGE = 2  # argparse exits with 2 on bad arguments
EXIT_NO_INPUT = 3


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Decode NAND command/address chains and tCMDH/tADDH from a trace CSV")
    p.add_argument("input_csv", help="Logic analyzer trace (Time(ns),IO,nCE0,ALE,CLE,nWE,nRE,RnB,nWP,DQS)")
    p.add_argument("out_complete_csv", help="Complete commands (CMD + 6 addresses)")
    p.add_argument("out_reject_csv", help="Command/address rejects")
    p.add_argument("out_stats_csv", help="tCMDH/tADDH statistics")
    p.add_argument("out_detect_log_csv", help="All pin-detected command/address windows")
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (thresholds, opcode names)")
    p.add_argument("--debug-log", default=None, help="Write per-window decisions to this file")
    return p


def run(args: argparse.Namespace) -> List[str]:
    cfg = ensure_min_cfg(load_cfg(args.config))
    thr = AcThresholds.from_cfg(cfg)
    if args.debug_log:
        acscan.enable_file_log(args.debug_log)

    samples = read_samples(args.input_csv)
    res = acscan.analyze(samples, thr)

    paths = [
        # 1) complete commands
        write_complete_cmds(args.out_complete_csv, res.complete),
        # 2) command/address rejects
        write_cmd_addr_rejects(args.out_reject_csv, res.rejects),
        # 3) stats over all pin-detected holds, short ones included
        write_ac_stats(args.out_stats_csv, acscan.stats(res.tcmdh_all), acscan.stats(res.taddh_all)),
        # 4) detect log
        write_ac_detect_log(args.out_detect_log_csv, res.detects),
    ]

    print(f"Complete commands : {len(res.complete)}")
    print(f"Cmd/Addr rejects  : {len(res.rejects)}")
    print(f"tCMDH samples     : {len(res.tcmdh_all)}")
    print(f"tADDH samples     : {len(res.taddh_all)}")
    print(f"AC detects        : {len(res.detects)}")
    return paths


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if not os.path.isfile(args.input_csv):
        print(f"Input not found: {args.input_csv}")
        return EXIT_NO_INPUT

    try:
        paths = run(args)
    except Exception as exc:
        print(f"ERROR: {exc}")
        return EXIT_RUNTIME
    finally:
        acscan.disable_file_log()

    print("Done.")
    for pth in paths:
        print("  ->", pth)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
