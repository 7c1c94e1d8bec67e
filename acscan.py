from __future__ import annotations

"""AC timing scan over a captured NAND bus trace.

Single forward pass over the samples:
- Command window: RnB==0 and CLE==1 across the nWE-high window.
- Address window: RnB==0 and ALE==1 across the nWE-high window.
- CLE==1 and ALE==1 together is ambiguous and rejected.
- tCMDH/tADDH are recorded (sinks + detect log) as soon as the pin window is
  valid; thresholds only decide acceptance of the command/address chain.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence

import numpy as np

from acconfig import AcThresholds
from models import (
    ADDRS_PER_CMD,
    KIND_ADDRESS,
    KIND_COMMAND,
    AcDetectLog,
    AcStats,
    AnalysisResult,
    CmdAddrReject,
    Sample,
    ValidCmdRow,
)


# Reject reasons
AMBIGUOUS = "AmbiguousCLE_ALE"
CMD_GATING_RNB_HIGH = "CommandGating_RnBHigh"
TCMDH_SHORT = "tCMDHShort"
TADDH_SHORT = "tADDHShort"
ADDR_GATING_FAILED = "AddressGatingFailed"
NEXT_CMD_BEFORE_6_ADDR = "NextCommandBefore6Addr"
NON_ADDRESS_WINDOW = "NonAddressWindow"

PinPred = Callable[[Sample], bool]


# ------------------------------
# Debug file log
# ------------------------------
_LOG_PATH: Optional[str] = None


def enable_file_log(path: str) -> None:
    """Write window decisions to *path* (truncated, header line first)."""
    global _LOG_PATH
    with open(path, "w", encoding="utf-8") as f:
        f.write("# acscan debug log\n")
    _LOG_PATH = str(path)


def disable_file_log() -> None:
    global _LOG_PATH
    _LOG_PATH = None


def _log(msg: str) -> None:
    if not _LOG_PATH:
        return
    with open(_LOG_PATH, "a", encoding="utf-8") as f:
        f.write(f"[acscan] {msg}\n")


# ------------------------------
# Helpers
# ------------------------------
def round2(v: float) -> float:
    """Round to 2 decimals, halves away from zero (scaled binary value)."""
    if math.isnan(v):
        return v
    scaled = abs(float(v)) * 100.0
    return math.copysign(math.trunc(scaled + 0.49999999999999994) / 100.0, v)


def next_rising_edge(s: Sequence[Sample], from_idx: int) -> Optional[int]:
    """Smallest i > from_idx with nWE[i-1]==0 and nWE[i]==1."""
    for i in range(max(from_idx + 1, 1), len(s)):
        if s[i - 1].n_we == 0 and s[i].n_we == 1:
            return i
    return None


def next_falling_edge(s: Sequence[Sample], from_idx: int) -> Optional[int]:
    for i in range(max(from_idx + 1, 1), len(s)):
        if s[i - 1].n_we == 1 and s[i].n_we == 0:
            return i
    return None


def window_all(s: Sequence[Sample], start: int, end: int, pred: PinPred) -> bool:
    for i in range(start, end):
        if not pred(s[i]):
            return False
    return True


def measure_hold_ns(s: Sequence[Sample], rise: int, pin_is_high: PinPred) -> float:
    """Time from the nWE rising sample until the pin first drops.

    If the pin never drops the hold runs to the last sample.
    """
    t0 = s[rise].time_ns
    for i in range(rise, len(s)):
        if not pin_is_high(s[i]):
            return float(s[i].time_ns - t0)
    return float(s[-1].time_ns - t0)


def _cle_high(x: Sample) -> bool:
    return x.cle == 1


def _ale_high(x: Sample) -> bool:
    return x.ale == 1


def _rnb_low(x: Sample) -> bool:
    return x.rnb == 0


# ------------------------------
# Window classification
# ------------------------------
@dataclass(frozen=True)
class Window:
    rise: int
    fall: Optional[int]
    end: int
    busy_held: bool
    cmd_held: bool
    addr_held: bool

    @property
    def ambiguous(self) -> bool:
        return self.busy_held and self.cmd_held and self.addr_held

    @property
    def is_command(self) -> bool:
        return self.busy_held and self.cmd_held

    @property
    def is_address(self) -> bool:
        return self.busy_held and self.addr_held

    @property
    def resume_at(self) -> int:
        return self.fall + 1 if self.fall is not None else self.rise + 1


def classify_window(s: Sequence[Sample], rise: int) -> Window:
    fall = next_falling_edge(s, rise)
    end = fall if fall is not None else len(s)
    return Window(
        rise=rise,
        fall=fall,
        end=end,
        busy_held=window_all(s, rise, end, _rnb_low),
        cmd_held=window_all(s, rise, end, _cle_high),
        addr_held=window_all(s, rise, end, _ale_high),
    )


# Top-level window kinds
WK_AMBIGUOUS = "ambiguous"
WK_COMMAND = "command"
WK_GATING_RNB_HIGH = "gating_rnb_high"


def top_level_kind(w: Window) -> Optional[str]:
    """First match wins; None means the window is ignored at top level."""
    if w.ambiguous:
        return WK_AMBIGUOUS
    if w.is_command:
        return WK_COMMAND
    if w.cmd_held and not w.busy_held:
        return WK_GATING_RNB_HIGH
    return None


# ------------------------------
# Address chain
# ------------------------------
@dataclass
class ChainOutcome:
    ok: bool
    addrs: List[str] = field(default_factory=list)
    detects: List[AcDetectLog] = field(default_factory=list)
    cmd_reject: Optional[CmdAddrReject] = None


def _addr_reject(s: Sequence[Sample], rise: int, reason: str, parent_time: int, parent_name: str,
                 tac_ns: float = math.nan) -> CmdAddrReject:
    return CmdAddrReject(
        time=s[rise].time_ns, kind=KIND_ADDRESS, reason=reason, code=s[rise].code,
        tac_ns=tac_ns, parent_cmd_time=parent_time, parent_cmd_name=parent_name,
    )


def _chain_reject(reason: str, parent_time: int, parent_name: str) -> CmdAddrReject:
    # chain-level rejects never carry ParentCmdTime
    return CmdAddrReject(
        time=parent_time, kind=KIND_COMMAND, reason=reason, code="",
        tac_ns=math.nan, parent_cmd_time=0, parent_cmd_name=parent_name,
    )


def collect_addresses(
    s: Sequence[Sample],
    start_idx: int,
    parent_time: int,
    parent_name: str,
    thresholds: AcThresholds,
    taddh_sink: List[float],
    reject_sink: List[CmdAddrReject],
) -> ChainOutcome:
    """Collect the six address windows that follow a command.

    Address-level rejects go straight to *reject_sink*; a command-level
    reject explaining the failed chain is returned in ``cmd_reject`` so the
    caller can append it after the chain's detect entries.
    """
    out = ChainOutcome(ok=False)
    i = max(1, start_idx)
    n = len(s)

    while len(out.addrs) < ADDRS_PER_CMD and i < n:
        rise = next_rising_edge(s, i - 1)
        if rise is None:
            break
        w = classify_window(s, rise)

        if w.is_command:
            _log(f"chain {parent_name}@{parent_time}: next command at {s[rise].time_ns} after {len(out.addrs)} addr")
            out.cmd_reject = _chain_reject(NEXT_CMD_BEFORE_6_ADDR, parent_time, parent_name)
            return out

        if w.ambiguous:
            reject_sink.append(_addr_reject(s, rise, AMBIGUOUS, parent_time, parent_name))
            return out

        if not w.is_address:
            _log(f"chain {parent_name}@{parent_time}: address gating failed at {s[rise].time_ns}")
            reject_sink.append(_addr_reject(s, rise, ADDR_GATING_FAILED, parent_time, parent_name))
            return out

        # record first, then gate
        hold = round2(measure_hold_ns(s, rise, _ale_high))
        taddh_sink.append(hold)
        code = s[rise].code
        out.detects.append(AcDetectLog(
            time=s[rise].time_ns, stage=KIND_ADDRESS, name="Address", code=code,
            tac_ns=hold, parent_cmd_time=parent_time, parent_cmd_name=parent_name,
        ))

        if hold < thresholds.min_taddh_ns:
            _log(f"chain {parent_name}@{parent_time}: tADDH {hold:.2f} < {thresholds.min_taddh_ns:.2f} at {s[rise].time_ns}")
            reject_sink.append(_addr_reject(s, rise, TADDH_SHORT, parent_time, parent_name, tac_ns=hold))
            return out

        out.addrs.append(code)
        i = w.resume_at

    if len(out.addrs) != ADDRS_PER_CMD:
        _log(f"chain {parent_name}@{parent_time}: stream ended after {len(out.addrs)} addr")
        out.cmd_reject = _chain_reject(NON_ADDRESS_WINDOW, parent_time, parent_name)
        return out

    out.ok = True
    return out


# ------------------------------
# Outer scan
# ------------------------------
def _top_reject(s: Sequence[Sample], rise: int, reason: str) -> CmdAddrReject:
    return CmdAddrReject(time=s[rise].time_ns, kind=KIND_COMMAND, reason=reason, code=s[rise].code)


def analyze(samples: Sequence[Sample], thresholds: Optional[AcThresholds] = None) -> AnalysisResult:
    """Run the command/address scan and return all four output streams."""
    thr = thresholds or AcThresholds()
    s = list(samples)
    res = AnalysisResult()

    rise = next_rising_edge(s, 0)
    while rise is not None:
        w = classify_window(s, rise)
        kind = top_level_kind(w)

        if kind == WK_AMBIGUOUS:
            _log(f"ambiguous CLE/ALE window at {s[rise].time_ns}")
            res.rejects.append(_top_reject(s, rise, AMBIGUOUS))
        elif kind == WK_GATING_RNB_HIGH:
            _log(f"command gating failed (RnB high) at {s[rise].time_ns}")
            res.rejects.append(_top_reject(s, rise, CMD_GATING_RNB_HIGH))
        elif kind == WK_COMMAND:
            _scan_command(s, w, thr, res)

        # next rise after this one, even if a chain consumed later windows
        rise = next_rising_edge(s, rise)

    return res


def _scan_command(s: Sequence[Sample], w: Window, thr: AcThresholds, res: AnalysisResult) -> None:
    rise = w.rise
    tcmdh = round2(measure_hold_ns(s, rise, _cle_high))
    res.tcmdh_all.append(tcmdh)
    cmd_hex = s[rise].code
    cmd_name = thr.cmd_name(cmd_hex)
    cmd_time = s[rise].time_ns
    res.detects.append(AcDetectLog(time=cmd_time, stage=KIND_COMMAND, name=cmd_name, code=cmd_hex, tac_ns=tcmdh))

    if tcmdh < thr.min_tcmdh_ns:
        _log(f"{cmd_name}@{cmd_time}: tCMDH {tcmdh:.2f} < {thr.min_tcmdh_ns:.2f}")
        res.rejects.append(CmdAddrReject(
            time=cmd_time, kind=KIND_COMMAND, reason=TCMDH_SHORT, code=cmd_hex, tac_ns=tcmdh,
        ))
        return

    chain = collect_addresses(s, w.resume_at, cmd_time, cmd_name, thr, res.taddh_all, res.rejects)
    res.detects.extend(chain.detects)
    if not chain.ok:
        if chain.cmd_reject is not None:
            res.rejects.append(chain.cmd_reject)
        return

    _log(f"{cmd_name}@{cmd_time}: complete {','.join(chain.addrs)}")
    res.complete.append(ValidCmdRow(time=cmd_time, cmd=cmd_name, addrs=tuple(chain.addrs)))


# ------------------------------
# Statistics
# ------------------------------
def stats(rounded_values: Iterable[float]) -> AcStats:
    """Mean/min/max/population std of already-rounded holds, each rounded."""
    arr = np.asarray(list(rounded_values), dtype=float)
    if arr.size == 0:
        return AcStats()
    return AcStats(
        avg=round2(float(arr.mean())),
        min=round2(float(arr.min())),
        max=round2(float(arr.max())),
        std=round2(float(arr.std(ddof=0))),
    )
