from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import List, Tuple


ADDRS_PER_CMD = 6

KIND_COMMAND = "Command"
KIND_ADDRESS = "Address"

_PIN_FIELDS = ("n_ce0", "ale", "cle", "n_we", "n_re", "rnb", "n_wp", "dqs")
_HEX_BYTE = re.compile(r"[0-9A-Fa-f]{1,2}")


@dataclass(frozen=True)
class Sample:
    time_ns: int
    io: str
    n_ce0: int
    ale: int
    cle: int
    n_we: int
    n_re: int
    rnb: int
    n_wp: int
    dqs: int

    def __post_init__(self) -> None:
        for name in _PIN_FIELDS:
            v = getattr(self, name)
            if v not in (0, 1):
                raise ValueError(f"pin {name} must be 0 or 1, got {v!r}")
        if not isinstance(self.io, str) or not _HEX_BYTE.fullmatch(self.io):
            raise ValueError(f"IO is not a hex byte: {self.io!r}")

    @property
    def code(self) -> str:
        return str(self.io).upper()


@dataclass(frozen=True)
class ValidCmdRow:
    time: int
    cmd: str  # Erase/Program/Read/Reset/Unknown
    addrs: Tuple[str, ...]

    def __post_init__(self) -> None:
        if len(self.addrs) != ADDRS_PER_CMD:
            raise ValueError(f"complete command needs {ADDRS_PER_CMD} addresses, got {len(self.addrs)}")

    @property
    def add1(self) -> str:
        return self.addrs[0]

    @property
    def add2(self) -> str:
        return self.addrs[1]

    @property
    def add3(self) -> str:
        return self.addrs[2]

    @property
    def add4(self) -> str:
        return self.addrs[3]

    @property
    def add5(self) -> str:
        return self.addrs[4]

    @property
    def add6(self) -> str:
        return self.addrs[5]


@dataclass(frozen=True)
class CmdAddrReject:
    time: int  # WE rising time (parent command time for chain-level rejects)
    kind: str  # Command | Address
    reason: str
    code: str = ""
    tac_ns: float = math.nan  # NaN when no hold time applies
    parent_cmd_time: int = 0  # Address rejects only
    parent_cmd_name: str = ""


@dataclass(frozen=True)
class AcDetectLog:
    time: int
    stage: str  # Command | Address
    name: str  # command name, or "Address"
    code: str
    tac_ns: float
    parent_cmd_time: int = 0
    parent_cmd_name: str = ""


@dataclass(frozen=True)
class AcStats:
    avg: float = math.nan
    min: float = math.nan
    max: float = math.nan
    std: float = math.nan

    def is_defined(self) -> bool:
        return not math.isnan(self.avg)


@dataclass
class AnalysisResult:
    complete: List[ValidCmdRow] = field(default_factory=list)
    rejects: List[CmdAddrReject] = field(default_factory=list)
    tcmdh_all: List[float] = field(default_factory=list)
    taddh_all: List[float] = field(default_factory=list)
    detects: List[AcDetectLog] = field(default_factory=list)
