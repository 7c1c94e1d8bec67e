from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml


MIN_TCMDH_NS = 20.0
MIN_TADDH_NS = 30.0

DEFAULT_COMMANDS: Dict[str, str] = {
    "30": "Erase",
    "20": "Program",
    "10": "Read",
    "00": "Reset",
}
UNKNOWN_CMD = "Unknown"


@dataclass(frozen=True)
class AcThresholds:
    min_tcmdh_ns: float = MIN_TCMDH_NS
    min_taddh_ns: float = MIN_TADDH_NS
    commands: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_COMMANDS))

    @classmethod
    def from_cfg(cls, cfg: Dict[str, Any]) -> "AcThresholds":
        c = ensure_min_cfg(cfg)
        thr = c["thresholds"]
        return cls(
            min_tcmdh_ns=_threshold(thr, "min_tcmdh_ns"),
            min_taddh_ns=_threshold(thr, "min_taddh_ns"),
            commands=_normalize_commands(c["commands"]),
        )

    def cmd_name(self, code: str) -> str:
        return self.commands.get(str(code).upper(), UNKNOWN_CMD)


def _threshold(thr: Dict[str, Any], key: str) -> float:
    v = thr[key]
    if isinstance(v, bool):
        raise ValueError(f"thresholds.{key} must be a number, got {v!r}")
    try:
        return float(v)
    except (TypeError, ValueError):
        raise ValueError(f"thresholds.{key} must be a number, got {v!r}") from None


def _section(cfg: Dict[str, Any], key: str) -> Dict[Any, Any]:
    sec = cfg.get(key, {}) or {}
    if not isinstance(sec, dict):
        raise ValueError(f"config section {key!r} must be a mapping, got {type(sec).__name__}")
    return dict(sec)


def _normalize_commands(m: Dict[Any, Any]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for k, v in (m or {}).items():
        # unquoted opcodes come back as ints (00 -> 0); keep their digits
        key = f"{k:02d}" if isinstance(k, int) else str(k).strip().upper()
        out[key] = str(v)
    return out


def load_cfg(path: Optional[str]) -> Dict[str, Any]:
    """Load the YAML config at *path*.

    A missing file (or no path) gives an empty config, which
    ``ensure_min_cfg`` completes with defaults.
    """
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ValueError(f"invalid config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"config {path} must be a mapping, got {type(data).__name__}")
    return data


def ensure_min_cfg(cfg: Dict[str, Any]) -> Dict[str, Any]:
    c = dict(cfg or {})
    thr = _section(c, "thresholds")
    thr.setdefault("min_tcmdh_ns", MIN_TCMDH_NS)
    thr.setdefault("min_taddh_ns", MIN_TADDH_NS)
    c["thresholds"] = thr

    cmds = _section(c, "commands")
    if not cmds:
        cmds = dict(DEFAULT_COMMANDS)
    c["commands"] = cmds
    return c
