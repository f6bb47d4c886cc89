"""Ring discovery through the cntopo command-line tool."""

from __future__ import annotations

import json
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable


@dataclass
class Ring:
    """A set of devices forming an MLU-Link ring."""

    ordinals: list[int] = field(default_factory=list)
    non_conflict_ring_num: int = 0


def build_input(available: Iterable[int], size: int) -> dict:
    """Return the request document cntopo expects."""
    return {
        "host_list": [
            {"num_devices": size, "white_dev_list": list(available)},
        ]
    }


def parse_output(data) -> list[Ring]:
    """Turn cntopo's JSON output into rings."""
    entries = json.loads(data) or []
    rings = []
    for entry in entries:
        info = entry.get("info_by_host") or {}
        conflicts = entry.get("nonconflict_rings") or {}
        rings.append(
            Ring(
                ordinals=list(info.get("ordinal_list") or []),
                non_conflict_ring_num=int(conflicts.get("nonconflict_rings_num", 0)),
            )
        )
    return rings


class Cntopo:
    """Runs cntopo to find rings among the available devices."""

    def __init__(self, executable: str = "cntopo", workdir: str = "/tmp"):
        self.executable = executable
        self.input_path = Path(workdir) / "cntopo_input.json"
        self.output_path = Path(workdir) / "cntopo_output.json"
        self._lock = threading.Lock()

    def get_rings(self, available: Iterable[int], size: int) -> list[Ring]:
        payload = json.dumps(build_input(available, size))
        with self._lock:
            self.input_path.write_text(payload)
            subprocess.run(
                [
                    self.executable, "find",
                    "-I", str(self.input_path),
                    "-O", str(self.output_path),
                    "-R", "1000000",
                    "-C",
                ],
                check=True,
            )
            return parse_output(self.output_path.read_text())