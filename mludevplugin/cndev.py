"""MLU device records and SR-IOV control through sysfs."""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path

log = logging.getLogger(__name__)

SYSFS_PCI_DEVICES = "/sys/bus/pci/devices"
_SETTLE_SECONDS = 1.0
_INTEGER = re.compile(r"[+-]?[0-9]+")


class CndevError(Exception):
    """Raised when a device query or configuration step fails."""


@dataclass(frozen=True)
class PCIe:
    domain: int
    bus: int
    device: int
    function: int


@dataclass
class Device:
    """One MLU card as seen by the plugin."""

    slot: int = 0
    uuid: str = ""
    sn: str = ""
    path: str = ""
    mother_board: str = ""
    pcie: PCIe | None = None
    sysfs_root: str = field(default=SYSFS_PCI_DEVICES, repr=False)

    def pcie_id(self) -> str:
        """Return the PCI address in domain:bus:device.function form."""
        if self.pcie is None:
            raise CndevError("device has no PCIe info")
        p = self.pcie
        return f"{p.domain:04x}:{p.bus:02x}:{p.device:02x}.{p.function:x}"

    def _sysfs_file(self, name: str) -> Path:
        return Path(self.sysfs_root) / self.pcie_id() / name

    def validate_sriov_num(self, num: int) -> None:
        """Check that num virtual functions fit what the card supports."""
        maximum = get_num_from_file(self._sysfs_file("sriov_totalvfs"))
        if num < 1 or num > maximum:
            raise CndevError(
                f"invalid sriov number {num}, maximum: {maximum}, minimum: 1"
            )

    def enable_sriov(self, num: int) -> None:
        """Configure the card to expose num virtual functions."""
        self.validate_sriov_num(num)
        pcie_id = self.pcie_id()
        current = get_num_from_file(self._sysfs_file("sriov_numvfs"))
        if current == num:
            log.info("sriov already enabled, pass")
            return
        if current != 0:
            try:
                set_sriov_num(pcie_id, 0, self.sysfs_root)
            except (CndevError, OSError) as exc:
                raise CndevError(
                    f"failed to set sriov num to 0, pcie: {pcie_id} now: {current}"
                ) from exc
        set_sriov_num(pcie_id, num, self.sysfs_root)


def get_num_from_file(path) -> int:
    """Read an integer from a file, ignoring surrounding newlines."""
    text = Path(path).read_text().strip("\n")
    if not _INTEGER.fullmatch(text):
        raise CndevError(f"invalid number {text!r} in {path}")
    return int(text)


def set_sriov_num(pcie_id: str, num: int, sysfs_root: str = SYSFS_PCI_DEVICES) -> None:
    """Write the number of virtual functions and check that it took effect."""
    path = Path(sysfs_root) / pcie_id / "sriov_numvfs"
    try:
        path.write_text(f"{num}\n")
    except OSError as exc:
        raise CndevError(f"echo {num} to file {path}, err: {exc}") from exc
    time.sleep(_SETTLE_SECONDS)
    try:
        got = get_num_from_file(path)
    except (CndevError, OSError) as exc:
        raise CndevError(
            f"the number of VFs is not expected. got: 0, err: {exc}, expected: {num}"
        ) from exc
    if got != num:
        raise CndevError(
            f"the number of VFs is not expected. got: {got}, err: None, expected: {num}"
        )