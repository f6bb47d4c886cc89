"""Host device detection, virtual device generation and health watching."""

from __future__ import annotations

import glob
import logging
import os
import threading
from dataclasses import dataclass, fields
from typing import Callable, Iterable, Iterator

from .cndev import Device
from .constants import (
    HEALTHY,
    MLU_CMSG_DEVICE_NAME,
    MLU_COMMU_DEVICE_NAME,
    MLU_IPCM_DEVICE_NAME,
    MLU_MONITOR_DEVICE_NAME,
    MLU_MSGQ_DEVICE_NAME,
    MLU_RPC_DEVICE_NAME,
    MLU_SPLIT_DEVICE_NAME,
    MLU_UART_CONSOLE_DEVICE_NAME,
    UNHEALTHY,
)

log = logging.getLogger(__name__)


@dataclass
class PluginDevice:
    """A device as advertised to the kubelet."""

    id: str
    health: str = HEALTHY


def host_device_exists_with_prefix(prefix: str) -> bool:
    """Return True if any path on the host starts with prefix."""
    try:
        return bool(glob.glob(glob.escape(prefix) + "*"))
    except OSError as exc:
        log.warning("failed to know if host device with prefix exists, err: %s", exc)
        return False


_PREFIXES = {
    "has_ctrl_dev": MLU_MONITOR_DEVICE_NAME,
    "has_msgq_dev": MLU_MSGQ_DEVICE_NAME,
    "has_rpc_dev": MLU_RPC_DEVICE_NAME,
    "has_cmsg_dev": MLU_CMSG_DEVICE_NAME,
    "has_ipcm_dev": MLU_IPCM_DEVICE_NAME,
    "has_commu_dev": MLU_COMMU_DEVICE_NAME,
    "has_uart_console_dev": MLU_UART_CONSOLE_DEVICE_NAME,
    "has_split_dev": MLU_SPLIT_DEVICE_NAME,
}


@dataclass
class DeviceList:
    """Which auxiliary MLU device nodes exist on the host."""

    has_ctrl_dev: bool = False
    has_msgq_dev: bool = False
    has_rpc_dev: bool = False
    has_cmsg_dev: bool = False
    has_ipcm_dev: bool = False
    has_commu_dev: bool = False
    has_uart_console_dev: bool = False
    has_split_dev: bool = False

    @classmethod
    def detect(cls, root: str = "/") -> "DeviceList":
        """Probe the device nodes below root."""
        values = {}
        for f in fields(cls):
            name = _PREFIXES[f.name]
            values[f.name] = host_device_exists_with_prefix(
                os.path.join(str(root), name.lstrip("/"))
            )
        return cls(**values)


def generate_fake_devs(origin: Device, num: int, sriov_enabled: bool):
    """Split one card into num virtual devices; returns (devices, info by uuid)."""
    devs: list[PluginDevice] = []
    infos: dict[str, Device] = {}
    for i in range(1, num + 1):
        if sriov_enabled:
            path = f"{origin.path}vf{i}"
            uuid = f"{origin.uuid}--fake--{i}"
        else:
            path = origin.path
            uuid = f"{origin.uuid}-_-{i}"
        infos[uuid] = Device(slot=origin.slot, uuid=uuid, path=path)
        devs.append(PluginDevice(id=uuid, health=HEALTHY))
    return devs, infos


def device_exists(devs: Iterable[PluginDevice], device_id: str) -> bool:
    """Return True if a device with device_id is among devs."""
    return any(d.id == device_id for d in devs)


def watch_unhealthy(
    devices: Iterable[Device],
    health_state: Callable[[Device], int],
    stop: threading.Event | None = None,
    interval: float = 1.0,
) -> Iterator[PluginDevice]:
    """Poll device health and yield a PluginDevice for every state report.

    A device whose health query fails or returns 0 is reported unhealthy;
    a device previously reported unhealthy is reported healthy on the next pass.
    """
    stop = stop if stop is not None else threading.Event()
    devices = list(devices)
    unhealthy: set[str] = set()
    while not stop.is_set():
        for dev in devices:
            try:
                state = health_state(dev)
            except Exception as exc:  # any failure counts as unhealthy
                log.warning("Failed to get Device %s healthy status, set it as unhealthy: %s",
                            dev.uuid, exc)
                state = 0
            if state == 0 and dev.uuid not in unhealthy:
                unhealthy.add(dev.uuid)
                yield PluginDevice(id=dev.uuid, health=UNHEALTHY)
            elif dev.uuid in unhealthy:
                unhealthy.discard(dev.uuid)
                yield PluginDevice(id=dev.uuid, health=HEALTHY)
        if stop.wait(interval):
            return