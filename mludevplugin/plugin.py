"""Device plugin core: allocation responses, device lookups and health updates."""

from __future__ import annotations

import logging
import posixpath
import re
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Sequence

from .allocator import AllocationError, Allocator
from .cndev import Device
from .constants import (
    MLU_CMSG_DEVICE_NAME,
    MLU_COMMU_DEVICE_NAME,
    MLU_DEVICE_NAME,
    MLU_IPCM_DEVICE_NAME,
    MLU_MEM_RESOURCE_NAME,
    MLU_MONITOR_DEVICE_NAME,
    MLU_MSGQ_DEVICE_NAME,
    MLU_RESOURCE_COUNT,
    MLU_RPC_DEVICE_NAME,
    MLU_RPMSG_DIR,
    MLU_SHARE,
    MLU_SPLIT_DEVICE_NAME,
    MLU_UART_CONSOLE_DEVICE_NAME,
    SRIOV,
    TOPOLOGY_AWARE,
)
from .devices import DeviceList, PluginDevice
from .options import Options

log = logging.getLogger(__name__)

_DEVICE_INDEX = re.compile(re.escape(MLU_DEVICE_NAME) + r"([+-]?[0-9]+)")


@dataclass
class Mount:
    """A host path mounted into the container."""

    container_path: str
    host_path: str
    read_only: bool = False


@dataclass
class DeviceSpec:
    """A host device node exposed to the container."""

    container_path: str
    host_path: str
    permissions: str = "rw"


@dataclass
class ContainerAllocateResponse:
    """What one container receives from an allocation."""

    envs: dict[str, str] = field(default_factory=dict)
    mounts: list[Mount] = field(default_factory=list)
    devices: list[DeviceSpec] = field(default_factory=list)

    def add_device(self, host_path: str, container_path: str) -> DeviceSpec:
        """Expose host_path inside the container as container_path, read-write."""
        spec = DeviceSpec(container_path=container_path, host_path=host_path)
        self.devices.append(spec)
        return spec


def resource_name(model: str, enable_device_type: bool, mode: str) -> str:
    """Return the resource name the plugin registers with the kubelet."""
    name = MLU_RESOURCE_COUNT
    if enable_device_type:
        if not model:
            raise ValueError("device type enabled, but got empty device model from cndev")
        lowered = model.lower()
        if lowered == "mlu270-x5k":
            name = "cambricon.com/" + lowered
        else:
            name = "cambricon.com/" + lowered.split("-")[0]
    if mode == MLU_SHARE:
        name = MLU_MEM_RESOURCE_NAME
    return name


def unsatisfied_annotation(size: int, policy: str, timestamp: int | None = None) -> str:
    """Return the node annotation value recording an unsatisfied link policy."""
    if timestamp is None:
        timestamp = int(time.time())
    return f"{size}-{policy}-{timestamp}"


@dataclass
class PluginCore:
    """State and request handling of the device plugin, free of any transport."""

    options: Options
    devs: list[PluginDevice] = field(default_factory=list)
    devs_info: dict[str, Device] = field(default_factory=dict)
    device_list: DeviceList = field(default_factory=DeviceList)
    allocator: Allocator | None = None
    on_unsatisfied: Callable[[int], None] | None = None

    def __post_init__(self) -> None:
        cnmon = self.options.cnmon_path
        if cnmon and not posixpath.isabs(cnmon):
            raise ValueError(f"invalid cnmon path: {cnmon}")

    def plugin_options(self) -> dict[str, bool]:
        """Return the options advertised to the kubelet."""
        return {"get_preferred_allocation_available": self.options.mode == TOPOLOGY_AWARE}

    def uuid_to_path(self, uuids: Iterable[str]) -> list[str]:
        """Map device uuids to their device node paths."""
        return [self.devs_info[uuid].path for uuid in uuids]

    def prepare_response(self, uuids: Sequence[str]) -> ContainerAllocateResponse:
        """Build the mounts and device nodes for a container given device uuids."""
        resp = ContainerAllocateResponse()
        resp.mounts.append(Mount(container_path=MLU_RPMSG_DIR, host_path=MLU_RPMSG_DIR))
        if self.options.cnmon_path:
            resp.mounts.append(
                Mount(
                    container_path=self.options.cnmon_path,
                    host_path=self.options.cnmon_path,
                    read_only=True,
                )
            )
        if self.device_list.has_split_dev:
            resp.add_device(MLU_SPLIT_DEVICE_NAME, MLU_SPLIT_DEVICE_NAME)

        paths = self.uuid_to_path(uuids)

        if self.device_list.has_ctrl_dev:
            resp.add_device(MLU_MONITOR_DEVICE_NAME, MLU_MONITOR_DEVICE_NAME)

        for position, devpath in enumerate(paths):
            if self.options.mode == SRIOV:
                vfid = devpath.split(MLU_DEVICE_NAME)[1]
                if self.device_list.has_commu_dev:
                    resp.add_device(MLU_COMMU_DEVICE_NAME + vfid,
                                    f"{MLU_COMMU_DEVICE_NAME}{position}")
                resp.add_device(devpath, f"{MLU_DEVICE_NAME}{position}")
                continue

            match = _DEVICE_INDEX.match(devpath)
            if match is None:
                log.warning("Failed to get device index for device path %s", devpath)
                continue
            index = int(match.group(1))
            dl = self.device_list
            if dl.has_msgq_dev:
                resp.add_device(f"{MLU_MSGQ_DEVICE_NAME}:{index}",
                                f"{MLU_MSGQ_DEVICE_NAME}:{position}")
            if dl.has_rpc_dev:
                resp.add_device(f"{MLU_RPC_DEVICE_NAME}:{index}",
                                f"{MLU_RPC_DEVICE_NAME}:{position}")
            if dl.has_cmsg_dev:
                resp.add_device(f"{MLU_CMSG_DEVICE_NAME}{index}",
                                f"{MLU_CMSG_DEVICE_NAME}{position}")
            if dl.has_commu_dev:
                resp.add_device(f"{MLU_COMMU_DEVICE_NAME}{index}",
                                f"{MLU_COMMU_DEVICE_NAME}{position}")
            if dl.has_ipcm_dev:
                resp.add_device(f"{MLU_IPCM_DEVICE_NAME}{index}",
                                f"{MLU_IPCM_DEVICE_NAME}{position}")
            if dl.has_uart_console_dev and self.options.enable_console:
                resp.add_device(f"{MLU_UART_CONSOLE_DEVICE_NAME}{index}",
                                f"{MLU_UART_CONSOLE_DEVICE_NAME}{position}")
            resp.add_device(devpath, f"{MLU_DEVICE_NAME}{position}")
        return resp

    def get_device_uuid_by_index(self, index: int) -> str | None:
        """Return the uuid of a device in the given slot, or None."""
        return next((uuid for uuid, info in self.devs_info.items() if info.slot == index), None)

    def get_device_index_by_uuid(self, uuid: str) -> int | None:
        """Return the slot of the device with this uuid, or None."""
        info = self.devs_info.get(uuid)
        return None if info is None else info.slot

    def get_slots(self, ids: Iterable[str]) -> list[int]:
        """Map device uuids to their slots."""
        return [self.devs_info[i].slot for i in ids]

    def get_preferred_allocated_device_uuids(
        self, available: Sequence[int], required: Sequence[int] | None, size: int
    ) -> list[str]:
        """Ask the allocator for the best slots and return their uuids."""
        if required:
            log.info("required device slice not empty, ignore it. %s", list(required))
        if self.allocator is None:
            raise AllocationError("no allocator configured")
        log.info("available devs: %s, size %d", list(available), size)
        try:
            slots = self.allocator.allocate(available, required, size)
        except AllocationError:
            if self.on_unsatisfied is not None:
                try:
                    self.on_unsatisfied(size)
                except Exception as exc:
                    log.error("updateNodeMLULinkAnnotation err: %s", exc)
            raise
        log.info("preferred devices %s", slots)
        uuids = []
        for slot in slots:
            uuid = self.get_device_uuid_by_index(slot)
            if uuid is None:
                raise AllocationError(f"uuid not found for dev {slot}")
            uuids.append(uuid)
        return uuids

    def update_health(self, device: PluginDevice) -> list[PluginDevice]:
        """Record a health change and return the device list to advertise."""
        for dev in self.devs:
            if dev.id == device.id:
                dev.health = device.health
                break
        return list(self.devs)