# mludevplugin

Building blocks for a Kubernetes device plugin that exposes Cambricon MLU
accelerators to containers. The package holds the logic of such a plugin:
device records, SR-IOV setup, ring-aware allocation, pod and node helpers,
option parsing and the construction of allocation responses.

## Modules

- `mludevplugin.constants`: device node paths, resource and annotation
  names, the plugin modes (`MODES`: `default`, `sriov`, `env-share`,
  `topology-aware`, `mlu-share`) and link policies (`POLICIES`:
  `best-effort`, `restricted`, `guaranteed`).
- `mludevplugin.cndev`: the `Device` and `PCIe` records.
  `Device.pcie_id()` formats the address as `dddd:bb:dd.f`.
  `Device.validate_sriov_num(num)` and `Device.enable_sriov(num)` read and
  write `sriov_totalvfs` / `sriov_numvfs` below the device's `sysfs_root`
  (by default `/sys/bus/pci/devices`). `get_num_from_file(path)` and
  `set_sriov_num(pcie_id, num, sysfs_root)` are the file helpers. Failures
  raise `CndevError`.
- `mludevplugin.cntopo`: `Cntopo(executable="cntopo", workdir="/tmp")` runs
  `cntopo find` on a JSON request and returns `Ring` objects from
  `get_rings(available, size)`. `build_input` and `parse_output` convert to
  and from the tool's JSON format.
- `mludevplugin.allocator`: `DefaultAllocator`, `BoardAllocator` and
  `SpiderAllocator` implement `allocate(available, required, size)`. They
  prefer the rings with the most non-conflicting paths, keep allocations on
  one CPU group, board or mother board where possible, and honour the link
  policy. `new_allocator(model, policy, devs, topo, groups)` picks the
  allocator for a card model. `contains_all`, `split_by_boards` and
  `split_by_mother_boards` are the grouping helpers. An unsatisfiable
  request raises `AllocationError`. The ring finder is any object with a
  `get_rings(available, size)` method, so a stub can stand in for `Cntopo`.
- `mludevplugin.podutils`: works on pods and nodes as plain dictionaries
  decoded from Kubernetes JSON. `requests_mlu_memory`,
  `is_mlu_memory_assumed_pod`, `get_assume_time`,
  `get_index_from_annotation`, `pod_container_count_with_mlu`,
  `unique_pods` and `candidate_pods` (assumed pods, oldest first);
  `release_node_lock(node)` returns an updated copy of the node or `None`
  if it is not locked, and `mlu_count_patch(count)` returns the merge patch
  bytes that record the MLU count.
- `mludevplugin.options`: `parse_flags(argv=None, environ=None)` returns an
  `Options` value. It accepts `--mode`, `--mlulink-policy`,
  `--virtualization-num` (default from `VIRTUALIZATION_NUM`),
  `--disable-health-check` (also set by `DP_DISABLE_HEALTHCHECKS=all`),
  `--node-name` (default from `NODE_NAME`), `--enable-console`,
  `--enable-device-type`, `--cnmon-path` and `--socket-path`; a leading
  `-mode` is read as `--mode`. It exits with status 0 on `--help` and 1 on
  invalid input.
- `mludevplugin.devices`: `PluginDevice` (id and health),
  `DeviceList.detect(root="/")` to see which auxiliary device nodes exist,
  `host_device_exists_with_prefix`, `generate_fake_devs` for shared or
  SR-IOV virtual devices, `device_exists`, and `watch_unhealthy`, a
  generator that polls a health callback and yields a `PluginDevice` for
  every unhealthy or recovered device until its stop event is set.
- `mludevplugin.plugin`: `PluginCore` builds `ContainerAllocateResponse`
  values with `DeviceSpec` and `Mount` entries (`prepare_response`), maps
  uuids to paths and slots and back, answers preferred-allocation queries
  through its allocator (calling `on_unsatisfied(size)` when allocation
  fails), and records health changes (`update_health`). `resource_name`
  and `unsatisfied_annotation` produce the resource name and node
  annotation value.

## Example

```python
from mludevplugin.allocator import contains_all
from mludevplugin.plugin import resource_name

print(contains_all([0, 1, 2, 3, 4, 5, 6, 7], [0, 1, 2, 3]))  # True
print(resource_name("MLU370-X8", False, "mlu-share"))        # cambricon.com/mlumem
```

## What it does not do

The package has no command and runs no service. It does not serve the
kubelet's device plugin gRPC API, does not register with the kubelet, and
does not talk to the Kubernetes API server: pods and nodes are passed in
and node updates are returned for the caller to apply. It does not query
the MLU driver for device counts, models, memory or health; callers build
`Device` records and supply a health callback themselves.

## Requirements

Python 3.10 or later, with no third-party runtime dependencies. SR-IOV setup
needs write access to the device's sysfs entries, and `Cntopo` needs the
`cntopo` tool on the `PATH`.