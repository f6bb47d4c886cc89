"""Helpers for reading MLU-memory pods and building node updates.

Pods and nodes are plain Kubernetes objects as decoded from JSON.
"""

from __future__ import annotations

import copy
import json
import logging
import re
from typing import Any, Iterable, Mapping

from .constants import (
    MLU_MEM_LOCK,
    MLU_MEM_RESOURCE_ASSIGNED,
    MLU_MEM_RESOURCE_ASSUME_TIME,
    MLU_MEM_RESOURCE_NAME,
    MLU_MEM_SPLIT_INDEX,
    MLU_RESOURCE_COUNT,
)

log = logging.getLogger(__name__)

_UINT = re.compile(r"[0-9]+")
_INT = re.compile(r"[+-]?[0-9]+")
_UINT64_MAX = 2**64 - 1


def _annotations(obj: Mapping[str, Any]) -> Mapping[str, str]:
    return (obj.get("metadata") or {}).get("annotations") or {}


def _containers(pod: Mapping[str, Any], kind: str = "containers") -> list:
    return (pod.get("spec") or {}).get(kind) or []


def _uses_mlu_memory(container: Mapping[str, Any]) -> bool:
    limits = (container.get("resources") or {}).get("limits") or {}
    return MLU_MEM_RESOURCE_NAME in limits


def requests_mlu_memory(pod: Mapping[str, Any]) -> bool:
    """Return True if any container limits the MLU memory resource."""
    return any(_uses_mlu_memory(c) for c in _containers(pod))


def is_mlu_memory_assumed_pod(pod: Mapping[str, Any]) -> bool:
    """Return True for a pod the scheduler assumed but that is not yet assigned."""
    if not requests_mlu_memory(pod):
        return False
    annotations = _annotations(pod)
    if MLU_MEM_RESOURCE_ASSUME_TIME not in annotations:
        return False
    return annotations.get(MLU_MEM_RESOURCE_ASSIGNED) == "false"


def get_assume_time(pod: Mapping[str, Any]) -> int:
    """Return the assume timestamp from the pod's annotations, or 0."""
    value = _annotations(pod).get(MLU_MEM_RESOURCE_ASSUME_TIME)
    if value is None:
        return 0
    if not _UINT.fullmatch(value) or int(value) > _UINT64_MAX:
        log.warning("Failed to parse assume Timestamp %s", value)
        return 0
    return int(value)


def get_index_from_annotation(pod: Mapping[str, Any]) -> int:
    """Return the split device index recorded on the pod."""
    annotations = _annotations(pod)
    if MLU_MEM_SPLIT_INDEX not in annotations:
        raise ValueError(f"pod annotation {MLU_MEM_SPLIT_INDEX} not found")
    value = annotations[MLU_MEM_SPLIT_INDEX]
    if not _INT.fullmatch(value):
        raise ValueError(f"strconv value {value}, invalid syntax")
    index = int(value)
    if index < 0:
        raise ValueError(f"index {index} less than 0")
    return index


def pod_container_count_with_mlu(pod: Mapping[str, Any]) -> int:
    """Count init and regular containers that request MLU memory."""
    metadata = pod.get("metadata") or {}
    count = 0
    for container in _containers(pod, "initContainers"):
        if _uses_mlu_memory(container):
            count += 1
            log.info(
                "namespace %s pod %s init container %s uses mlu-mem, "
                "just allocate the mlu and ignore memory limit",
                metadata.get("namespace"), metadata.get("name"), container.get("name"),
            )
    count += sum(1 for c in _containers(pod) if _uses_mlu_memory(c))
    return count


def unique_pods(pods: Iterable[Mapping[str, Any]]) -> list:
    """Drop pods whose UID was already seen, keeping the first occurrence."""
    seen: set = set()
    result = []
    for pod in pods:
        uid = (pod.get("metadata") or {}).get("uid")
        if uid in seen:
            continue
        seen.add(uid)
        result.append(pod)
    return result


def candidate_pods(pods: Iterable[Mapping[str, Any]]) -> list:
    """Return the assumed MLU-memory pods, oldest assume time first."""
    assumed = [p for p in unique_pods(pods) if is_mlu_memory_assumed_pod(p)]
    return sorted(assumed, key=get_assume_time)


def release_node_lock(node: Mapping[str, Any]):
    """Return a copy of node without the MLU memory lock, or None if unlocked."""
    updated = copy.deepcopy(dict(node))
    annotations = (updated.get("metadata") or {}).get("annotations")
    if annotations is not None:
        if MLU_MEM_LOCK not in annotations:
            log.info("Lock is released, No Need to update node")
            return None
        log.info("node lock timestamp %s", annotations[MLU_MEM_LOCK])
        del annotations[MLU_MEM_LOCK]
    return updated


def mlu_count_patch(count: int) -> bytes:
    """Return the strategic merge patch that records the MLU count on a node."""
    patch = {"metadata": {"annotations": {MLU_RESOURCE_COUNT: f"{count}"}}}
    return json.dumps(patch, separators=(",", ":")).encode()