"""Choose which MLU cards to hand to a container, preferring MLU-Link rings."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from itertools import takewhile
from typing import Iterable, Iterator, Mapping, Protocol, Sequence

from .cndev import Device
from .cntopo import Cntopo, Ring
from .constants import BEST_EFFORT, RESTRICTED

log = logging.getLogger(__name__)


class AllocationError(Exception):
    """Raised when no set of devices satisfies the request under the policy."""


class RingFinder(Protocol):
    def get_rings(self, available: Sequence[int], size: int) -> list[Ring]: ...


def contains_all(group: Iterable[int], devs: Iterable[int]) -> bool:
    """Return True if every device in devs is in group."""
    members = set(group)
    return all(dev in members for dev in devs)


def _split_by(available: Iterable[int], devs: Mapping[str, Device], attr: str) -> list[list[int]]:
    wanted = set(available)
    buckets: dict[str, list[int]] = {}
    for dev in devs.values():
        if dev.slot in wanted:
            buckets.setdefault(getattr(dev, attr), []).append(dev.slot)
    log.info("available devices separated by %s: %s", attr, buckets)
    result = sorted(buckets.values(), key=len)
    log.info("sorted available devices separated by %s: %s", attr, result)
    return result


def split_by_boards(available: Iterable[int], devs: Mapping[str, Device]) -> list[list[int]]:
    """Group available slots by board serial number, smallest board first."""
    return _split_by(available, devs, "sn")


def split_by_mother_boards(available: Iterable[int], devs: Mapping[str, Device]) -> list[list[int]]:
    """Group available slots by mother board, smallest first."""
    return _split_by(available, devs, "mother_board")


def _fill_from(size: int, pools: Iterable[Iterable[int]]) -> list[int] | None:
    """Take devices from the pools in order until size are picked."""
    allocated: list[int] = []
    for pool in pools:
        for dev in pool:
            if dev in allocated:
                continue
            allocated.append(dev)
            if len(allocated) == size:
                return allocated
    return None


def _best_candidates(rings: list[Ring]) -> list[Ring]:
    top = rings[0].non_conflict_ring_num
    return list(takewhile(lambda r: r.non_conflict_ring_num >= top, rings))


class Allocator(ABC):
    """Base for the allocation strategies."""

    def __init__(self, policy: str, devs: Mapping[str, Device], topo: RingFinder | None = None):
        self.policy = policy
        self.devs = devs
        self.topo = topo if topo is not None else Cntopo()

    @abstractmethod
    def allocate(self, available: Sequence[int], required: Sequence[int] | None, size: int) -> list[int]:
        """Return the slots to allocate, or raise AllocationError."""

    def _sorted_rings(self, available: Sequence[int], size: int) -> list[Ring]:
        rings = self.topo.get_rings(available, size)
        return sorted(rings, key=lambda r: r.non_conflict_ring_num, reverse=True)


class DefaultAllocator(Allocator):
    """Take the best ring, or the first devices when no ring exists."""

    def allocate(self, available, required, size):
        available = list(available)
        rings = self._sorted_rings(available, size)
        if not rings:
            log.info("found no rings")
            if self.policy != BEST_EFFORT and size % 2 != 1:
                raise AllocationError(f"mode {self.policy} found no rings")
            if size > len(available):
                raise AllocationError(
                    f"requested {size} devices, only {len(available)} available"
                )
            return available[:size]
        return list(rings[0].ordinals)


class BoardAllocator(Allocator):
    """Allocator for dual-chip boards split into two MLU-Link groups."""

    def __init__(
        self,
        policy: str,
        devs: Mapping[str, Device],
        topo: RingFinder | None = None,
        groups: Sequence[Sequence[int]] | None = None,
    ):
        super().__init__(policy, devs, topo)
        if groups is not None and (len(groups) != 2 or len(groups[0]) != 8):
            log.warning("unexpected groups: %s", groups)
            groups = None
        self.groups = [list(g) for g in groups] if groups is not None else None

    def filter_available_devs_by_group(self, available: Iterable[int]) -> list[list[int]]:
        """Split available slots by group, the smaller group first."""
        if self.groups is None or len(self.groups) != 2:
            raise AllocationError(f"allocator groups is {self.groups}")
        available = list(available)
        first: list[int] = []
        second: list[int] = []
        for dev in available:
            if dev in self.groups[0]:
                first.append(dev)
            elif dev in self.groups[1]:
                second.append(dev)
            else:
                raise AllocationError(f"dev {available} not in groups {self.groups}")
        if len(first) > len(second):
            first, second = second, first
        return [first, second]

    @staticmethod
    def _size_always_fails_to_form_ring(size: int) -> bool:
        return size > 8 or size <= 1 or size % 2 == 1

    def allocate(self, available, required, size):
        available = list(available)
        rings = self._sorted_rings(available, size)
        boards = split_by_boards(available, self.devs)
        try:
            groups: list[list[int]] | None = self.filter_available_devs_by_group(available)
        except AllocationError:
            log.warning(
                "failed to filter %s by group %s, ignore when allocating",
                available, self.groups,
            )
            groups = None
        log.info("available devs filtered by group: %s", groups)

        if not rings:
            log.info("found no rings")
            if self.policy != BEST_EFFORT and not self._size_always_fails_to_form_ring(size):
                raise AllocationError(f"mode {self.policy} found no rings for size {size}")

            def pools() -> Iterator[list[int]]:
                if groups is None:
                    yield from boards
                for group in groups or []:
                    for board in boards:
                        if contains_all(group, board):
                            yield board
                yield available

            allocated = _fill_from(size, pools())
            if allocated is None:
                raise AllocationError("allocated from all available devices, should not be here")
            return allocated

        best = rings[0].non_conflict_ring_num
        if self.policy == RESTRICTED and size == 2 and best < 2:
            raise AllocationError(f"mode {self.policy}, max non-conflict ring num {best}")

        candidates = _best_candidates(rings)
        for group in groups or []:
            for candidate in candidates:
                if contains_all(group, candidate.ordinals):
                    return list(candidate.ordinals)
        return list(candidates[0].ordinals)


class SpiderAllocator(Allocator):
    """Allocator for machines whose cards sit on several mother boards."""

    @staticmethod
    def _size_always_fails_to_form_ring(size: int) -> bool:
        return size <= 1 or size > 8

    def allocate(self, available, required, size):
        available = list(available)
        rings = self._sorted_rings(available, size)
        mother_boards = split_by_mother_boards(available, self.devs)

        if not rings:
            log.info("found no rings")
            if self.policy != BEST_EFFORT and not self._size_always_fails_to_form_ring(size):
                raise AllocationError(f"mode {self.policy} found no rings")
            allocated = _fill_from(size, mother_boards)
            if allocated is None:
                raise AllocationError("finished allocateRemainingFrom, should not be here")
            return allocated

        best = rings[0].non_conflict_ring_num
        if self.policy == RESTRICTED and size == 4 and best < 4:
            raise AllocationError(f"mode {self.policy}, max non-conflict ring num {best}")
        if self.policy == RESTRICTED and size == 2 and best < 2:
            raise AllocationError(f"mode {self.policy}, max non-conflict ring num {best}")

        candidates = _best_candidates(rings)
        for board in mother_boards:
            for candidate in candidates:
                if contains_all(board, candidate.ordinals):
                    return list(candidate.ordinals)
        return list(candidates[0].ordinals)


def new_allocator(
    model: str,
    policy: str,
    devs: Mapping[str, Device],
    topo: RingFinder | None = None,
    groups: Sequence[Sequence[int]] | None = None,
) -> Allocator:
    """Pick the allocator that suits the card model."""
    if "MLU290" in model or model == "MLU370-M8":
        return SpiderAllocator(policy, devs, topo)
    if model == "MLU370-X8":
        return BoardAllocator(policy, devs, topo, groups)
    return DefaultAllocator(policy, devs, topo)