"""Device records, topology-aware allocation and container wiring for MLU accelerators."""

__version__ = "0.1.0"

__all__ = [
    "allocator",
    "cndev",
    "cntopo",
    "constants",
    "devices",
    "options",
    "plugin",
    "podutils",
]