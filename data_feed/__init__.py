"""Ordered record feed for the analysis process: decode, extract, reorder, diagnose."""

__all__ = [
    "cli",
    "config",
    "counts",
    "diagnostics",
    "fields",
    "json_decode",
    "latency_buffer",
    "process_writers",
    "runlog",
    "time_format",
    "writer",
]
