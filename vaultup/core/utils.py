"""Formatting helpers for sizes, speeds and remaining time."""
import math
from typing import Optional

KIB = 1024
MIB = 1024 * KIB
GIB = 1024 * MIB


def format_file_size(size: int) -> str:
    """Formats a byte count as a human readable string."""
    if size < KIB:
        return f"{size} B"
    if size < MIB:
        return f"{size / KIB:.1f} KB"
    if size < GIB:
        return f"{size / MIB:.1f} MB"
    return f"{size / GIB:.2f} GB"


def format_speed(bytes_per_second: float) -> str:
    """Formats a throughput value."""
    if bytes_per_second < KIB:
        return f"{bytes_per_second:.1f} B/s"
    if bytes_per_second < MIB:
        return f"{bytes_per_second / KIB:.1f} KB/s"
    return f"{bytes_per_second / MIB:.1f} MB/s"


def format_eta(seconds: Optional[float]) -> str:
    """Formats an estimated remaining time."""
    if seconds is None or seconds < 0:
        return "Calculating..."
    
    if seconds < 60:
        return f"{math.ceil(seconds)} seconds"
    if seconds < 3600:
        return f"{math.ceil(seconds / 60)} minutes"
    
    hours = int(seconds // 3600)
    minutes = math.ceil((seconds % 3600) / 60)
    return f"{hours} hour{'s' if hours > 1 else ''} {minutes} min"
