"""
Shared utilities for container drivers.

This module provides common helper functions used across different
container runtime drivers: project name validation and memory/disk size
parsing.
"""

import re
import logging

from forge.drivers.core.errors import InvalidProjectNameError

logger = logging.getLogger(__name__)


# DNS-1123 label, as required for Kubernetes object names
_PROJECT_NAME_RE = re.compile(r"[a-z0-9]([-a-z0-9]*[a-z0-9])?")
MAX_PROJECT_NAME_LENGTH = 63


def validate_project_name(name: str) -> str:
    """
    Check that a project name can be used as a Kubernetes object name.

    Args:
        name: The project name

    Returns:
        The name, unchanged

    Raises:
        InvalidProjectNameError: If the name is not a DNS-1123 label

    Examples:
        >>> validate_project_name("my-flow")
        'my-flow'
    """
    if (
        not isinstance(name, str)
        or len(name) > MAX_PROJECT_NAME_LENGTH
        or not _PROJECT_NAME_RE.fullmatch(name)
    ):
        raise InvalidProjectNameError(str(name))
    return name


# Unit multipliers for memory parsing (lowercase keys)
_UNIT_MULTIPLIERS = {
    # Two-letter suffixes
    "ki": 1024,
    "mi": 1024**2,
    "gi": 1024**3,
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    # Single-letter suffixes
    "k": 1024,
    "m": 1024**2,
    "g": 1024**3,
    # No suffix = bytes
    "": 1,
}


def parse_memory_string(memory_str: str) -> int:
    """
    Parse a memory string (e.g., '512m', '1g', '512Mi', '1Gi') to bytes.

    Supported suffixes (case-insensitive):
        - Ki, k, kb: kibibytes (1024 bytes)
        - Mi, m, mb: mebibytes (1024^2 bytes)
        - Gi, g, gb: gibibytes (1024^3 bytes)
        - No suffix: bytes

    Args:
        memory_str: The memory string to parse

    Returns:
        The memory value in bytes

    Raises:
        ValueError: If the memory string format is invalid

    Examples:
        >>> parse_memory_string("512m")
        536870912
        >>> parse_memory_string("1Gi")
        1073741824
    """
    memory_str = memory_str.strip()
    original_str = memory_str

    match = re.fullmatch(r"(\d+)([a-zA-Z]*)", memory_str)
    if not match:
        raise ValueError(
            f"Invalid memory format: '{original_str}'. "
            "Supported formats: 512Mi, 1Gi, 512m, 1g, 512mb, 1gb, or plain bytes."
        )

    number_str, unit_str = match.groups()
    unit_lower = unit_str.lower()

    if unit_lower not in _UNIT_MULTIPLIERS:
        raise ValueError(
            f"Invalid memory format: '{original_str}'. "
            "Supported formats: 512Mi, 1Gi, 512m, 1g, 512mb, 1gb, or plain bytes."
        )

    return int(number_str) * _UNIT_MULTIPLIERS[unit_lower]


# Minimum memory in bytes (128 MiB)
MIN_MEMORY_BYTES = 128 * 1024 * 1024  # 134217728 bytes

# Minimum disk size in bytes (100 MiB)
MIN_DISK_BYTES = 100 * 1024 * 1024  # 104857600 bytes


def parse_disk_string(disk_str: str) -> int:
    """
    Parse a disk/storage string (e.g., '1Gi', '10G', '512Mi') to bytes.

    Uses the same parsing logic as memory strings.
    """
    return parse_memory_string(disk_str)


def parse_and_enforce_minimum_memory(memory_str: str) -> int:
    """
    Parse a memory string and enforce a minimum of 128 MiB.

    A smaller request is raised to 128 MiB and a warning is logged.

    Examples:
        >>> parse_and_enforce_minimum_memory("64m")
        134217728
    """
    memory_bytes = parse_memory_string(memory_str)

    if memory_bytes < MIN_MEMORY_BYTES:
        logger.warning(
            "Requested memory '%s' (%d bytes) is below minimum 128 MiB. "
            "Automatically increased to 128 MiB.",
            memory_str,
            memory_bytes,
        )
        return MIN_MEMORY_BYTES

    return memory_bytes


def parse_and_enforce_minimum_disk(disk_str: str) -> int:
    """
    Parse a disk string and enforce a minimum of 100 MiB.

    A smaller request is raised to 100 MiB and a warning is logged.

    Examples:
        >>> parse_and_enforce_minimum_disk("50m")
        104857600
    """
    disk_bytes = parse_disk_string(disk_str)

    if disk_bytes < MIN_DISK_BYTES:
        logger.warning(
            "Requested disk '%s' (%d bytes) is below minimum 100 MiB. "
            "Automatically increased to 100 MiB.",
            disk_str,
            disk_bytes,
        )
        return MIN_DISK_BYTES

    return disk_bytes
