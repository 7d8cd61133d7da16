"""Parsers for the textual records exposed under /proc."""

import logging
import re
from types import MappingProxyType
from typing import Mapping

from procrate.errors import MalformedRecordError
from procrate.schema import NET_DEV_SCHEMA, STAT_SCHEMA, RecordSchema

logger = logging.getLogger(__name__)

Value = int | float | str
RawRecord = Mapping[str, Value]

# The executable name is wrapped in parentheses and may contain whitespace.
_COMM_SPAN = re.compile(r"\([^)]+\)")
_WHITESPACE = re.compile(r"\s")
_NUMERIC = re.compile(r"^[-+]?\d*\.?\d+$")

STATE_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "R": "Running",
        "S": "Sleeping",
        "D": "Waiting",
        "Z": "Zombie",
        "T": "Stopped",
        "t": "Tracing stop",
        "W": "Paging",
        "X": "Dead",
        "x": "Dead",
        "K": "Wakekill",
        "P": "Parked",
        "I": "Idle",
    }
)
UNKNOWN_STATE = "Unknown"


def coerce_token(token: str) -> Value:
    """Convert a numeric-looking token to int or float, leave anything else alone."""
    if not _NUMERIC.match(token):
        return token
    if "." in token:
        return float(token)
    return int(token)


def state_label(code: str) -> str:
    """Map a one-character process state code to a readable label."""
    return STATE_LABELS.get(code, UNKNOWN_STATE)


def executable_name(comm: str) -> str:
    """Strip the parentheses the kernel puts around the executable name."""
    return comm.replace("(", "").replace(")", "").strip()


def join_cmdline(raw: bytes) -> str:
    """Rejoin the NUL-separated tokens of a cmdline file with spaces."""
    return raw.decode("utf-8", errors="replace").replace("\x00", " ").strip()


def parse_stat_line(
    line: str,
    schema: RecordSchema = STAT_SCHEMA,
    *,
    pid: int | None = None,
) -> RawRecord:
    """
    Parse one /proc/<pid>/stat line into a field mapping.

    The parenthesised executable name is protected from the whitespace split
    and restored verbatim afterwards. A token count that differs from the
    schema is logged and the fields that do exist are still extracted.

    Args:
        line: The raw stat line.
        schema: Field positions to extract.
        pid: Identifier used in diagnostics; the caller usually knows it from
            the directory name.

    Raises:
        MalformedRecordError: No parenthesised executable name was found.
    """
    line = line.strip()
    match = _COMM_SPAN.search(line)
    if match is None:
        raise MalformedRecordError(
            f"Stat for process {pid} has no parenthesised executable name", pid
        )

    comm = match.group(0)
    protected = line[: match.start()] + _WHITESPACE.sub("_", comm) + line[match.end() :]
    tokens = protected.split()

    if len(tokens) != schema.field_count:
        logger.warning(
            "Stat for process %s may be inaccurate. Expected %d fields, found %d",
            pid,
            schema.field_count,
            len(tokens),
        )

    comm_index = schema.field_index("comm")
    if comm_index < len(tokens):
        tokens[comm_index] = comm

    record: dict[str, Value] = {}
    for position, name in enumerate(schema.fields):
        if position >= len(tokens):
            break
        token = tokens[position]
        record[name] = token if name in schema.text_fields else coerce_token(token)
    return MappingProxyType(record)


def parse_net_dev_line(line: str) -> tuple[str, RawRecord]:
    """
    Parse one interface line of /proc/net/dev.

    Returns:
        The interface name and its counters keyed by NET_DEV_SCHEMA.

    Raises:
        MalformedRecordError: Empty name or too few numeric columns.
    """
    name, sep, rest = line.partition(":")
    name = name.strip()
    if not sep or not name:
        raise MalformedRecordError(f"Interface line has no name: {line!r}")

    columns = rest.split()
    if len(columns) < NET_DEV_SCHEMA.field_count:
        raise MalformedRecordError(
            f"Interface {name} has {len(columns)} columns, expected {NET_DEV_SCHEMA.field_count}",
            name,
        )
    try:
        values = [int(column) for column in columns[: NET_DEV_SCHEMA.field_count]]
    except ValueError as exc:
        raise MalformedRecordError(f"Interface {name} has non-numeric counters", name) from exc

    return name, MappingProxyType(dict(zip(NET_DEV_SCHEMA.fields, values)))


def parse_uptime(text: str) -> tuple[float, float]:
    """
    Parse /proc/uptime.

    Returns:
        Seconds since boot and idle seconds summed across all CPUs.
    """
    parts = text.split()
    if len(parts) != 2:
        raise MalformedRecordError(f"Invalid uptime record: {text!r}")
    try:
        return float(parts[0]), float(parts[1])
    except ValueError as exc:
        raise MalformedRecordError(f"Invalid uptime record: {text!r}") from exc
