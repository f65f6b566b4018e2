from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping


class MalformedQuantity(ValueError):
    """A CPU or memory quantity that does not match the expected notation."""


SUFFIXES: Mapping[str, int] = MappingProxyType(
    {
        "K": 1000,
        "M": 1000**2,
        "G": 1000**3,
        "T": 1000**4,
        "P": 1000**5,
        "E": 1000**6,
        "Ki": 1024,
        "Mi": 1024**2,
        "Gi": 1024**3,
        "Ti": 1024**4,
        "Pi": 1024**5,
        "Ei": 1024**6,
    }
)

# "E" alone is the exa suffix; it only reads as an exponent when digits follow.
MEMORY_RE = re.compile(
    r"^(?P<mantissa>\d+(?:\.\d*)?|\.\d+)(?P<exponent>[eE][+-]?\d+)?(?P<suffix>[A-Za-z]+)?$"
)
CPU_RE = re.compile(r"^(?P<number>\d+(?:\.\d*)?|\.\d+)(?P<milli>m)?$")

MAX_DIGITS = 64
MAX_EXPONENT = 30


def _ratio(mantissa: str, exponent: str | None, original: str) -> tuple[int, int]:
    """Exact value of ``mantissa`` x 10**``exponent`` as a numerator, denominator pair."""
    whole, _, frac = mantissa.partition(".")
    if len(whole) + len(frac) > MAX_DIGITS:
        raise MalformedQuantity(f"Quantity '{original}' has too many digits")
    num, den = int((whole + frac) or "0"), 10 ** len(frac)
    if exponent:
        if len(exponent[1:].lstrip("+-").lstrip("0")) > 3:
            raise MalformedQuantity(f"Exponent out of range in '{original}'")
        exp = int(exponent[1:])
        if abs(exp) > MAX_EXPONENT:
            raise MalformedQuantity(f"Exponent out of range in '{original}'")
        if exp >= 0:
            num *= 10**exp
        else:
            den *= 10**-exp
    return num, den


def parse_memory(memory: str) -> int:
    """Parse a memory quantity such as ``512Mi``, ``1.1G`` or ``1e6`` into bytes.

    Fractional results of a suffixed value are truncated. A value without a
    suffix must come out as a whole number of bytes.
    """
    if not memory:
        raise MalformedQuantity("Memory quantity must not be empty")
    m = MEMORY_RE.match(memory)
    if not m:
        raise MalformedQuantity(f"Invalid memory quantity '{memory}'")

    suffix = m.group("suffix")
    if suffix is not None and suffix not in SUFFIXES:
        raise MalformedQuantity(f"Unknown memory suffix '{suffix}' in '{memory}'")

    num, den = _ratio(m.group("mantissa"), m.group("exponent"), memory)
    if suffix is None:
        if num % den:
            raise MalformedQuantity(f"Memory quantity '{memory}' is not a whole number of bytes")
        return num // den
    return num * SUFFIXES[suffix] // den


def format_memory(memory: int) -> str:
    if memory < 0:
        raise ValueError(f"Memory must not be negative: {memory}")
    return str(int(memory))


def normalize_memory(memory: str) -> str:
    return format_memory(parse_memory(memory))


def parse_cpu_as_milli_cpus(cpu: str) -> int:
    """Parse ``1``, ``0.5`` or ``250m`` into milli-CPUs.

    Whole cores are truncated to milli precision; an ``m`` value must already
    be an integer number of milli-CPUs.
    """
    if not cpu:
        raise MalformedQuantity("CPU quantity must not be empty")
    m = CPU_RE.match(cpu)
    if not m:
        raise MalformedQuantity(f"Invalid CPU quantity '{cpu}'")

    number = m.group("number")
    if m.group("milli"):
        if not number.isdigit():
            raise MalformedQuantity(f"Milli-CPU quantity '{cpu}' must be an integer")
        num, _ = _ratio(number, None, cpu)
        return num
    num, den = _ratio(number, None, cpu)
    return num * 1000 // den


def format_milli_cpu(milli_cpu: int) -> str:
    if milli_cpu < 0:
        raise ValueError(f"CPU must not be negative: {milli_cpu}")
    if milli_cpu % 1000 == 0:
        return str(milli_cpu // 1000)
    return f"{milli_cpu}m"


def normalize_cpu(cpu: str) -> str:
    return format_milli_cpu(parse_cpu_as_milli_cpus(cpu))
