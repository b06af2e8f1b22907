"""Constant metrics and their Prometheus text exposition."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from decimal import Decimal


class ProbeError(Exception):
    """Raised when a probe fails to collect its metrics."""


class ValueType(enum.Enum):
    """The type of a metric as shown in the exposition."""

    GAUGE = "gauge"
    COUNTER = "counter"
    UNTYPED = "untyped"


@dataclass(frozen=True)
class TargetMetadata:
    """What is known about the probed device."""

    version_major: int = 0
    version_minor: int = 0


@dataclass(frozen=True)
class Desc:
    """Name, help text and label names shared by a family of metrics."""

    name: str
    help: str
    label_names: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "label_names", tuple(self.label_names))

    def metric(self, value_type, value, *args):
        """Make a metric of this description with the given label values."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(args)}"
            )
        return Metric(self, ValueType(value_type), float(value), tuple(str(a) for a in args))


@dataclass(frozen=True)
class Metric:
    """One sample with its description and label values."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = ()

    @property
    def name(self):
        return self.desc.name

    @property
    def labels(self):
        return dict(zip(self.desc.label_names, self.label_values))


def format_value(value):
    """Format a sample value the way the Prometheus text format does."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    count = len(digits)
    point = count + exponent
    exp = point - 1

    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        return f"{sign}{mantissa}e{'+' if exp >= 0 else '-'}{abs(exp):02d}"
    if point <= 0:
        return f"{sign}0.{'0' * -point}{digits}"
    if point >= count:
        return f"{sign}{digits}{'0' * (point - count)}"
    return f"{sign}{digits[:point]}.{digits[point:]}"


def _escape_help(text):
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text):
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def render(metrics):
    """Render metrics as Prometheus text, families and samples sorted."""
    families = {}
    for metric in metrics:
        desc = metric.desc
        family = families.setdefault(desc.name, (desc, metric.value_type, {}))
        first, value_type, samples = family
        if (
            first.help != desc.help
            or sorted(first.label_names) != sorted(desc.label_names)
            or value_type is not metric.value_type
        ):
            raise ValueError(f"inconsistent descriptions for metric {desc.name!r}")
        key = tuple(sorted(metric.labels.items()))
        if key in samples:
            raise ValueError(f"duplicate metric {desc.name!r} with labels {dict(key)}")
        samples[key] = metric.value

    lines = []
    for name in sorted(families):
        desc, value_type, samples = families[name]
        lines.append(f"# HELP {name} {_escape_help(desc.help)}")
        lines.append(f"# TYPE {name} {value_type.value}")
        for key, value in sorted(samples.items(), key=lambda item: [v for _, v in item[0]]):
            if key:
                pairs = ",".join(f'{label}="{_escape_label(v)}"' for label, v in key)
                lines.append(f"{name}{{{pairs}}} {format_value(value)}")
            else:
                lines.append(f"{name} {format_value(value)}")
    return "".join(line + "\n" for line in lines)