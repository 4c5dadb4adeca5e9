"""In-process metrics exported in the Prometheus text format.

Only counters and histograms are needed by the cart application.  All
metrics register themselves on creation; ``generate_metrics_text``
renders every registered metric.
"""

from collections import defaultdict
from threading import Lock
from typing import Dict, Iterable, List, Tuple

LabelValues = Tuple[str, ...]


class Metric:
    """Base class for all metrics."""

    kind = "untyped"

    def __init__(self, name: str, description: str, label_names: Iterable[str]):
        self.name = name
        self.description = description
        self.label_names = list(label_names)
        self._lock = Lock()
        _METRIC_REGISTRY.append(self)

    def _key(self, labels: Dict[str, str]) -> LabelValues:
        return tuple(str(labels.get(k, "")) for k in self.label_names)

    def _format_labels(self, label_values: LabelValues, **more: str) -> str:
        pairs = [f'{name}="{value}"' for name, value in zip(self.label_names, label_values)]
        pairs.extend(f'{name}="{value}"' for name, value in more.items())
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def _header(self) -> List[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def to_prometheus(self) -> List[str]:
        raise NotImplementedError


class Counter(Metric):
    """Monotonic counter, e.g. ``ORDERS_TOTAL.inc(policy="premium")``."""

    kind = "counter"

    def __init__(self, name: str, description: str, label_names: Iterable[str]):
        super().__init__(name, description, label_names)
        self._values: Dict[LabelValues, int] = defaultdict(int)

    def inc(self, **labels: str) -> None:
        key = self._key(labels)
        with self._lock:
            self._values[key] += 1

    def value(self, **labels: str) -> int:
        with self._lock:
            return self._values.get(self._key(labels), 0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for label_values, value in self._values.items():
                lines.append(f"{self.name}{self._format_labels(label_values)} {value}")
        return lines


class Histogram(Metric):
    """Histogram with fixed ascending bucket upper bounds.

    Observations above the last bound only show up in ``+Inf``.
    """

    kind = "histogram"

    def __init__(self, name: str, description: str, label_names: Iterable[str], buckets: Iterable[float]):
        super().__init__(name, description, label_names)
        self.buckets = sorted(float(b) for b in buckets)
        self._counts: Dict[LabelValues, List[int]] = defaultdict(lambda: [0] * len(self.buckets))
        self._sums: Dict[LabelValues, float] = defaultdict(float)
        self._totals: Dict[LabelValues, int] = defaultdict(int)

    def observe(self, value, **labels: str) -> None:
        value = float(value)
        key = self._key(labels)
        with self._lock:
            for idx, upper in enumerate(self.buckets):
                if value <= upper:
                    self._counts[key][idx] += 1
                    break
            self._totals[key] += 1
            self._sums[key] += value

    def count(self, **labels: str) -> int:
        with self._lock:
            return self._totals.get(self._key(labels), 0)

    def to_prometheus(self) -> List[str]:
        lines = self._header()
        with self._lock:
            for label_values, total in self._totals.items():
                cumulative = 0
                for idx, upper in enumerate(self.buckets):
                    cumulative += self._counts[label_values][idx]
                    le = self._format_labels(label_values, le=str(upper))
                    lines.append(f"{self.name}_bucket{le} {cumulative}")
                inf = self._format_labels(label_values, le="+Inf")
                lines.append(f"{self.name}_bucket{inf} {total}")
                plain = self._format_labels(label_values)
                lines.append(f"{self.name}_sum{plain} {self._sums[label_values]}")
                lines.append(f"{self.name}_count{plain} {total}")
        return lines


_METRIC_REGISTRY: List[Metric] = []


def generate_metrics_text() -> bytes:
    """Render all registered metrics."""
    lines: List[str] = []
    for metric in _METRIC_REGISTRY:
        lines.extend(metric.to_prometheus())
    return "\n".join(lines).encode("utf-8")


# -----------------------------------------------------------------------------
# Metrics used by the cart application (see app.py)
# -----------------------------------------------------------------------------

ORDERS_TOTAL = Counter(
    name="orders_total",
    description="Total number of orders placed, labelled by discount policy",
    label_names=["policy"],
)

ORDER_TOTAL_AMOUNT = Histogram(
    name="order_total_amount",
    description="Discounted order totals",
    label_names=["policy"],
    buckets=[10, 25, 50, 100, 250, 500, 1000],
)

NOTIFICATIONS_TOTAL = Counter(
    name="notifications_total",
    description="Order notifications, labelled by channel and outcome",
    label_names=["channel", "status"],
)
