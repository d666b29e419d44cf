"""
Prometheus metrics injected into request handlers and services.

Each application instance owns its own CollectorRegistry, so recorders
never share state through module-level collectors.
"""
from typing import Dict, Optional, Tuple

from fastapi import Request
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

NAMESPACE = "courtbook"

# Request durations are observed in milliseconds
DURATION_BUCKETS_MS = (5, 10, 25, 50, 100, 250, 500, 750, 1000, 2500, 5000, 10000)


def _key(name: str, labels: Dict[str, str]) -> str:
    if not labels:
        return name
    pairs = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
    return f"{name}{{{pairs}}}"


class MetricsRecorder:
    """Interface for counters and histograms. The default records nothing."""

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        pass

    def observe(self, name: str, value: float, **tags: str) -> None:
        pass

    def snapshot(self) -> Dict[str, Dict]:
        return {"counters": {}, "histograms": {}}

    def exposition(self) -> bytes:
        return b""


class PrometheusMetrics(MetricsRecorder):
    """
    Recorder backed by prometheus_client collectors.

    Collectors are created on first use. Dotted names such as
    ``booking.conflict`` become ``courtbook_booking_conflict``; the label
    names of a metric are fixed by its first use.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._counters: Dict[str, Tuple[Counter, Tuple[str, ...]]] = {}
        self._histograms: Dict[str, Tuple[Histogram, Tuple[str, ...]]] = {}

    @staticmethod
    def _metric_name(name: str) -> str:
        return name.replace(".", "_").replace("-", "_")

    @staticmethod
    def _labelled(collector, labelnames: Tuple[str, ...], name: str, tags: Dict[str, str]):
        if tuple(sorted(tags)) != labelnames:
            raise ValueError(
                f"Metric '{name}' uses labels {list(labelnames)}, got {sorted(tags)}"
            )
        if not labelnames:
            return collector
        return collector.labels(**{k: str(v) for k, v in tags.items()})

    def increment(self, name: str, value: int = 1, **tags: str) -> None:
        if name not in self._counters:
            labelnames = tuple(sorted(tags))
            counter = Counter(
                self._metric_name(name),
                f"Count of {name}",
                labelnames,
                namespace=NAMESPACE,
                registry=self.registry,
            )
            self._counters[name] = (counter, labelnames)

        counter, labelnames = self._counters[name]
        self._labelled(counter, labelnames, name, tags).inc(value)

    def observe(self, name: str, value: float, **tags: str) -> None:
        if name not in self._histograms:
            labelnames = tuple(sorted(tags))
            histogram = Histogram(
                self._metric_name(name),
                f"Distribution of {name}",
                labelnames,
                namespace=NAMESPACE,
                registry=self.registry,
                buckets=DURATION_BUCKETS_MS,
            )
            self._histograms[name] = (histogram, labelnames)

        histogram, labelnames = self._histograms[name]
        self._labelled(histogram, labelnames, name, tags).observe(value)

    def snapshot(self) -> Dict[str, Dict]:
        """Read current values back from the registry, keyed by dotted name and labels."""
        dotted = {
            f"{NAMESPACE}_{self._metric_name(name)}": name
            for name in list(self._counters) + list(self._histograms)
        }
        counters: Dict[str, float] = {}
        histograms: Dict[str, Dict[str, float]] = {}

        for family in self.registry.collect():
            name = dotted.get(family.name)
            if name is None:
                continue

            if family.type == "counter":
                for sample in family.samples:
                    if sample.name.endswith("_total"):
                        counters[_key(name, sample.labels)] = sample.value

            elif family.type == "histogram":
                for sample in family.samples:
                    labels = {k: v for k, v in sample.labels.items() if k != "le"}
                    summary = histograms.setdefault(_key(name, labels), {})
                    if sample.name.endswith("_count"):
                        summary["count"] = sample.value
                    elif sample.name.endswith("_sum"):
                        summary["sum"] = round(sample.value, 2)

        for summary in histograms.values():
            count = summary.get("count", 0)
            summary["avg"] = round(summary.get("sum", 0) / count, 2) if count else 0.0

        return {"counters": counters, "histograms": histograms}

    def exposition(self) -> bytes:
        """Registry contents in the Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics(request: Request) -> MetricsRecorder:
    """Dependency returning the recorder attached to the running app."""
    return getattr(request.app.state, "metrics", None) or MetricsRecorder()


__all__ = ["MetricsRecorder", "PrometheusMetrics", "get_metrics"]
