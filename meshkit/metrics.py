"""Collection of exported metric descriptions for documentation output."""

from __future__ import annotations

import threading
from dataclasses import dataclass

_PROM_REPLACEMENTS = str.maketrans({"/": "_", ".": "_", " ": "_", "-": None})


@dataclass(frozen=True)
class Exported:
    """Name, aggregation type and description of an exported metric."""

    name: str
    type: str
    description: str


def prom_name(metric_name: str) -> str:
    """Turn a view name into the name a Prometheus exporter would publish."""
    return metric_name.removeprefix("/").translate(_PROM_REPLACEMENTS)


class MetricsRegistry:
    """Gathers descriptions of exported metrics, keyed by their Prometheus name.

    Meant for offline documentation generation only.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, Exported] = {}

    def export_view(self, name: str, aggregation: str, description: str) -> None:
        """Record a metric view; the first description seen for a name is kept."""
        exported_name = prom_name(name)
        with self._lock:
            self._metrics.setdefault(
                exported_name, Exported(exported_name, aggregation, description)
            )

    def exported_metrics(self) -> list[Exported]:
        """Return every recorded metric, sorted by name."""
        with self._lock:
            return [self._metrics[name] for name in sorted(self._metrics)]