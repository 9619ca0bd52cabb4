"""In-process metrics for node execution."""

from typing import Dict, List, Optional


class Metrics:
    """Simple metrics collector."""

    def __init__(self):
        self._counters: Dict[str, int] = {}
        self._histograms: Dict[str, List[float]] = {}

    def increment(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter metric."""
        key = self._make_key(name, tags)
        self._counters[key] = self._counters.get(key, 0) + value

    def histogram(self, name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Record a histogram metric."""
        self._histograms.setdefault(self._make_key(name, tags), []).append(value)

    def _make_key(self, name: str, tags: Optional[Dict[str, str]] = None) -> str:
        if not tags:
            return name
        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name},{tag_str}"

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> int:
        """Get counter value."""
        return self._counters.get(self._make_key(name, tags), 0)

    def get_histogram(self, name: str, tags: Optional[Dict[str, str]] = None) -> List[float]:
        """Get recorded histogram samples."""
        return list(self._histograms.get(self._make_key(name, tags), []))

    def reset(self) -> None:
        """Reset all metrics."""
        self._counters.clear()
        self._histograms.clear()


# Global metrics instance
metrics = Metrics()
