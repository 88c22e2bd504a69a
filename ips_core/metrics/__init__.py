"""
Metrics Module: pipeline counters, drop reasons, histograms.

- Counters: observations_in, observations_accepted, position_fixes, etc.
- Drop reasons: every rejected observation and every no-fix cycle has a code
- Histograms: residuals, error radius, cycle duration

Usage:
    from ips_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('observations_in')
    metrics.increment_drop('unknown_beacon')
    metrics.record_histogram('residual_m', 0.42)
"""

from .counters import MetricsCollector, MetricsSnapshot, DROP_REASONS

# Process-wide collector used when a component is not given its own
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """Return the process-wide collector, creating it on first use."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Replace the process-wide collector with a fresh one."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'MetricsSnapshot', 'DROP_REASONS', 'get_metrics', 'reset_metrics']
