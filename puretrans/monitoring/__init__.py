"""Rolling quality metrics."""

from puretrans.monitoring.metrics import MetricsSnapshot, QualityMonitor

__all__ = ['MetricsSnapshot', 'QualityMonitor']
