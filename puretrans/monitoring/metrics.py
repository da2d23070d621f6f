"""
Quality monitor.

Keeps a rolling window of per-request samples and derives the purity pass
rate, fallback rate, cache-hit rate and latency percentiles from it. A domain
whose recent fallback rate crosses the spike threshold notifies listeners once
per spike; the feedback loop subscribes to prioritize that domain.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from typing import Callable, Deque, Dict, Iterable, List, Optional, Set

import numpy as np

from puretrans.core.models import LegalDomain, ProblematicPattern, TranslationMethod, TranslationResult

logger = logging.getLogger(__name__)

SpikeListener = Callable[[str, float], None]


@dataclass
class Sample:
    timestamp: float
    method: TranslationMethod
    passed: bool
    latency: float
    domain: str


@dataclass(frozen=True)
class MetricsSnapshot:
    """Immutable view of the monitor at one point in time."""
    total_requests: int = 0
    window_size: int = 0
    purity_pass_rate: float = 0.0
    fallback_rate: float = 0.0
    cache_hit_rate: float = 0.0
    latency_p50: float = 0.0
    latency_p95: float = 0.0
    rejections: int = 0
    domain_fallback_rates: Dict[str, float] = field(default_factory=dict)
    pattern_counts: Dict[str, int] = field(default_factory=dict)
    spiking_domains: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


class QualityMonitor:
    """Thread-safe rolling metrics collector."""

    def __init__(
        self,
        window: int = 1000,
        spike_threshold: float = 0.5,
        spike_min_samples: int = 10,
        domain_window: int = 50,
    ):
        self.spike_threshold = spike_threshold
        self.spike_min_samples = spike_min_samples
        self._lock = threading.Lock()
        self._samples: Deque[Sample] = deque(maxlen=window)
        self._domain_samples: Dict[str, Deque[bool]] = {}
        self._domain_window = domain_window
        self._pattern_counts: Counter = Counter()
        self._total = 0
        self._rejections = 0
        self._spiking: Set[str] = set()
        self._listeners: List[SpikeListener] = []

    def add_spike_listener(self, listener: SpikeListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def record(self, result: TranslationResult, latency: float, domain: Optional[str] = None) -> None:
        """Record one completed request."""
        # Free-form hints are folded onto the fixed domain set
        parsed = LegalDomain.parse(domain) or LegalDomain.parse(result.intent)
        domain = (parsed or LegalDomain.GENERAL).value
        sample = Sample(
            timestamp=time.time(),
            method=result.method,
            passed=result.purity.passes,
            latency=max(0.0, latency),
            domain=domain,
        )
        fired: Optional[float] = None
        with self._lock:
            self._total += 1
            self._samples.append(sample)
            recent = self._domain_samples.setdefault(domain, deque(maxlen=self._domain_window))
            recent.append(result.method is TranslationMethod.FALLBACK)

            rate = sum(recent) / len(recent)
            if len(recent) >= self.spike_min_samples and rate > self.spike_threshold:
                if domain not in self._spiking:
                    self._spiking.add(domain)
                    fired = rate
            elif domain in self._spiking and rate <= self.spike_threshold:
                self._spiking.discard(domain)
                logger.info("Fallback rate for domain %s recovered (%.2f)", domain, rate)
            listeners = list(self._listeners)

        if fired is not None:
            logger.warning("Fallback spike in domain %s: rate %.2f", domain, fired)
            for listener in listeners:
                try:
                    listener(domain, fired)
                except Exception:
                    logger.exception("Spike listener failed for domain %s", domain)

    def record_rejection(self, reason: str = "invalid_input") -> None:
        with self._lock:
            self._rejections += 1
        logger.debug("Rejected request: %s", reason)

    def record_patterns(self, findings: Iterable[ProblematicPattern]) -> None:
        with self._lock:
            for finding in findings:
                self._pattern_counts[finding.kind.value] += 1

    def spiking_domains(self) -> List[str]:
        with self._lock:
            return sorted(self._spiking)

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            samples = list(self._samples)
            domains = {d: list(v) for d, v in self._domain_samples.items()}
            pattern_counts = dict(self._pattern_counts)
            total = self._total
            rejections = self._rejections
            spiking = sorted(self._spiking)

        if not samples:
            return MetricsSnapshot(total_requests=total, rejections=rejections,
                                   pattern_counts=pattern_counts, spiking_domains=spiking)

        n = len(samples)
        latencies = np.array([s.latency for s in samples], dtype=float)
        return MetricsSnapshot(
            total_requests=total,
            window_size=n,
            purity_pass_rate=sum(s.passed for s in samples) / n,
            fallback_rate=sum(s.method is TranslationMethod.FALLBACK for s in samples) / n,
            cache_hit_rate=sum(s.method is TranslationMethod.CACHE_HIT for s in samples) / n,
            latency_p50=float(np.percentile(latencies, 50)),
            latency_p95=float(np.percentile(latencies, 95)),
            rejections=rejections,
            domain_fallback_rates={d: sum(v) / len(v) for d, v in domains.items() if v},
            pattern_counts=pattern_counts,
            spiking_domains=spiking,
        )
