"""
Monitoring and metrics collection for the audit pipeline.
"""

import logging
import os
import platform
import sys
import time
from typing import Any, Dict, Optional

import psutil
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Collects audit metrics in a dedicated Prometheus registry."""

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.registry = CollectorRegistry()
        self.jobs_total = Counter(
            'robots_audit_jobs_total',
            'Total number of audited URLs by result status',
            ['status'],
            registry=self.registry
        )
        self.errors_total = Counter(
            'robots_audit_errors_total',
            'Total number of failed jobs by error kind',
            ['error_kind'],
            registry=self.registry
        )
        self.fetch_seconds = Histogram(
            'robots_audit_fetch_seconds',
            'Time spent fetching a URL, redirects included',
            registry=self.registry
        )
        self.active_workers = Gauge(
            'robots_audit_active_workers',
            'Number of workers currently processing a job',
            registry=self.registry
        )

    def start_server(self):
        """Start the Prometheus metrics HTTP endpoint when enabled."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Read the current value of a metric sample."""
        return self.registry.get_sample_value(name, labels or {}) or 0.0


class AuditMonitor:
    """High-level monitoring interface used by the workers."""

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics = metrics_collector
        self.logger = logging.getLogger(__name__)
        self.start_time = time.time()

    def job_started(self):
        self.metrics.active_workers.inc()

    def job_finished(self, status: str, fetch_time: float, error_kind: Optional[str] = None):
        """Record the outcome of one job."""
        self.metrics.active_workers.dec()
        self.metrics.jobs_total.labels(status=status).inc()
        self.metrics.fetch_seconds.observe(fetch_time)
        if error_kind:
            self.metrics.errors_total.labels(error_kind=error_kind).inc()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the collected metrics."""
        runtime = time.time() - self.start_time
        completed = {
            status: self.metrics.sample('robots_audit_jobs_total', {'status': status})
            for status in ('clean', 'excluded', 'failed')
        }
        total = sum(completed.values())

        return {
            'runtime_seconds': runtime,
            'jobs': completed,
            'urls_per_second': total / runtime if runtime > 0 else 0
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> AuditMonitor:
    """Create the monitor and start the metrics endpoint if requested."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_server()
    return AuditMonitor(metrics_collector)


def log_system_info():
    """Log system and environment information."""
    logger = logging.getLogger(__name__)

    logger.info("=== SYSTEM INFORMATION ===")
    logger.info(f"Platform: {platform.platform()}")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"CPU cores: {psutil.cpu_count()}")
    logger.info(f"Memory: {psutil.virtual_memory().total / 1024**3:.1f} GB")

    for var in ['PATH', 'PYTHONPATH', 'HOME', 'USER']:
        value = os.environ.get(var, 'Not set')
        logger.debug(f"ENV {var}: {value}")
