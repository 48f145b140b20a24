"""
Prometheus metrics for the machine events service.
"""
from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
import psutil
import structlog
import os

log = structlog.get_logger()


class Metrics:
    """
    Centralized metrics for the machine events service.
    """

    def __init__(self, service_name: str = "machine-events", version: str = "0.1.0", registry=None):
        self.service_name = service_name
        self.version = version
        self.registry = registry or CollectorRegistry()

        # HTTP Metrics
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["service", "method", "path", "status"],
            registry=self.registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["service", "method", "path"],
            registry=self.registry,
        )

        self.http_requests_active = Gauge(
            "http_requests_active",
            "Number of active HTTP requests",
            ["service"],
            registry=self.registry,
        )
        self.http_requests_active.labels(service=service_name).set(0)

        # Application Info
        self.app_info = Info(
            "app",
            "Application information",
            registry=self.registry,
        )
        self.app_info.info({"service": service_name, "version": version})

        self.app_up = Gauge(
            "app_up",
            "Application up status (1=up, 0=down)",
            ["service", "version"],
            registry=self.registry,
        )
        self.app_up.labels(service=service_name, version=version).set(1)

        # Business Metrics - batch reconciliation
        self.batches_total = Counter(
            "machine_events_batches_total",
            "Total event batches reconciled",
            registry=self.registry,
        )

        self.events_total = Counter(
            "machine_events_events_total",
            "Events processed, by reconciliation outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.batch_duration = Histogram(
            "machine_events_batch_duration_seconds",
            "Time to reconcile and commit one batch",
            registry=self.registry,
        )

        # System Metrics
        self._setup_process_metrics()

    def _setup_process_metrics(self):
        """Set up process-level metrics using psutil."""
        self.process_cpu_seconds = Counter(
            "process_cpu_seconds_total",
            "Total CPU time consumed by process",
            ["service"],
            registry=self.registry,
        )

        self.process_memory_bytes = Gauge(
            "process_resident_memory_bytes",
            "Resident memory size in bytes",
            ["service"],
            registry=self.registry,
        )

        self.process_open_fds = Gauge(
            "process_open_fds",
            "Number of open file descriptors",
            ["service"],
            registry=self.registry,
        )

        self._last_cpu_total = 0.0
        self.update_system_metrics()

    def update_system_metrics(self):
        """Update system metrics from psutil."""
        try:
            process = psutil.Process(os.getpid())

            cpu_times = process.cpu_times()
            cpu_total = cpu_times.user + cpu_times.system
            # Counters only go up; add the delta since the last sample
            cpu_diff = cpu_total - self._last_cpu_total
            if cpu_diff > 0:
                self.process_cpu_seconds.labels(service=self.service_name).inc(cpu_diff)
            self._last_cpu_total = cpu_total

            memory_info = process.memory_info()
            self.process_memory_bytes.labels(service=self.service_name).set(memory_info.rss)

            # num_fds() is POSIX only
            if hasattr(process, "num_fds"):
                self.process_open_fds.labels(service=self.service_name).set(process.num_fds())

        except psutil.Error as e:
            log.debug("metrics.system_update_failed", error=str(e))

    def record_batch(self, accepted: int, deduped: int, updated: int, rejected: int, duration: float):
        """Record the outcome of one reconciled batch."""
        self.batches_total.inc()
        self.events_total.labels(outcome="accepted").inc(accepted)
        self.events_total.labels(outcome="deduped").inc(deduped)
        self.events_total.labels(outcome="updated").inc(updated)
        self.events_total.labels(outcome="rejected").inc(rejected)
        self.batch_duration.observe(duration)
