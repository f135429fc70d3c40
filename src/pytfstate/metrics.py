from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, CONTENT_TYPE_LATEST, generate_latest

from .lock import LockTable

# Methods outside this set share one label so clients cannot grow the series count
METHOD_LABELS = frozenset({'GET', 'POST', 'LOCK', 'UNLOCK', 'HEAD'})
OTHER_METHOD = 'OTHER'

class Metrics:
    """Prometheus metrics of one application, kept on their own registry."""
    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else CollectorRegistry()

        self.requests_total = Counter(
            'http_requests_total',
            'Total number of HTTP requests',
            ['method', 'status'],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration in seconds',
            ['method'],
            registry=self.registry,
        )
        self.locks_active = Gauge(
            'tfstate_locks_active',
            'Number of currently held state locks',
            registry=self.registry,
        )

    def track_locks(self, locks: LockTable) -> None:
        # Sampled on every scrape, so the lock table stays free of metrics calls
        self.locks_active.set_function(lambda: len(locks))

    def observe_request(self, method: str, status_code: int, duration: float) -> None:
        method = method if method in METHOD_LABELS else OTHER_METHOD
        self.requests_total.labels(method=method, status=str(status_code)).inc()
        self.request_duration.labels(method=method).observe(duration)

    def render(self) -> tuple[bytes, str]:
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
