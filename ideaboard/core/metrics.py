from __future__ import annotations

from collections import Counter
from threading import Lock


class MetricsRegistry:
    """In-process counters rendered in the Prometheus text exposition format."""

    HTTP_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)

    def __init__(self) -> None:
        self._lock = Lock()
        self._http_requests_total: Counter[tuple[str, str, str]] = Counter()
        self._http_request_duration_seconds_sum: Counter[tuple[str, str]] = Counter()
        self._http_request_duration_seconds_count: Counter[tuple[str, str]] = Counter()
        self._http_request_duration_seconds_bucket: Counter[tuple[str, str, str]] = (
            Counter()
        )
        self._workflow_events_total: Counter[tuple[str, str]] = Counter()
        self._capability_denials_total: Counter[tuple[str]] = Counter()
        self._rate_limit_rejections_total: Counter[tuple[str]] = Counter()
        self._authz_failures_total: Counter[tuple[str, str]] = Counter()

    def record_http_request(
        self,
        *,
        method: str,
        route_path: str,
        status_code: int,
        duration_seconds: float,
    ) -> None:
        labels = (method.upper(), route_path, str(status_code))
        histogram_key = (method.upper(), route_path)
        with self._lock:
            self._http_requests_total[labels] += 1
            self._http_request_duration_seconds_sum[histogram_key] += max(
                0.0, duration_seconds
            )
            self._http_request_duration_seconds_count[histogram_key] += 1
            for bucket in self.HTTP_DURATION_BUCKETS:
                if duration_seconds <= bucket:
                    self._http_request_duration_seconds_bucket[
                        (histogram_key[0], histogram_key[1], str(bucket))
                    ] += 1
            self._http_request_duration_seconds_bucket[
                (histogram_key[0], histogram_key[1], "+Inf")
            ] += 1

    def record_workflow_event(self, *, workflow: str, outcome: str) -> None:
        with self._lock:
            self._workflow_events_total[(workflow, outcome)] += 1

    def record_capability_denial(self, *, capability: str) -> None:
        with self._lock:
            self._capability_denials_total[(capability,)] += 1

    def record_rate_limit_rejection(self, *, scope: str) -> None:
        with self._lock:
            self._rate_limit_rejections_total[(scope,)] += 1

    def record_authz_failure(self, *, scope: str, status_code: int) -> None:
        with self._lock:
            self._authz_failures_total[(scope, str(status_code))] += 1

    def workflow_count(self, *, workflow: str, outcome: str) -> int:
        with self._lock:
            return self._workflow_events_total[(workflow, outcome)]

    def render_prometheus(self) -> str:
        with self._lock:
            lines: list[str] = []

            _header(lines, "http_requests_total", "counter", "Total HTTP requests by route.")
            for (method, path, status), value in sorted(self._http_requests_total.items()):
                lines.append(
                    f"ideaboard_http_requests_total{_labels(method=method, path=path, status=status)} {value}"
                )

            _header(
                lines,
                "http_request_duration_seconds",
                "histogram",
                "HTTP request latency histogram.",
            )
            for (method, path, le), value in sorted(
                self._http_request_duration_seconds_bucket.items()
            ):
                lines.append(
                    f"ideaboard_http_request_duration_seconds_bucket{_labels(method=method, path=path, le=le)} {value}"
                )
            for (method, path), value in sorted(
                self._http_request_duration_seconds_count.items()
            ):
                lines.append(
                    f"ideaboard_http_request_duration_seconds_count{_labels(method=method, path=path)} {value}"
                )
            for (method, path), value in sorted(
                self._http_request_duration_seconds_sum.items()
            ):
                lines.append(
                    f"ideaboard_http_request_duration_seconds_sum{_labels(method=method, path=path)} {value}"
                )

            _header(
                lines,
                "workflow_events_total",
                "counter",
                "Vote, promotion and progress workflow outcomes.",
            )
            for (workflow, outcome), value in sorted(self._workflow_events_total.items()):
                lines.append(
                    f"ideaboard_workflow_events_total{_labels(workflow=workflow, outcome=outcome)} {value}"
                )

            _header(
                lines,
                "capability_denials_total",
                "counter",
                "Requests refused by the capability check.",
            )
            for (capability,), value in sorted(self._capability_denials_total.items()):
                lines.append(
                    f"ideaboard_capability_denials_total{_labels(capability=capability)} {value}"
                )

            _header(
                lines,
                "rate_limit_rejections_total",
                "counter",
                "Rate-limited HTTP requests.",
            )
            for (scope,), value in sorted(self._rate_limit_rejections_total.items()):
                lines.append(
                    f"ideaboard_rate_limit_rejections_total{_labels(scope=scope)} {value}"
                )

            _header(
                lines,
                "authz_failures_total",
                "counter",
                "Authentication/authorization failures on sensitive paths.",
            )
            for (scope, status), value in sorted(self._authz_failures_total.items()):
                lines.append(
                    f"ideaboard_authz_failures_total{_labels(scope=scope, status=status)} {value}"
                )

            return "\n".join(lines) + "\n"


def _header(lines: list[str], name: str, metric_type: str, help_text: str) -> None:
    lines.append(f"# HELP ideaboard_{name} {help_text}")
    lines.append(f"# TYPE ideaboard_{name} {metric_type}")


def _labels(**labels: str) -> str:
    rendered = ",".join(f'{key}="{_escape(value)}"' for key, value in labels.items())
    return "{" + rendered + "}"


def _escape(raw: str) -> str:
    return raw.replace("\\", "\\\\").replace('"', '\\"')


metrics_registry = MetricsRegistry()
