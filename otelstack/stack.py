"""Start a whole observability stack and tear it down again.

Start order is fixed because later services need the container names of
earlier ones: network -> jaeger, seq -> collector (exports to jaeger and
seq) -> prometheus (scrapes the collector).

Every acquired resource pushes its teardown onto one list. Teardown, on
success or after a failed start, pops that list in reverse so the network
goes last, attempting every step and collecting the errors.
"""
from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

from docker.errors import DockerException

from . import collector, docker_ops, jaeger, prometheus, seq
from .errors import ConfigurationError, LaunchError, StackStartError, TeardownError
from .events import log_event
from .launcher import BackendSpec, ServiceInstance, ServiceLauncher, Teardown
from .query import QueryResult
from .settings import Settings, settings as default_settings

OTLP_ENDPOINT_ENV = "OTEL_EXPORTER_OTLP_ENDPOINT"


@dataclass(frozen=True)
class ServiceToggles:
    metrics: bool = True
    logs: bool = True
    traces: bool = True
    collector: bool = True


class Stack:
    """Collector plus Jaeger, Seq and Prometheus on one private network.

    Example::

        stack = Stack(service_name="checkout")
        teardown = stack.start()
        try:
            stack.set_test_env("grpc")
            ...  # emit telemetry
            traces = stack.get_traces(1, 10).records
        finally:
            teardown()

    A network passed in by the caller is used as-is and never removed.
    """

    def __init__(
        self,
        toggles: ServiceToggles | None = None,
        network: Any = None,
        settings: Settings | None = None,
        client: Any = None,
        service_name: str | None = None,
    ):
        self.toggles = toggles or ServiceToggles()
        self.network = network
        self.settings = settings or default_settings
        self.client = client
        self.service_name = service_name

        self.jaeger: ServiceInstance | None = None
        self.seq: ServiceInstance | None = None
        self.collector: ServiceInstance | None = None
        self.prometheus: ServiceInstance | None = None

        self._owns_network = False
        self._teardowns: list[tuple[str, Teardown]] = []
        self._teardown: Teardown | None = None

    @property
    def services(self) -> dict[str, ServiceInstance]:
        out: dict[str, ServiceInstance] = {}
        for name in ("jaeger", "seq", "collector", "prometheus"):
            inst = getattr(self, name)
            if inst is not None:
                out[name] = inst
        return out

    # --- lifecycle ---

    def start(self) -> Teardown:
        """Start every enabled service; return the stack's teardown.

        Raises StackStartError after unwinding whatever had been started.
        """
        t = self.toggles
        if t.metrics and not t.collector:
            raise ConfigurationError("prometheus scrapes the collector; enable the collector to collect metrics.")

        c = self.client
        try:
            if c is None:
                c = docker_ops._client()
        except DockerException as e:
            raise StackStartError("docker", LaunchError(f"Docker is not available: {e}")) from e
        if not docker_ops.docker_available(c):
            raise StackStartError("docker", LaunchError("Docker is not available. Start the docker daemon and try again."))
        self._teardowns = []

        if self.network is None:
            try:
                network = docker_ops.create_network(c)
            except Exception as e:
                raise StackStartError("network", e) from e
            self.network = network
            self._owns_network = True
            self._teardowns.append(("network", lambda: docker_ops.remove_network(network)))

        if t.traces:
            self.jaeger = self._launch(c, jaeger.SPEC)
        if t.logs:
            self.seq = self._launch(c, seq.SPEC)
        if t.collector:
            self.collector = self._launch(
                c,
                collector.SPEC,
                jaeger_name=self.jaeger.name if self.jaeger else collector.PLACEHOLDER_JAEGER,
                seq_name=self.seq.name if self.seq else collector.PLACEHOLDER_SEQ,
            )
        if t.metrics:
            self.prometheus = self._launch(c, prometheus.SPEC, collector_name=self.collector.name)

        log_event("INFO", f"Stack started on network {self.network.name}: {', '.join(self.services) or 'no services'}")

        def teardown() -> None:
            errors = self._unwind()
            if errors:
                raise TeardownError(errors)

        self._teardown = teardown
        return teardown

    def _launch(self, c: Any, spec: BackendSpec, **backend_args: Any) -> ServiceInstance:
        try:
            instance, teardown = ServiceLauncher(spec, settings=self.settings, client=c).start(
                self.network, **backend_args
            )
        except Exception as e:
            unwind_errors = self._unwind()
            log_event("ERROR", f"could not start: {e}", service_name=spec.key)
            raise StackStartError(spec.key, e, unwind_errors) from e
        except BaseException:
            self._unwind()
            raise
        self._teardowns.append((spec.key, teardown))
        return instance

    def _unwind(self) -> list[BaseException]:
        failed: list[tuple[str, BaseException]] = []
        while self._teardowns:
            name, teardown = self._teardowns.pop()
            try:
                teardown()
            except Exception as e:
                failed.append((name, e))
        self.jaeger = self.seq = self.collector = self.prometheus = None
        if self._owns_network:
            self.network = None
            self._owns_network = False

        # Journal only once every teardown has run.
        for name, e in failed:
            log_event("ERROR", f"error shutting down: {type(e).__name__}: {e}", service_name=name)
        return [e for _, e in failed]

    def __enter__(self) -> Stack:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._teardown is None:
            return
        teardown, self._teardown = self._teardown, None
        try:
            teardown()
        except TeardownError as e:
            if exc is None:
                raise
            log_event("ERROR", str(e))

    # --- ingestion ---

    def otlp_endpoint(self, protocol: str = "grpc") -> str:
        return collector.otlp_endpoint(self._running("collector", self.collector), protocol)

    def set_test_env(self, protocol: str = "grpc", monkeypatch: Any = None) -> str:
        """Point OTEL_EXPORTER_OTLP_ENDPOINT at the collector.

        With pytest's `monkeypatch` the variable is restored after the test.
        """
        endpoint = self.otlp_endpoint(protocol)
        log_event("INFO", f"setting {OTLP_ENDPOINT_ENV} to {endpoint}")
        if monkeypatch is not None:
            monkeypatch.setenv(OTLP_ENDPOINT_ENV, endpoint)
        else:
            os.environ[OTLP_ENDPOINT_ENV] = endpoint
        return endpoint

    # --- queries ---

    def get_traces(
        self,
        expected_traces: int,
        max_attempts: int,
        service: str | None = None,
        cancel: threading.Event | None = None,
        **kwargs: Any,
    ) -> QueryResult:
        return jaeger.get_traces(
            self._running("jaeger", self.jaeger),
            expected_traces,
            max_attempts,
            self._service(service),
            settings=self.settings,
            cancel=cancel,
            **kwargs,
        )

    def get_events(
        self, expected_events: int, max_attempts: int, cancel: threading.Event | None = None, **kwargs: Any
    ) -> QueryResult:
        return seq.get_events(
            self._running("seq", self.seq),
            expected_events,
            max_attempts,
            settings=self.settings,
            cancel=cancel,
            **kwargs,
        )

    def get_metrics(
        self,
        expected_data_points: int,
        max_attempts: int,
        metric_name: str,
        since: timedelta,
        service: str | None = None,
        cancel: threading.Event | None = None,
        **kwargs: Any,
    ) -> QueryResult:
        return prometheus.get_metrics(
            self._running("prometheus", self.prometheus),
            expected_data_points,
            max_attempts,
            metric_name,
            self._service(service),
            since,
            settings=self.settings,
            cancel=cancel,
            **kwargs,
        )

    def _running(self, name: str, instance: ServiceInstance | None) -> ServiceInstance:
        if instance is None:
            raise ConfigurationError(f"{name} is not running; enable it in the stack toggles and start the stack.")
        return instance

    def _service(self, service: str | None) -> str:
        service = service or self.service_name
        if not service:
            raise ConfigurationError("no service name given and the stack has no default service_name.")
        return service


def start_stack(
    metrics: bool = True,
    logs: bool = True,
    traces: bool = True,
    **kwargs: Any,
) -> tuple[Stack, Callable[[], None]]:
    stack = Stack(ServiceToggles(metrics=metrics, logs=logs, traces=traces), **kwargs)
    return stack, stack.start()
