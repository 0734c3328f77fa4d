"""Generic launcher for one containerized backend.

A launch goes: render config -> create container on the stack network ->
copy config in -> start -> wait for the readiness signal -> resolve the
host port of every logical port. Only once all of that succeeded is the
teardown closure handed back; anything created before a failure is removed
before the error propagates.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Union

from docker.errors import DockerException

from . import docker_ops
from .errors import ConfigurationError, LaunchError, PortResolutionError, ReadinessTimeoutError
from .events import log_event
from .settings import Settings, settings as default_settings

Teardown = Callable[[], None]


@dataclass(frozen=True)
class LogLine:
    text: str


@dataclass(frozen=True)
class ListeningPort:
    port: int


ReadySignal = Union[LogLine, ListeningPort]


@dataclass(frozen=True)
class BackendSpec:
    key: str
    ports: tuple[int, ...]
    ready: ReadySignal
    env: dict[str, str] = field(default_factory=dict)
    config_path: str | None = None
    render_config: Callable[..., str] | None = None

    def image(self, s: Settings) -> str:
        return getattr(s, f"{self.key}_image")


@dataclass(frozen=True)
class ServiceInstance:
    service: str
    name: str
    container_id: str
    host: str
    ports: Mapping[int, int]
    ready: bool = True

    def __post_init__(self) -> None:
        object.__setattr__(self, "ports", MappingProxyType(dict(self.ports)))

    def url(self, port: int, path: str = "") -> str:
        return f"http://{self.host}:{self.ports[port]}{path}"


class ServiceLauncher:
    def __init__(self, spec: BackendSpec, settings: Settings | None = None, client: Any = None):
        self.spec = spec
        self.settings = settings or default_settings
        self.client = client

    def start(self, network: Any = None, **backend_args: Any) -> tuple[ServiceInstance, Teardown]:
        """Start the backend and block until it is ready.

        If `network` is None a private network is created and removed again
        by the returned teardown.
        """
        spec = self.spec
        s = self.settings
        c = self.client
        if c is None:
            try:
                c = docker_ops._client()
            except DockerException as e:
                raise LaunchError(f"Docker is not available: {e}", service=spec.key) from e

        config = self._render(backend_args)

        own_network = None
        if network is None:
            network = own_network = docker_ops.create_network(c)

        container = None
        try:
            container = docker_ops.create_container(
                c,
                service=spec.key,
                image=spec.image(s),
                network_name=network.name,
                ports=spec.ports,
                env=spec.env,
            )
            try:
                if config is not None and spec.config_path:
                    docker_ops.copy_file(container, spec.config_path, config)
                container.start()
            except DockerException as e:
                raise LaunchError(f"{spec.key}: could not start container: {e}", service=spec.key) from e
            log_event("INFO", f"Started container {container.name} from image {spec.image(s)}", service_name=spec.key)

            self._wait_ready(container)
            ports = self._resolve_ports(container)
        except BaseException:
            self._cleanup(container, own_network)
            raise

        instance = ServiceInstance(
            service=spec.key,
            name=container.name,
            container_id=container.id,
            host=s.host,
            ports=ports,
        )
        log_event("INFO", f"Ready at {instance.name} with ports {ports}", service_name=spec.key)

        def teardown() -> None:
            try:
                docker_ops.remove_container(container, stop_timeout=s.stop_timeout_s)
                log_event("INFO", f"Removed container {instance.name}", service_name=spec.key)
            finally:
                if own_network is not None:
                    docker_ops.remove_network(own_network)

        return instance, teardown

    def _render(self, backend_args: dict[str, Any]) -> str | None:
        if self.spec.render_config is None:
            return None
        try:
            return self.spec.render_config(**backend_args)
        except TypeError as e:
            raise ConfigurationError(f"{self.spec.key}: could not render config: {e}") from e

    def _wait_ready(self, container: Any) -> None:
        ready = self.spec.ready
        s = self.settings
        try:
            if isinstance(ready, LogLine):
                docker_ops.wait_for_log(container, ready.text, s.startup_timeout_s, s.readiness_poll_s)
            else:
                docker_ops.wait_for_port(container, s.host, ready.port, s.startup_timeout_s, s.readiness_poll_s)
        except DockerException as e:
            raise ReadinessTimeoutError(
                f"{self.spec.key}: lost the container while waiting for readiness: {e}", service=self.spec.key
            ) from e

    def _resolve_ports(self, container: Any) -> dict[int, int]:
        ports: dict[int, int] = {}
        for port in self.spec.ports:
            try:
                ports[port] = docker_ops.mapped_port(container, port)
            except DockerException as e:
                raise PortResolutionError(
                    f"{self.spec.key}: could not retrieve port {port}: {e}", service=self.spec.key
                ) from e
        return ports

    def _cleanup(self, container: Any, own_network: Any) -> None:
        if container is not None:
            try:
                docker_ops.remove_container(container, stop_timeout=self.settings.stop_timeout_s)
            except Exception as e:
                log_event("ERROR", f"could not remove container {container.name}: {e}", service_name=self.spec.key)
        if own_network is not None:
            try:
                docker_ops.remove_network(own_network)
            except Exception as e:
                log_event("ERROR", f"could not remove network {own_network.name}: {e}", service_name=self.spec.key)
