from __future__ import annotations

import io
import tarfile
from typing import Any

import pytest
from docker.errors import APIError, NotFound

from otelstack import docker_ops
from otelstack.launcher import ServiceInstance
from otelstack.settings import Settings

READY_LOGS = (
    b'{"level":"info","msg":"Health Check state change","status":"ready"}\n'
    b"Everything is ready. Begin running and processing data.\n"
)


class FakeNetwork:
    def __init__(self, client: "FakeDockerClient", name: str):
        self.client = client
        self.name = name
        self.removed = False

    def remove(self) -> None:
        self.client.calls.append(("remove_network", self.name))
        if self.client.fail_network_remove:
            raise APIError("network busy")
        self.removed = True


class FakeContainer:
    def __init__(self, client: "FakeDockerClient", image: str, kwargs: dict[str, Any]):
        self.client = client
        self.image = image
        self.kwargs = kwargs
        self.name = kwargs["name"]
        self.id = f"id-{self.name}"
        self.service = kwargs["labels"][docker_ops.LABEL]
        self.status = "created"
        self.attrs: dict[str, Any] = {"NetworkSettings": {"Ports": {}}}
        self.archives: list[tuple[str, bytes]] = []
        self.removed = False

    @property
    def failure(self) -> str | None:
        return self.client.fail.get(self.service)

    def put_archive(self, path: str, data: bytes) -> bool:
        self.archives.append((path, data))
        return True

    def start(self) -> None:
        if self.failure == "start":
            raise APIError("could not start")
        self.status = "running"
        ports = list(self.kwargs["ports"])
        if self.failure == "ports":
            ports = ports[:1]
        bindings = {}
        for p in ports:
            bindings[p] = [{"HostIp": "0.0.0.0", "HostPort": str(self.client.next_port())}]
        if self.failure == "ready":
            self.status = "exited"
            bindings = {}
        self.attrs["NetworkSettings"]["Ports"] = bindings

    def reload(self) -> None:
        if self.removed:
            raise NotFound("gone")

    def logs(self, stdout: bool = True, stderr: bool = True) -> bytes:
        if self.failure == "ready":
            return b"panic: bad config\n"
        return READY_LOGS

    def stop(self, timeout: int = 10) -> None:
        self.client.calls.append(("stop", self.service))
        if self.client.fail_stop.get(self.service):
            raise APIError("could not stop")

    def remove(self, force: bool = False) -> None:
        self.client.calls.append(("remove", self.service))
        if self.client.fail_remove.get(self.service):
            raise APIError("could not remove")
        self.removed = True

    def config_text(self) -> str:
        path, data = self.archives[-1]
        with tarfile.open(fileobj=io.BytesIO(data)) as tar:
            member = tar.getmembers()[0]
            return tar.extractfile(member).read().decode("utf-8")


class FakeContainers:
    def __init__(self, client: "FakeDockerClient"):
        self.client = client

    def create(self, image: str, **kwargs: Any) -> FakeContainer:
        service = kwargs["labels"][docker_ops.LABEL]
        if self.client.fail.get(service) == "create":
            raise APIError("no such image")
        if self.client.fail.get(service) == "disconnect":
            raise ConnectionError("connection to the docker daemon was reset")
        cont = FakeContainer(self.client, image, kwargs)
        self.client.containers_created.append(cont)
        self.client.calls.append(("create", service))
        return cont


class FakeNetworks:
    def __init__(self, client: "FakeDockerClient"):
        self.client = client

    def create(self, name: str, **kwargs: Any) -> FakeNetwork:
        if self.client.fail_network_create:
            raise APIError("address pools exhausted")
        net = FakeNetwork(self.client, name)
        self.client.networks_created.append(net)
        self.client.calls.append(("create_network", name))
        return net


class FakeImages:
    def pull(self, image: str) -> None:
        return None


class FakeDockerClient:
    """Just enough of docker.DockerClient for the launcher and stack.

    `fail` maps a service key to the step that should break:
    create | disconnect | start | ready | ports. `disconnect` raises an
    error that is not a DockerException, as the SDK does when the daemon
    connection drops.
    """

    def __init__(self, fail: dict[str, str] | None = None, alive: bool = True):
        self.fail = dict(fail or {})
        self.fail_remove: dict[str, bool] = {}
        self.fail_stop: dict[str, bool] = {}
        self.fail_network_create = False
        self.fail_network_remove = False
        self.alive = alive
        self.calls: list[tuple[str, str]] = []
        self.containers_created: list[FakeContainer] = []
        self.networks_created: list[FakeNetwork] = []
        self.containers = FakeContainers(self)
        self.networks = FakeNetworks(self)
        self.images = FakeImages()
        self._port = 32767

    def ping(self) -> bool:
        if not self.alive:
            raise APIError("daemon unreachable")
        return True

    def next_port(self) -> int:
        self._port += 1
        return self._port

    def container(self, service: str) -> FakeContainer:
        for c in self.containers_created:
            if c.service == service:
                return c
        raise KeyError(service)


@pytest.fixture
def fast_settings() -> Settings:
    return Settings(
        host="localhost",
        startup_timeout_s=0.2,
        stop_timeout_s=1,
        readiness_poll_s=0.01,
        poll_interval_s=2.0,
        http_timeout_s=1.0,
        event_db=None,
    )


@pytest.fixture
def fake_docker(monkeypatch) -> FakeDockerClient:
    # Nothing actually listens on the fake host ports.
    monkeypatch.setattr(docker_ops, "port_is_listening", lambda host, port, timeout_s=1.0: True)
    return FakeDockerClient()


@pytest.fixture
def jaeger_instance() -> ServiceInstance:
    return ServiceInstance(
        service="jaeger",
        name="otelstack-jaeger-0001",
        container_id="c-jaeger",
        host="localhost",
        ports={16686: 41001, 14268: 41002, 6831: 41003, 4317: 41004},
    )


@pytest.fixture
def seq_instance() -> ServiceInstance:
    return ServiceInstance(
        service="seq", name="otelstack-seq-0001", container_id="c-seq", host="localhost", ports={80: 42001, 5341: 42002}
    )


@pytest.fixture
def prometheus_instance() -> ServiceInstance:
    return ServiceInstance(
        service="prometheus",
        name="otelstack-prometheus-0001",
        container_id="c-prom",
        host="localhost",
        ports={9090: 43001},
    )
