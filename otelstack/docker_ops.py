from __future__ import annotations

import io
import posixpath
import secrets
import socket
import tarfile
import time
from typing import Any

import docker
from docker.errors import DockerException, ImageNotFound, NotFound

from .errors import LaunchError, NetworkCreationError, PortResolutionError, ReadinessTimeoutError
from .events import log_event


LABEL = "otelstack.service"


def _client() -> docker.DockerClient:
    return docker.from_env()


def docker_available(client: Any = None) -> bool:
    try:
        c = client or _client()
        c.ping()
        return True
    except DockerException:
        return False


def unique_name(prefix: str) -> str:
    return f"{prefix}-{secrets.token_hex(4)}"


def create_network(client: Any = None) -> Any:
    """Create a fresh bridge network for one stack."""
    name = unique_name("otelstack")
    try:
        c = client or _client()
        network = c.networks.create(name, driver="bridge", labels={LABEL: "network"})
    except DockerException as e:
        raise NetworkCreationError(f"could not create network {name}: {e}") from e
    log_event("INFO", f"Created docker network '{name}'.")
    return network


def remove_network(network: Any) -> None:
    try:
        network.remove()
    except NotFound:
        return
    log_event("INFO", f"Removed docker network '{network.name}'.")


def create_container(
    client: Any,
    service: str,
    image: str,
    network_name: str,
    ports: tuple[int, ...],
    env: dict[str, str] | None = None,
) -> Any:
    """Create (but do not start) a container attached to the stack network.

    Every port is published on an ephemeral host port.
    """
    name = unique_name(f"otelstack-{service}")
    kwargs: dict[str, Any] = dict(
        detach=True,
        name=name,
        environment=env or {},
        network=network_name,
        ports={f"{p}/tcp": None for p in ports},
        labels={LABEL: service},
    )
    try:
        try:
            return client.containers.create(image, **kwargs)
        except ImageNotFound:
            log_event("INFO", f"Pulling image {image}", service_name=service)
            client.images.pull(image)
            return client.containers.create(image, **kwargs)
    except DockerException as e:
        raise LaunchError(f"{service}: could not create container from image {image}: {e}", service=service) from e


def copy_file(container: Any, path: str, content: str, mode: int = 0o644) -> None:
    """Copy a text file into a container before it starts."""
    data = content.encode("utf-8")
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as tar:
        info = tarfile.TarInfo(name=posixpath.basename(path))
        info.size = len(data)
        info.mode = mode
        info.mtime = int(time.time())
        tar.addfile(info, io.BytesIO(data))
    if not container.put_archive(posixpath.dirname(path), buf.getvalue()):
        raise LaunchError(f"could not copy {path} into container {container.name}")


def remove_container(container: Any, stop_timeout: int = 30) -> None:
    """Stop and remove a container. Removal is attempted even if stop fails."""
    try:
        try:
            container.stop(timeout=stop_timeout)
        finally:
            container.remove(force=True)
    except NotFound:
        return


def container_exited(container: Any) -> bool:
    container.reload()
    return container.status in {"exited", "dead"}


def mapped_port(container: Any, port: int) -> int:
    """Host port docker assigned to a container's tcp port."""
    container.reload()
    bindings = (container.attrs.get("NetworkSettings") or {}).get("Ports") or {}
    entries = bindings.get(f"{port}/tcp") or []
    for entry in entries:
        host_port = entry.get("HostPort")
        if host_port:
            return int(host_port)
    raise PortResolutionError(f"{container.name}: port {port}/tcp is not published")


def port_is_listening(host: str, port: int, timeout_s: float = 1.0) -> bool:
    try:
        with socket.create_connection((host, port), timeout=timeout_s) as sock:
            # docker-proxy accepts the connection and then closes it when nothing listens in the container.
            sock.settimeout(0.2)
            try:
                return sock.recv(1) != b""
            except socket.timeout:
                return True
    except OSError:
        return False


def wait_for_log(container: Any, text: str, timeout_s: float, poll_s: float = 0.5) -> None:
    deadline = time.monotonic() + timeout_s
    while True:
        logs = container.logs(stdout=True, stderr=True)
        if text in logs.decode("utf-8", errors="replace"):
            return
        if container_exited(container):
            raise ReadinessTimeoutError(f"{container.name}: exited before logging {text!r}")
        if time.monotonic() >= deadline:
            raise ReadinessTimeoutError(f"{container.name}: did not log {text!r} within {timeout_s}s")
        time.sleep(poll_s)


def wait_for_port(container: Any, host: str, port: int, timeout_s: float, poll_s: float = 0.5) -> None:
    deadline = time.monotonic() + timeout_s
    while True:
        try:
            host_port = mapped_port(container, port)
        except PortResolutionError:
            host_port = None
        if host_port is not None and port_is_listening(host, host_port):
            return
        if container_exited(container):
            raise ReadinessTimeoutError(f"{container.name}: exited before port {port} was listening")
        if time.monotonic() >= deadline:
            raise ReadinessTimeoutError(f"{container.name}: port {port} not listening within {timeout_s}s")
        time.sleep(poll_s)
