import logging
import socket

from .errors import BindError, KubeError

logger = logging.getLogger(__name__)


def hostname_to_ip(hostname: str, resolver=socket.gethostbyname) -> str:
    try:
        addr = resolver(hostname)
    except OSError as e:
        raise BindError(f"hostname {hostname} to ip error: {e}") from e
    if not addr:
        raise BindError(f"no ip for host {hostname}")
    return addr


class Binder:
    def __init__(self, kube, notifier, resolve_ip=False, resolver=socket.gethostbyname):
        self.kube = kube
        self.notifier = notifier
        self.resolve_ip = resolve_ip
        self.resolver = resolver

    def bind(self, pod, host: str):
        name = pod.metadata.name
        node_name = host
        if self.resolve_ip:
            node_name = hostname_to_ip(host, self.resolver)
            logger.info(f"[bind] host {host} resolved to {node_name}")

        logger.info(f"[bind] binding pod {name} to node {node_name}")
        try:
            self.kube.bind_pod(pod, node_name)
        except KubeError as e:
            raise BindError(f"bind pod {name} to node {node_name} error: {e}") from e

        msg = f"Successfully assigned {name} to {host}"
        logger.info(msg)
        self.notifier.scheduled(pod, msg)
