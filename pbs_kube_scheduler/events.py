import logging
from datetime import datetime, timezone

from .errors import KubeError

logger = logging.getLogger(__name__)

DEFAULT_COMPONENT = "PBS-scheduler"


def rfc3339_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def build_event(pod, reason: str, event_type: str, message: str, namespace: str,
                component: str = DEFAULT_COMPONENT, timestamp: str = None) -> dict:
    name = pod.metadata.name
    timestamp = timestamp or rfc3339_now()
    return {
        "apiVersion": "v1",
        "kind": "Event",
        "metadata": {"generateName": f"{name}-", "namespace": namespace},
        "count": 1,
        "message": message,
        "reason": reason,
        "type": event_type,
        "source": {"component": component},
        "involvedObject": {
            "kind": "Pod",
            "name": name,
            "namespace": namespace,
            "uid": pod.metadata.uid,
        },
        "firstTimestamp": timestamp,
        "lastTimestamp": timestamp,
    }


class EventNotifier:
    """Publishes scheduling outcomes as events attached to the pod."""

    def __init__(self, kube, component=DEFAULT_COMPONENT, clock=rfc3339_now):
        self.kube = kube
        self.component = component
        self.clock = clock

    def scheduled(self, pod, message: str) -> bool:
        return self._post(pod, "Scheduled", "Normal", message)

    def failed_scheduling(self, pod, message: str) -> bool:
        return self._post(pod, "FailedScheduling", "Warning", message)

    def _post(self, pod, reason, event_type, message) -> bool:
        body = build_event(pod, reason, event_type, message, self.kube.namespace,
                           component=self.component, timestamp=self.clock())
        try:
            self.kube.post_event(body)
        except KubeError as e:
            logger.warning(f"[event] {reason} for pod {pod.metadata.name} not posted: {e}")
            return False
        return True
