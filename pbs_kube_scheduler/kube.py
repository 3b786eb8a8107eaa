import logging
import time
from contextlib import contextmanager

import urllib3
from kubernetes import client, watch
from kubernetes.client.rest import ApiException

from .errors import KubeError

logger = logging.getLogger(__name__)

JOB_ID_ANNOTATION = "JobID"
UNSCHEDULED_SELECTOR = "spec.nodeName="


def job_id_of(pod) -> str:
    annotations = pod.metadata.annotations or {}
    return annotations.get(JOB_ID_ANNOTATION, "")


@contextmanager
def api_call(what):
    try:
        yield
    except ApiException as e:
        raise KubeError(f"{what}: {e.status} {e.reason}", status=e.status) from e
    except urllib3.exceptions.HTTPError as e:
        raise KubeError(f"{what}: {e}") from e


class KubeClient:
    """CoreV1Api calls the scheduler makes, scoped to one namespace."""

    def __init__(self, api: client.CoreV1Api, namespace="default", reconnect_delay=5.0,
                 watch_timeout=60, bind_attempts=5, bind_backoff=0.5,
                 watch_factory=watch.Watch, sleep=time.sleep):
        self.api = api
        self.namespace = namespace
        self.reconnect_delay = reconnect_delay
        self.watch_timeout = watch_timeout
        self.bind_attempts = bind_attempts
        self.bind_backoff = bind_backoff
        self.watch_factory = watch_factory
        self.sleep = sleep

    # ============================================================
    # Reads
    # ============================================================
    def list_unscheduled_pods(self) -> list:
        with api_call("list unscheduled pods"):
            return self.api.list_namespaced_pod(
                self.namespace, field_selector=UNSCHEDULED_SELECTOR
            ).items

    def read_pod(self, name: str):
        """Fresh copy of a pod, or None if it no longer exists."""
        try:
            with api_call(f"read pod {name}"):
                return self.api.read_namespaced_pod(name, self.namespace)
        except KubeError as e:
            if e.status == 404:
                return None
            raise

    def watch_unscheduled_pods(self, stop_event):
        """
        Yield pods from ADDED events until stop_event is set.

        A failed or broken stream is logged and reopened after
        reconnect_delay; a stream that simply timed out is reopened at once.
        """
        while not stop_event.is_set():
            try:
                yield from self._stream_added(stop_event)
                continue
            except ApiException as e:
                logger.warning(f"[watch] stream error {e.status} {e.reason}, reconnecting in {self.reconnect_delay}s")
            except Exception as e:  # transport and decode errors from the stream
                logger.warning(f"[watch] stream failed: {e!r}, reconnecting in {self.reconnect_delay}s")
            stop_event.wait(self.reconnect_delay)

    def _stream_added(self, stop_event):
        w = self.watch_factory()
        try:
            for event in w.stream(self.api.list_namespaced_pod, self.namespace,
                                  field_selector=UNSCHEDULED_SELECTOR,
                                  timeout_seconds=self.watch_timeout,
                                  _request_timeout=self.watch_timeout + 10):
                if stop_event.is_set():
                    return
                kind = event.get("type")
                if kind == "ERROR":
                    raw = event.get("raw_object") or {}
                    raise ApiException(status=raw.get("code"), reason=raw.get("message"))
                pod = event.get("object")
                if kind != "ADDED" or pod is None or not hasattr(pod, "spec"):
                    continue
                yield pod
        finally:
            w.stop()

    # ============================================================
    # Writes
    # ============================================================
    def annotate_job_id(self, pod, job_id: str):
        name = pod.metadata.name
        # dict bodies are sent as application/strategic-merge-patch+json
        body = {"metadata": {"annotations": {JOB_ID_ANNOTATION: job_id}}}
        with api_call(f"annotate pod {name} with job {job_id}"):
            self.api.patch_namespaced_pod(name, self.namespace, body)
        logger.info(f"Associating job {job_id} to pod {name}")

    def bind_pod(self, pod, node_name: str):
        name = pod.metadata.name
        target = client.V1ObjectReference(api_version="v1", kind="Node", name=node_name)
        meta = client.V1ObjectMeta(name=name)
        body = client.V1Binding(api_version="v1", kind="Binding", target=target, metadata=meta)

        delay = self.bind_backoff
        for attempt in range(1, self.bind_attempts + 1):
            logger.debug(f"[bind] attempt {attempt} binding {name} -> {node_name}")
            try:
                with api_call(f"bind pod {name} to {node_name}"):
                    resp = self.api.create_namespaced_binding(
                        self.namespace, body, _preload_content=False
                    )
            except KubeError as e:
                if e.status in (500, 503) and attempt < self.bind_attempts:
                    logger.warning(f"[bind] transient error {e.status} for {name}, retrying in {delay}s")
                    self.sleep(delay)
                    delay *= 2
                    continue
                raise
            if resp.status != 201:
                raise KubeError(f"bind pod {name} to {node_name}: unexpected status {resp.status}",
                                status=resp.status)
            return

    def post_event(self, body: dict):
        with api_call(f"post event {body.get('reason')}"):
            resp = self.api.create_namespaced_event(self.namespace, body, _preload_content=False)
        if resp.status != 201:
            raise KubeError(f"post event {body.get('reason')}: unexpected status {resp.status}",
                            status=resp.status)
