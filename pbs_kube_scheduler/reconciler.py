import logging
import threading

from .errors import KubeError, SchedulerError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 20.0


class Reconciler:
    """
    Runs the two triggers that feed pods to the fit engine.

    The watch thread handles pods as the API server reports them; the sweep
    thread relists every unscheduled pod each interval, so a missed watch
    event only delays a pod until the next sweep. Both go through one lock,
    so at most one fit/bind sequence is in flight in the whole process.
    """

    def __init__(self, kube, fit_engine, binder, interval=DEFAULT_INTERVAL,
                 watch_settle_seconds=2.0, lock=None):
        self.kube = kube
        self.fit_engine = fit_engine
        self.binder = binder
        self.interval = interval
        self.watch_settle_seconds = watch_settle_seconds
        self.lock = lock or threading.Lock()
        self.stop_event = threading.Event()
        self._threads = []

    # ============================================================
    # Per-pod work (callers hold the lock)
    # ============================================================
    def schedule_pod(self, pod) -> bool:
        name = pod.metadata.name
        logger.info(f"schedule pod {name}")
        node = self.fit_engine.fit(pod)
        if not node:
            return False
        self.binder.bind(pod, node)
        return True

    def _schedule_logged(self, pod) -> bool:
        name = pod.metadata.name
        try:
            return self.schedule_pod(pod)
        except SchedulerError as e:
            logger.error(f"schedule pod {name} error: {e}")
        except Exception:
            logger.exception(f"unexpected error scheduling pod {name}")
        return False

    # ============================================================
    # Triggers
    # ============================================================
    def handle_added(self, pod) -> bool:
        name = pod.metadata.name
        with self.lock:
            # give the pod a moment to settle, unless we are shutting down
            if self.stop_event.wait(self.watch_settle_seconds):
                return False
            # the sweep may have annotated or bound it since the event was sent
            try:
                pod = self.kube.read_pod(name)
            except KubeError as e:
                logger.error(f"read pod {name} error: {e}")
                return False
            if pod is None or pod.spec.node_name:
                logger.debug(f"pod {name} is gone or already scheduled")
                return False
            return self._schedule_logged(pod)

    def sweep(self) -> int:
        with self.lock:
            try:
                pods = self.kube.list_unscheduled_pods()
            except KubeError as e:
                logger.error(f"get unscheduled pods error: {e}")
                return 0
            self.fit_engine.retain(pods)
            bound = 0
            for pod in pods:
                if self.stop_event.is_set():
                    break
                if pod.spec.node_name:
                    continue
                if self._schedule_logged(pod):
                    bound += 1
            return bound

    def track_unscheduled_pods(self):
        logger.info("Watching for unscheduled pods")
        for pod in self.kube.watch_unscheduled_pods(self.stop_event):
            try:
                self.handle_added(pod)
            except Exception:
                logger.exception(f"unexpected error handling added pod {pod.metadata.name}")
        logger.info("Stopped scheduler.")

    def resolve_unscheduled_pods(self):
        while not self.stop_event.wait(self.interval):
            logger.info("Starting scheduler iteration")
            try:
                bound = self.sweep()
            except Exception:
                logger.exception("unexpected error in scheduler iteration")
                continue
            logger.info(f"End of iteration, {bound} pod(s) bound")
        logger.info("Stopped reconciliation loop.")

    # ============================================================
    # Lifecycle
    # ============================================================
    def start(self):
        self.stop_event.clear()
        self._threads = [
            threading.Thread(target=self.track_unscheduled_pods, name="watch", daemon=True),
            threading.Thread(target=self.resolve_unscheduled_pods, name="sweep", daemon=True),
        ]
        for t in self._threads:
            t.start()

    def stop(self):
        self.stop_event.set()

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def wait(self, timeout=None) -> bool:
        """Join both threads. Returns True once both have exited."""
        for t in self._threads:
            t.join(timeout)
        return not self.running
