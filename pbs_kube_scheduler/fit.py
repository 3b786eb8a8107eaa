"""
Pod resource aggregation and the per-pod fit against PBS.

Quantities follow the Kubernetes forms: a decimal number with an optional
exponent (``1e3``) or unit suffix (``250m``, ``512Mi``). Signed numbers and
the ``.5`` shorthand are rejected as malformed.
"""
import logging
import re
import time
from decimal import Decimal

from .errors import KubeError, ResourceError
from .kube import JOB_ID_ANNOTATION, job_id_of
from .models import ResourceRequest

logger = logging.getLogger(__name__)

QUANTITY = re.compile(
    r"^([0-9]+(?:\.[0-9]+)?)(?:([eE][+-]?[0-9]+)|(Ki|Mi|Gi|Ti|Pi|Ei|m|k|M|G|T|P|E))?$"
)

# MB per unit; other valid memory units are ignored
MEMORY_UNITS = {"Mi": 1, "Gi": 1024}


# ============================================================
# Resource parsing
# ============================================================
def _quantity(value, what):
    match = QUANTITY.match(str(value).strip())
    if not match:
        raise ResourceError(f"invalid {what} quantity {value!r}")
    number, exponent, suffix = match.groups()
    return Decimal(number + (exponent or "")), suffix


def parse_cpu_millicores(value) -> int:
    if value is None:
        return 0
    number, suffix = _quantity(value, "cpu")
    if suffix == "m":
        if number != number.to_integral_value():
            raise ResourceError(f"invalid cpu quantity {value!r}")
        return int(number)
    if suffix:
        raise ResourceError(f"invalid cpu quantity {value!r}")
    return int(number * 1000)


def parse_memory_mb(value) -> int:
    if value is None:
        return 0
    number, suffix = _quantity(value, "memory")
    if suffix not in MEMORY_UNITS:
        logger.debug(f"ignoring memory request {value!r}: unit is not Mi or Gi")
        return 0
    return int(number * MEMORY_UNITS[suffix])


def pod_resources(pod) -> ResourceRequest:
    """
    Aggregate container requests into one PBS chunk.

    CPU is summed in millicores and truncated to whole cores, so 250m + 250m
    asks PBS for ncpus=0.
    """
    millicores = 0
    mem_mb = 0
    for container in pod.spec.containers or []:
        requests = (container.resources and container.resources.requests) or {}
        millicores += parse_cpu_millicores(requests.get("cpu"))
        mem_mb += parse_memory_mb(requests.get("memory"))
    return ResourceRequest(ncpus=millicores // 1000, mem_mb=mem_mb)


# ============================================================
# Fit
# ============================================================
class FitEngine:
    def __init__(self, kube, pbs, notifier, submit_settle_seconds=5.0, sleep=time.sleep):
        self.kube = kube
        self.pbs = pbs
        self.notifier = notifier
        self.submit_settle_seconds = submit_settle_seconds
        self.sleep = sleep
        # pod uid -> job id already reported as unplaceable
        self._reported = {}

    def fit(self, pod) -> str:
        """
        Return the node PBS placed the pod's job on, or "" to try again later.

        The first call for a pod submits a job and records its id on the pod;
        later calls only poll that job.
        """
        name = pod.metadata.name
        job_id = job_id_of(pod)
        if not job_id:
            job_id = self.submit(pod)

        status = self.pbs.status(job_id)
        if status.placed:
            self._reported.pop(pod.metadata.uid, None)
            logger.info(f"Job {job_id} scheduled, associating node {status.host} to {name}")
            return status.host

        if status.failed:
            self._report_failure(pod, job_id, status.comment)
        else:
            logger.info(f"[fit] job {job_id} for pod {name} not running yet "
                        f"(state={status.job_state}, substate={status.substate}): {status.comment}")
        return ""

    def submit(self, pod) -> str:
        name = pod.metadata.name
        resources = pod_resources(pod)
        job_id = self.pbs.submit(name, resources)
        logger.info(f"[fit] submitted job {job_id} for pod {name} ({resources.select()})")
        try:
            self.kube.annotate_job_id(pod, job_id)
        except KubeError as e:
            raise KubeError(f"job {job_id} submitted but not recorded on pod {name}: {e}",
                            status=e.status) from e
        if pod.metadata.annotations is None:
            pod.metadata.annotations = {}
        pod.metadata.annotations[JOB_ID_ANNOTATION] = job_id
        self.sleep(self.submit_settle_seconds)
        return job_id

    def retain(self, pods):
        """Drop failure bookkeeping for pods that are no longer unscheduled."""
        live = {pod.metadata.uid for pod in pods}
        for uid in list(self._reported):
            if uid not in live:
                del self._reported[uid]

    def _report_failure(self, pod, job_id, comment):
        name = pod.metadata.name
        uid = pod.metadata.uid
        if self._reported.get(uid) == job_id:
            logger.debug(f"{name}: job {job_id} still can not be placed")
            return
        self._reported[uid] = job_id
        logger.warning(f"{name}: job {job_id} can not be placed: {comment}")
        self.notifier.failed_scheduling(
            pod, f"pod ({name}) failed to fit in any node: {comment or 'job ' + job_id + ' ended'}"
        )
