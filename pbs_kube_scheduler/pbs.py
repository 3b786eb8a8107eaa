import logging
import subprocess

from .errors import BatchSchedulerError
from .models import FINISHED, JobStatus, ResourceRequest

logger = logging.getLogger(__name__)

DEFAULT_JOB_SCRIPT = "kubernetes_job.sh"

# qstat errors for a job that no longer exists or has left the history
GONE_MARKERS = ("Unknown Job Id", "Job has finished")


# ============================================================
# qstat -f parsing
# ============================================================
def parse_qstat(text: str) -> dict:
    """
    Parse `qstat -f` output into a dict of attribute -> value.

    Attribute lines are "    name = value"; long values wrap onto lines that
    start with a tab. Lines that don't fit either shape are ignored.
    """
    attrs = {}
    key = None
    for line in text.splitlines():
        if not line.strip():
            continue
        if line.startswith("Job Id:"):
            attrs["Job_Id"] = line.split(":", 1)[1].strip()
            key = None
            continue
        if line.startswith("\t") and key:
            attrs[key] += line.strip()
            continue
        name, sep, value = line.strip().partition(" = ")
        if not sep:
            key = None
            continue
        key = name.strip()
        attrs[key] = value.strip()
    return attrs


def job_status(job_id: str, text: str) -> JobStatus:
    attrs = parse_qstat(text)
    return JobStatus(
        job_id=job_id,
        job_state=attrs.get("job_state"),
        substate=attrs.get("substate"),
        exec_host=attrs.get("exec_host"),
        comment=attrs.get("comment"),
    )


# ============================================================
# PBS command line client
# ============================================================
class PBSClient:
    def __init__(self, job_script=DEFAULT_JOB_SCRIPT, qsub="qsub", qstat="qstat", runner=subprocess.run):
        self.job_script = job_script
        self.qsub = qsub
        self.qstat = qstat
        self.runner = runner

    def _run(self, args) -> str:
        cmd = " ".join(args)
        try:
            result = self.runner(args, check=True, capture_output=True, text=True)
        except FileNotFoundError as e:
            raise BatchSchedulerError(f"{args[0]} not found: {e}") from e
        except subprocess.CalledProcessError as e:
            detail = (e.stderr or e.stdout or "").strip()
            raise BatchSchedulerError(f"{cmd} failed (exit {e.returncode}): {detail}", detail=detail) from e
        return result.stdout or ""

    def submit(self, name: str, resources: ResourceRequest) -> str:
        args = [
            self.qsub,
            "-l", resources.select(),
            "-N", name,
            "-v", f"PODNAME={name}",
            self.job_script,
        ]
        job_id = self._run(args).strip()
        if not job_id:
            raise BatchSchedulerError(f"{self.qsub} returned no job id for {name}")
        logger.debug(f"[qsub] {' '.join(args)} -> {job_id}")
        return job_id

    def status(self, job_id: str) -> JobStatus:
        # -x includes finished and expired jobs kept in the server history
        try:
            return job_status(job_id, self._run([self.qstat, "-x", "-f", job_id]))
        except BatchSchedulerError as e:
            if not any(marker in e.detail for marker in GONE_MARKERS):
                raise
            logger.info(f"[qstat] job {job_id} is gone: {e.detail}")
            return JobStatus(job_id=job_id, job_state=FINISHED, comment=e.detail)
