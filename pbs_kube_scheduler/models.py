from dataclasses import dataclass
from typing import Optional

# PBS job_state codes
RUNNING = "R"
EXITING = "E"
FINISHED = "F"
EXPIRED = "X"
DONE_STATES = (EXITING, FINISHED, EXPIRED)

# substate of a job whose processes are running on the execution host
SUBSTATE_RUNNING = "42"

NEVER_RUN_PREFIX = "Can Never Run"


@dataclass
class ResourceRequest:
    ncpus: int = 0
    mem_mb: int = 0

    def select(self) -> str:
        return f"select=1:ncpus={self.ncpus}:mem={self.mem_mb}MB"


@dataclass
class JobStatus:
    """What qstat reports about one job. Missing attributes are None."""

    job_id: str
    job_state: Optional[str] = None
    substate: Optional[str] = None
    exec_host: Optional[str] = None
    comment: Optional[str] = None

    @property
    def host(self) -> str:
        # exec_host looks like "node07/0*2+node08/1"
        if not self.exec_host:
            return ""
        return self.exec_host.split("+", 1)[0].split("/", 1)[0].strip()

    @property
    def placed(self) -> bool:
        return (
            self.job_state == RUNNING
            and self.substate == SUBSTATE_RUNNING
            and bool(self.host)
        )

    @property
    def failed(self) -> bool:
        if self.placed:
            return False
        if self.job_state in DONE_STATES:
            return True
        return bool(self.comment) and self.comment.startswith(NEVER_RUN_PREFIX)
