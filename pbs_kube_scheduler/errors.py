class SchedulerError(Exception):
    """Base class for failures while placing a single pod."""


class ResourceError(SchedulerError):
    """A container resource request is not a valid quantity."""


class BatchSchedulerError(SchedulerError):
    """A PBS command failed or produced output we can't use."""

    def __init__(self, message, detail=""):
        super().__init__(message)
        self.detail = detail


class KubeError(SchedulerError):
    """The Kubernetes API rejected a request or could not be reached."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class BindError(SchedulerError):
    pass


class ConfigError(Exception):
    """Invalid command line configuration."""
