"""Bridge that lets PBS Professional place Kubernetes pods."""

__version__ = "0.1.0"
