"""Cloud resilience core: DR posture analysis, recovery planning and incident correlation."""

__version__ = "0.1.0"
