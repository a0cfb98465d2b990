"""Multi-user todo service with a scheduled due-task alerting engine."""

__version__ = "1.0.0"
