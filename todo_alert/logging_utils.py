import logging
import sys

# Third-party loggers that are too chatty at INFO for a once-a-minute job.
_NOISY_LOGGERS = ("apscheduler", "httpx", "httpcore")


def setup_logging(level: str = "INFO") -> None:
    """Configure simple, consistent logging for the service.

    Format: time level logger message k=v ...
    """
    root = logging.getLogger()
    if root.handlers:
        # Respect existing (e.g., uvicorn) but align level
        root.setLevel(level.upper())
    else:
        handler = logging.StreamHandler(stream=sys.stdout)
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)
        root.setLevel(level.upper())

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
