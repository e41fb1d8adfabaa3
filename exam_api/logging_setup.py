from __future__ import annotations
import logging

# Per-request noise that drowns out attempt lifecycle lines
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "multipart")


def setup_console_logging(level: int = logging.INFO) -> None:
    """
    Call once at app start (API server or CLI). Attempt starts, auto-submits,
    finalize outcomes and ranking refreshes go to the console.
    """
    root = logging.getLogger()
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        # uvicorn or pytest installed handlers already
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
