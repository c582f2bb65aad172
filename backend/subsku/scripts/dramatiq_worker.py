#!/usr/bin/env python
"""Dramatiq worker entry point."""

import os
import shutil
import sys

import structlog

from subsku.logging import setup_logging

setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    """Start the webhook worker.

    Runs a single process with a single thread: events are handled one at a
    time, in queue order. Extra arguments are passed to dramatiq.
    """
    # When running via `uv run`, the virtualenv's bin is in PATH
    dramatiq_path = shutil.which("dramatiq")
    if dramatiq_path is None:
        logger.error("Dramatiq executable not found in PATH")
        sys.exit(1)

    logger.info("Starting webhook worker")
    os.execv(dramatiq_path, [dramatiq_path, "subsku.tasks", "--processes", "1", "--threads", "1", *sys.argv[1:]])


if __name__ == "__main__":
    main()
