# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/kubestrap/logging/log.py

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from datetime import datetime, timezone
import uuid

SYSTEM_LOG_DIR = Path("/var/log/kubestrap")


def default_log_dir() -> Path:
    """
    /var/log/kubestrap when running as root (the normal `sudo kubestrap up`),
    otherwise ~/.kubestrap/logs for plan/check runs by a plain user.
    """
    if os.geteuid() == 0:
        return SYSTEM_LOG_DIR
    return Path.home() / ".kubestrap" / "logs"


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "kubestrap",
    target: str = "localhost",
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per bootstrap run, named after the target host:
      - file handler: full trace (every command, its output and exit status)
      - console handler: WARNING unless verbose, progress comes from the console observer
    Returns the run_id so the event observers share it.
    """
    run_id = str(uuid.uuid4())

    base_dir = base_dir or default_log_dir()
    base_dir.mkdir(parents=True, exist_ok=True)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    host = re.sub(r"[^A-Za-z0-9_.-]", "_", target)
    log_path = base_dir / f"{host}-{ts}-{run_id[:8]}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()
    logger.propagate = False

    fh = logging.FileHandler(log_path, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("=== kubestrap run %s against %s ===", run_id, target)
    logger.info("log_file=%s", log_path)

    return logger, run_id, log_path
