"""
Refresh tracking for the trends refresh job.

Manages a PID file (cross-process single-flight guard) and a status JSON
file so the API can report when the snapshot was last rebuilt.
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Dict, Optional

import psutil

import config
from trends.errors import RefreshInProgressError

logger = logging.getLogger(__name__)


class RefreshTracker:
    """Tracks refresh runs using a PID file and JSON status data."""

    def __init__(self, data_dir: Optional[Path] = None):
        data_dir = Path(data_dir or config.DATA_DIR)
        self.pid_file = data_dir / "refresh.pid"
        self.status_file = data_dir / "refresh_status.json"
        self.start_time = None

    def running_pid(self) -> Optional[int]:
        """PID of a live refresh process, cleaning up stale PID files."""
        if not self.pid_file.exists():
            return None

        try:
            with open(self.pid_file, 'r') as f:
                pid = int(f.read().strip())
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable PID file, removing: {e}")
            self._remove_pid_file()
            return None

        try:
            if psutil.Process(pid).is_running():
                return pid
        except psutil.NoSuchProcess:
            pass

        # Process ended but PID file wasn't cleaned up
        logger.info(f"Removing stale refresh PID file (PID: {pid})")
        self._remove_pid_file()
        return None

    def is_running(self) -> bool:
        return self.running_pid() is not None

    def start(self):
        """
        Claim the refresh slot.

        Raises:
            RefreshInProgressError: If another live process holds it.
        """
        pid = self.running_pid()
        if pid is not None:
            raise RefreshInProgressError(f"Refresh already running (PID: {pid})")

        try:
            # 'x' fails if another process created the file since the check
            with open(self.pid_file, 'x') as f:
                f.write(str(os.getpid()))
        except FileExistsError:
            raise RefreshInProgressError("Refresh already running")

        self.start_time = time.time()
        self._write_status({
            "status": "running",
            "start_time": self.start_time,
            "pid": os.getpid(),
        })
        logger.info(f"Refresh tracking started (PID: {os.getpid()})")

    def complete(self, stats: Dict):
        """Mark the refresh as completed successfully."""
        end_time = time.time()
        self._write_status({
            "status": "completed",
            "start_time": self.start_time or end_time,
            "end_time": end_time,
            "stats": stats,
        })
        self._remove_pid_file()

        duration = end_time - (self.start_time or end_time)
        logger.info(f"Refresh completed in {duration:.1f}s")

    def error(self, error_message: str):
        """Mark the refresh as failed."""
        end_time = time.time()
        self._write_status({
            "status": "error",
            "start_time": self.start_time or end_time,
            "end_time": end_time,
            "error": error_message,
        })
        self._remove_pid_file()
        logger.error(f"Refresh failed: {error_message}")

    def status(self) -> Dict:
        """Last written status plus whether a refresh is live right now."""
        data = {"status": "never_run"}
        if self.status_file.exists():
            try:
                with open(self.status_file, 'r') as f:
                    data = json.load(f)
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to read refresh status: {e}")
                data = {"status": "unknown"}
        data["is_running"] = self.is_running()
        return data

    def _write_status(self, data: Dict):
        try:
            with open(self.status_file, 'w') as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Failed to write refresh status: {e}")

    def _remove_pid_file(self):
        try:
            self.pid_file.unlink()
        except FileNotFoundError:
            pass
