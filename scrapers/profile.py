"""
Marketplace Monitor Browser Profile Cleanup
Clears stale Chromium locks and orphaned browsers before a session starts.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import psutil

logger = logging.getLogger(__name__)

# Chromium's per-profile exclusivity markers
LOCK_FILES = ["SingletonLock", "SingletonSocket", "SingletonCookie"]

TERMINATE_TIMEOUT_SECONDS = 3

USER_DATA_DIR_FLAG = "--user-data-dir="


def remove_stale_locks(profile_dir: Path) -> List[str]:
    """
    Delete leftover lock files from the profile directory.

    Args:
        profile_dir: Persistent browser profile directory

    Returns:
        Names of the lock files that were removed
    """
    removed = []
    for name in LOCK_FILES:
        path = Path(profile_dir) / name
        # SingletonLock is a symlink to a host-pid that no longer exists
        if not os.path.lexists(path):
            continue
        try:
            path.unlink()
            removed.append(name)
            logger.info(f"Removed stale browser lock file {name}")
        except OSError as e:
            logger.warning(f"Could not remove lock file {path}: {e}")
    return removed


def uses_profile(cmdline: Optional[List[str]], profile_dir: str) -> bool:
    """True if a command line launches Chromium on exactly this profile directory."""
    for arg in cmdline or []:
        if not arg.startswith(USER_DATA_DIR_FLAG):
            continue
        if os.path.normpath(arg[len(USER_DATA_DIR_FLAG):]) == profile_dir:
            return True
    return False


def kill_orphaned_browsers(profile_dir: Path) -> int:
    """
    Terminate processes still bound to the profile directory.

    Args:
        profile_dir: Persistent browser profile directory

    Returns:
        Number of processes stopped
    """
    marker = str(Path(profile_dir).resolve())
    own_pid = os.getpid()
    killed = 0

    for proc in psutil.process_iter(["pid", "cmdline"]):
        try:
            if proc.info["pid"] == own_pid:
                continue
            if not uses_profile(proc.info.get("cmdline"), marker):
                continue
            proc.terminate()
            try:
                proc.wait(timeout=TERMINATE_TIMEOUT_SECONDS)
            except psutil.TimeoutExpired:
                proc.kill()
            killed += 1
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue

    if killed:
        logger.info(f"Stopped {killed} orphaned browser processes using {marker}")
    return killed


def cleanup_profile(profile_dir: Path):
    """Make the profile directory safe to launch a persistent context on."""
    Path(profile_dir).mkdir(parents=True, exist_ok=True)
    kill_orphaned_browsers(profile_dir)
    remove_stale_locks(profile_dir)
