"""
Local filesystem backup of a single repository as a git bundle

Copyright 2025 HyperSec

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License.
"""

import logging
import os
import re
import shutil
import subprocess
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from .base import BackupError, Repository
from .credentials import mask_credentials

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
WORK_DIR_NAME = ".tmp"
BUNDLE_SUFFIX = ".bundle"


def robust_rmtree(path: Path, max_retries: int = 3) -> bool:
    """
    Remove a directory tree, retrying while git processes release files.

    Returns:
        True if the tree no longer exists
    """
    if not path.exists():
        return True

    for attempt in range(max_retries):
        try:
            shutil.rmtree(path)
            return True
        except OSError as e:
            if attempt < max_retries - 1:
                time.sleep(0.5 * (attempt + 1))
                logger.debug(
                    f"[CLEANUP] Retry {attempt + 1}/{max_retries} removing {path}: {e}"
                )
            else:
                logger.warning(
                    f"[CLEANUP] Failed to remove {path} after {max_retries} attempts: {e}"
                )
    return False


def _run_git(args: List[str], repo: Repository, cwd: Optional[Path] = None) -> str:
    env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
    result = subprocess.run(
        ["git", *args],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        cwd=str(cwd) if cwd else None,
        env=env,
    )
    if result.returncode != 0:
        stderr_truncated = mask_credentials(result.stderr[:500] if result.stderr else "")
        raise BackupError(f"git {args[0]} failed for {repo}: {stderr_truncated.strip()}")
    return result.stdout


def _bundle_pattern(name: str) -> "re.Pattern[str]":
    # <name>.<UTC timestamp>[-<sequence>].bundle
    return re.compile(
        rf"^{re.escape(name)}\.(\d{{14}})(?:-(\d+))?{re.escape(BUNDLE_SUFFIX)}$"
    )


def existing_bundles(target_dir: Path, name: str) -> List[Path]:
    """Bundles of repository name in target_dir, oldest first"""
    if not target_dir.exists():
        return []

    pattern = _bundle_pattern(name)
    stamped = []
    for path in target_dir.iterdir():
        match = pattern.match(path.name)
        if match and path.is_file():
            stamped.append((match.group(1), int(match.group(2) or 0), path))
    return [path for _, _, path in sorted(stamped)]


def _new_bundle_path(target_dir: Path, name: str) -> Path:
    """
    Path for a bundle created now. Bundles created within the same second
    get an increasing -<n> suffix instead of replacing each other.
    """
    timestamp = datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)
    bundle_path = target_dir / f"{name}.{timestamp}{BUNDLE_SUFFIX}"
    sequence = 0
    while bundle_path.exists():
        sequence += 1
        bundle_path = target_dir / f"{name}.{timestamp}-{sequence}{BUNDLE_SUFFIX}"
    return bundle_path


def prune_backups(target_dir: Path, name: str, backups_to_keep: int) -> List[Path]:
    """
    Delete all but the newest backups_to_keep bundles of a repository.
    A count of 0 keeps everything.

    Returns:
        The removed bundle paths
    """
    if backups_to_keep <= 0:
        return []

    bundles = existing_bundles(target_dir, name)
    expired = bundles[: max(len(bundles) - backups_to_keep, 0)]
    for bundle in expired:
        logger.info(f"[PRUNE] Removing expired backup {bundle}")
        bundle.unlink(missing_ok=True)
    return expired


def _bundle_heads(bundle: Path, repo: Repository, cwd: Path) -> List[str]:
    return sorted(_run_git(["bundle", "list-heads", str(bundle)], repo, cwd).splitlines())


def process_backup(repo: Repository, backup_dir: Union[str, Path], backups_to_keep: int) -> None:
    """
    Back up one repository into backup_dir/<domain>/<owner>/<name>/ as
    <name>.<UTC timestamp>.bundle, then keep only the newest backups_to_keep.

    The bundle is built in a working directory and moved into place in a
    single rename, so a failed run never leaves a partial bundle next to
    the previous ones.

    Raises:
        BackupError: clone or bundle creation failed
    """
    backup_root = Path(backup_dir)
    work_dir = backup_root / WORK_DIR_NAME
    target_dir = backup_root / repo.domain / repo.name_with_owner
    unique_id = uuid.uuid4().hex[:8]
    clone_path = work_dir / f"{repo.name}_{unique_id}_clone"
    tmp_bundle = work_dir / f"{repo.name}_{unique_id}{BUNDLE_SUFFIX}"
    clone_url = repo.url_with_token or repo.https_url

    try:
        work_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"[BACKUP] Cloning {repo}...")
        _run_git(["clone", "--mirror", clone_url, str(clone_path)], repo, work_dir)

        if not _run_git(["rev-list", "-n", "1", "--all"], repo, clone_path).strip():
            logger.info(f"[SKIP] Skipping {repo} - repository is empty (no commits)")
            return

        _run_git(["bundle", "create", str(tmp_bundle), "--all"], repo, clone_path)

        previous = existing_bundles(target_dir, repo.name)
        if previous and _bundle_heads(previous[-1], repo, clone_path) == _bundle_heads(
            tmp_bundle, repo, clone_path
        ):
            logger.info(f"[SKIP] {repo} unchanged since {previous[-1].name}")
        else:
            target_dir.mkdir(parents=True, exist_ok=True)
            bundle_path = _new_bundle_path(target_dir, repo.name)
            os.replace(tmp_bundle, bundle_path)
            file_size = bundle_path.stat().st_size
            logger.info(
                f"[SUCCESS] Backed up {repo} ({file_size / 1024 / 1024:.2f} MB) to {bundle_path}"
            )

        prune_backups(target_dir, repo.name, backups_to_keep)

    except OSError as e:
        raise BackupError(f"Backup of {repo} failed: {type(e).__name__}: {e}") from e
    finally:
        robust_rmtree(clone_path)
        tmp_bundle.unlink(missing_ok=True)


def list_backups(backup_dir: Union[str, Path], domain: Optional[str] = None) -> List[Dict]:
    """List existing bundles under backup_dir, newest first"""
    search_path = Path(backup_dir) / domain if domain else Path(backup_dir)
    if not search_path.exists():
        return []

    backups = []
    for backup_file in search_path.rglob(f"*{BUNDLE_SUFFIX}"):
        if WORK_DIR_NAME in backup_file.relative_to(backup_dir).parts:
            continue
        stat = backup_file.stat()
        backups.append(
            {
                "path": str(backup_file),
                "size_mb": stat.st_size / 1024 / 1024,
                "modified": datetime.fromtimestamp(stat.st_mtime).isoformat(),
            }
        )

    return sorted(backups, key=lambda x: x["modified"], reverse=True)
