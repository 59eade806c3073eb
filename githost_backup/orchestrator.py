"""
Concurrent backup of every repository a git host reports

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
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

from tqdm import tqdm

from .base import BackupCancelled, GitHost, Repository
from .config import DEFAULT_WORKERS
from .credentials import inject_credentials
from .local_backup import process_backup

logger = logging.getLogger(__name__)

BackupOperation = Callable[[Repository, Union[str, Path], int], None]


@dataclass
class BackupResult:
    repo: Repository
    error: Optional[Exception] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass
class BackupSummary:
    provider: str
    results: List[BackupResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def total(self) -> int:
        return len(self.results)


def backup_worker(
    host: GitHost,
    repo: Repository,
    backup_dir: Union[str, Path],
    backups_to_keep: int,
    process: BackupOperation = process_backup,
    stop_event: Optional[threading.Event] = None,
) -> BackupResult:
    """
    Back up one repository and report exactly one result for it.
    Errors are returned, never raised.
    """
    if stop_event is not None and stop_event.is_set():
        return BackupResult(repo, BackupCancelled(f"Backup of {repo} cancelled"))

    try:
        user, token = host.clone_credentials(repo)
        authed = inject_credentials(repo, user, token)
        process(authed, backup_dir, backups_to_keep)
    except Exception as e:
        return BackupResult(repo, e)
    return BackupResult(repo)


def dispatch(
    executor: ThreadPoolExecutor,
    host: GitHost,
    repos: Sequence[Repository],
    backup_dir: Union[str, Path],
    backups_to_keep: int,
    process: BackupOperation = process_backup,
    stop_event: Optional[threading.Event] = None,
) -> List["Future[BackupResult]"]:
    return [
        executor.submit(
            backup_worker, host, repo, backup_dir, backups_to_keep, process, stop_event
        )
        for repo in repos
    ]


def collect_results(futures: Sequence["Future[BackupResult]"], provider: str = "") -> BackupSummary:
    """Wait for one result per submitted repository and log every failure"""
    summary = BackupSummary(provider=provider)

    with tqdm(
        total=len(futures),
        desc=f"Backing up {provider}".strip(),
        unit="repo",
        disable=not futures,
    ) as pbar:
        for future in as_completed(futures):
            result = future.result()
            summary.results.append(result)
            if not result.success:
                logger.error(f"[FAIL] backup failed: {result.repo}: {result.error}")
            pbar.update(1)
            pbar.set_postfix({"OK": summary.succeeded, "FAIL": summary.failed})

    return summary


def backup(
    host: GitHost,
    backup_dir: Union[str, Path],
    workers: int = DEFAULT_WORKERS,
    process: BackupOperation = process_backup,
    stop_event: Optional[threading.Event] = None,
) -> BackupSummary:
    """
    Back up every repository owned by the host's authenticated user.

    Raises:
        AuthenticationError, EnumerationError: the repository list could not
            be obtained; nothing was backed up
    """
    backups_to_keep = host.config.backups_to_keep
    repos = host.describe_repos().repos
    stop_event = stop_event or threading.Event()

    logger.info(
        f"[PROCESS] Backing up {len(repos)} {host.provider} repositories "
        f"with {workers} workers (keep: {backups_to_keep or 'all'})"
    )

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = dispatch(
            executor, host, repos, backup_dir, backups_to_keep, process, stop_event
        )
        try:
            summary = collect_results(futures, host.provider)
        except KeyboardInterrupt:
            logger.warning("[CANCEL] Interrupted, skipping repositories not yet started")
            stop_event.set()
            raise

    logger.info(
        f"[SUMMARY] {host.provider}: {summary.succeeded} succeeded, "
        f"{summary.failed} failed of {summary.total}"
    )
    return summary
