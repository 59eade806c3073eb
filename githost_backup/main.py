#!/usr/bin/env python3
"""
Back up every repository you own on GitLab, GitHub and Bitbucket
"""

import argparse
import logging
import os
import sys
import threading
from pathlib import Path
from typing import Dict, List, Optional, Type

from dotenv import load_dotenv
from loguru import logger
from rich.console import Console
from rich.table import Table
from rich_argparse import ArgumentDefaultsRichHelpFormatter

from .base import GitHost, GitHostError
from .bitbucket_host import BitbucketHost
from .config import SUPPORTED_PROVIDERS, ProviderConfig, configured_providers, parse_workers
from .github_host import GitHubHost
from .gitlab_host import GitLabHost
from .local_backup import list_backups
from .orchestrator import backup

HOSTS: Dict[str, Type[GitHost]] = {
    "gitlab": GitLabHost,
    "github": GitHubHost,
    "bitbucket": BitbucketHost,
}


class InterceptHandler(logging.Handler):
    """Route stdlib logging records from the library modules into loguru"""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(verbose: bool = False, log_file: str = "githost-backup.log"):
    """Setup console and file logging with loguru"""

    logger.remove()

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    log_file_path = log_dir / log_file

    log_level = "DEBUG" if verbose else "INFO"

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<level>{message}</level>"
    )

    logger.add(sys.stderr, format=console_format, level=log_level, colorize=True)

    file_format = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

    logger.add(
        log_file_path,
        format=file_format,
        level=log_level,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
        encoding="utf-8",
    )

    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)
    # Request-level chatter from the HTTP stack stays out of the backup log
    for noisy in ("urllib3", "github", "gitlab"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("[CONFIG] Logging configured")
    logger.debug(f"Log file: {log_file_path}")

    return logger


def get_env_default(env_var: str, fallback=None):
    """Get value from environment or .env file"""
    return os.getenv(env_var, fallback)


def build_host(config: ProviderConfig) -> GitHost:
    return HOSTS[config.provider](config)


def parse_providers(value: Optional[str]) -> List[str]:
    """Comma separated provider names; empty means every supported provider"""
    if not value:
        return list(SUPPORTED_PROVIDERS)

    providers = [p.strip().lower() for p in value.split(",") if p.strip()]
    invalid = [p for p in providers if p not in SUPPORTED_PROVIDERS]
    if invalid:
        raise ValueError(
            f"Invalid provider(s): {', '.join(invalid)}. "
            f"Valid providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )
    return providers


def run_backups(
    backup_dir: str,
    providers: List[str],
    workers: int,
    stop_event: Optional[threading.Event] = None,
) -> int:
    """
    Back up every configured provider in turn.

    Returns:
        Process exit code: 0 when every repository of every provider was
        backed up, 1 otherwise
    """
    configs = configured_providers(providers=providers)
    if not configs:
        logger.error(
            "[ERROR] No provider credentials found. Set GITLAB_TOKEN, GITHUB_TOKEN "
            "or BITBUCKET_USERNAME and BITBUCKET_APP_PASSWORD"
        )
        return 1

    exit_code = 0
    for config in configs:
        host = build_host(config)
        logger.info(f"[CONNECT] {host.provider} API: {host.get_api_url()}")
        try:
            summary = backup(host, backup_dir, workers=workers, stop_event=stop_event)
        except GitHostError as e:
            logger.error(f"[ERROR] {host.provider}: {e}")
            exit_code = 1
            continue

        if summary.failed:
            exit_code = 1

    return exit_code


def show_backups(backup_dir: str, domain: Optional[str] = None) -> None:
    backups = list_backups(backup_dir, domain)
    if not backups:
        logger.info("No local backups found")
        return

    table = Table(title=f"{len(backups)} backups in {backup_dir}")
    table.add_column("Bundle")
    table.add_column("Size (MB)", justify="right")
    table.add_column("Modified")
    for entry in backups:
        table.add_row(entry["path"], f"{entry['size_mb']:.2f}", entry["modified"])
    Console().print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="githost-backup",
        description="[bold blue]Git host backup[/bold blue] - Bundle every repository you own on GitLab, GitHub and Bitbucket",
        epilog="""
[bold green]Examples:[/bold green]
  [dim]# Backup every configured provider[/dim]
  [yellow]%(prog)s[/yellow] [magenta]/path/to/backups[/magenta]

  [dim]# Backup GitLab only, keeping the 3 newest bundles per repository[/dim]
  GITLAB_BACKUPS=3 [yellow]%(prog)s[/yellow] [magenta]/backups[/magenta] [cyan]--provider[/cyan] gitlab

  [dim]# List existing backups[/dim]
  [yellow]%(prog)s[/yellow] [magenta]/backups[/magenta] [cyan]--list[/cyan]
        """,
        formatter_class=ArgumentDefaultsRichHelpFormatter,
    )

    parser.add_argument(
        "backup_dir",
        nargs="?",
        default=get_env_default("BACKUP_DIR"),
        help="Directory receiving the bundles (env: BACKUP_DIR)",
    )
    parser.add_argument(
        "--provider",
        metavar="PROVIDERS",
        default=get_env_default("PROVIDERS"),
        help="Comma-separated providers to back up (gitlab,github,bitbucket). Defaults to every provider with credentials",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=parse_workers(get_env_default("PARALLEL_WORKERS")),
        metavar="N",
        help="Number of concurrent backups per provider (env: PARALLEL_WORKERS)",
    )
    parser.add_argument("--list", action="store_true", help="List existing backups")

    log_group = parser.add_argument_group("Logging Options")
    log_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )
    log_group.add_argument(
        "--log-file",
        default=get_env_default("LOG_FILE", "githost-backup.log"),
        metavar="FILE",
        help="Log file name under logs/ (env: LOG_FILE)",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    if not args.backup_dir:
        logger.error(
            "A backup directory is required. Provide it as argument or set BACKUP_DIR."
        )
        return 1

    try:
        providers = parse_providers(args.provider)
    except ValueError as e:
        logger.error(f"[ERROR] {e}")
        return 1

    if args.list:
        show_backups(args.backup_dir)
        return 0

    if args.workers < 1:
        logger.error("--workers must be at least 1")
        return 1

    try:
        return run_backups(args.backup_dir, providers, args.workers, threading.Event())
    except KeyboardInterrupt:
        logger.warning("[CANCEL] Backup interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
