"""
Auto-discovery of provider credentials from standard locations

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
import netrc
import os
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Tuple
from urllib.parse import urlparse

import yaml

logger = logging.getLogger(__name__)


def get_github_token(env: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Discover GitHub token from standard locations.

    Priority:
    1. GITHUB_TOKEN environment variable
    2. GH_TOKEN environment variable
    3. gh CLI auth token (via `gh auth token` command)

    Returns:
        GitHub token or None if not found
    """
    env = os.environ if env is None else env

    for var in ("GITHUB_TOKEN", "GH_TOKEN"):
        token = env.get(var)
        if token:
            logger.debug(f"[TOKEN] GitHub token found in {var} env var")
            return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0 and result.stdout.strip():
            logger.info("[TOKEN] GitHub token discovered from gh CLI")
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass

    return None


def glab_config_paths(env: Optional[Mapping[str, str]] = None) -> List[Path]:
    env = os.environ if env is None else env
    paths = [Path.home() / ".config" / "glab-cli" / "config.yml"]
    xdg = env.get("XDG_CONFIG_HOME")
    if xdg:
        paths.insert(0, Path(xdg) / "glab-cli" / "config.yml")
    return paths


def get_gitlab_token(
    gitlab_url: str = "https://gitlab.com", env: Optional[Mapping[str, str]] = None
) -> Optional[str]:
    """
    Discover GitLab token from standard locations.

    Priority:
    1. GITLAB_TOKEN environment variable
    2. glab-cli config.yml (token of the host matching gitlab_url)

    Args:
        gitlab_url: GitLab instance URL to look up token for
        env: Environment mapping (default: os.environ)

    Returns:
        GitLab token or None if not found
    """
    env = os.environ if env is None else env

    token = env.get("GITLAB_TOKEN")
    if token:
        logger.debug("[TOKEN] GitLab token found in GITLAB_TOKEN env var")
        return token

    hostname = urlparse(gitlab_url).netloc or "gitlab.com"

    for config_path in glab_config_paths(env):
        if not config_path.exists():
            continue
        try:
            with open(config_path) as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.debug(f"[TOKEN] Failed to read glab config {config_path}: {e}")
            continue

        host_config = (config.get("hosts") or {}).get(hostname) or {}
        token = host_config.get("token")
        if token:
            logger.info(f"[TOKEN] GitLab token discovered from {config_path}")
            return token

    return None


def get_bitbucket_credentials(
    env: Optional[Mapping[str, str]] = None,
    netrc_path: Optional[Path] = None,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Discover Bitbucket credentials from standard locations.

    Priority:
    1. BITBUCKET_USERNAME + BITBUCKET_APP_PASSWORD (or BITBUCKET_KEY)
    2. ~/.netrc entry for bitbucket.org

    Returns:
        Tuple of (app_password, username); both None if not found
    """
    env = os.environ if env is None else env

    username = env.get("BITBUCKET_USERNAME") or env.get("BITBUCKET_USER")
    app_password = env.get("BITBUCKET_APP_PASSWORD") or env.get("BITBUCKET_KEY")
    if username and app_password:
        logger.debug("[TOKEN] Bitbucket credentials found in environment")
        return app_password, username

    netrc_path = netrc_path or Path.home() / ".netrc"
    if netrc_path.exists():
        try:
            auth = netrc.netrc(str(netrc_path))
        except (OSError, netrc.NetrcParseError) as e:
            logger.debug(f"[TOKEN] Failed to read .netrc: {e}")
            return None, None

        for host in ("bitbucket.org", "api.bitbucket.org"):
            creds = auth.authenticators(host)
            if creds:
                login, _, password = creds
                logger.info("[TOKEN] Bitbucket credentials discovered from .netrc")
                return password, login

    return None, None
