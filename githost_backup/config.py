"""
Provider configuration loaded once from the environment

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

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

from .token_discovery import get_bitbucket_credentials, get_github_token, get_gitlab_token

SUPPORTED_PROVIDERS = ("gitlab", "github", "bitbucket")

DEFAULT_URLS = {
    "gitlab": "https://gitlab.com",
    "github": "https://api.github.com",
    "bitbucket": "https://api.bitbucket.org/2.0",
}

DEFAULT_WORKERS = 5


@dataclass(frozen=True)
class ProviderConfig:
    provider: str
    token: str = field(default="", repr=False)
    api_url: str = ""
    username: Optional[str] = None
    backups_to_keep: int = 0


def parse_backups_to_keep(value: Optional[str]) -> int:
    """
    Parse a retention count. Absent, non-numeric or negative values mean
    "keep every backup" and are returned as 0.
    """
    if value is None:
        return 0
    try:
        count = int(value.strip())
    except ValueError:
        return 0
    return max(count, 0)


def parse_workers(value: Optional[str], default: int = DEFAULT_WORKERS) -> int:
    try:
        workers = int(value) if value is not None else default
    except ValueError:
        return default
    return workers if workers > 0 else default


def load_provider_config(
    provider: str, env: Optional[Mapping[str, str]] = None
) -> ProviderConfig:
    """Read every setting for one provider from env (default: os.environ)"""
    env = os.environ if env is None else env
    provider = provider.lower()
    prefix = provider.upper()

    if provider not in SUPPORTED_PROVIDERS:
        raise ValueError(
            f"Unsupported provider: {provider}. Valid providers: {', '.join(SUPPORTED_PROVIDERS)}"
        )

    api_url = (env.get(f"{prefix}_URL") or DEFAULT_URLS[provider]).rstrip("/")
    username = None

    if provider == "gitlab":
        token = get_gitlab_token(api_url, env)
    elif provider == "github":
        token = get_github_token(env)
    else:
        token, username = get_bitbucket_credentials(env)

    return ProviderConfig(
        provider=provider,
        token=(token or "").rstrip("\n"),
        api_url=api_url,
        username=username,
        backups_to_keep=parse_backups_to_keep(env.get(f"{prefix}_BACKUPS")),
    )


def configured_providers(
    env: Optional[Mapping[str, str]] = None,
    providers: Sequence[str] = SUPPORTED_PROVIDERS,
) -> List[ProviderConfig]:
    """
    Configurations of the requested providers that have credentials available.
    Credentials of providers not requested are never looked up.
    """
    configs = [load_provider_config(p, env) for p in providers]
    return [c for c in configs if c.token]
