"""
Base classes for git hosting providers

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
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Tuple

import requests
from requests.adapters import HTTPAdapter

from .config import ProviderConfig

# Per-request ceiling for identity and enumeration calls (seconds)
MAX_REQUEST_TIME = 10
MAX_IDLE_CONNS = 10


class GitHostError(Exception):
    """Base class for provider setup failures"""


class AuthenticationError(GitHostError):
    """Identity lookup failed: missing or rejected token, transport or decode error"""


class EnumerationError(GitHostError):
    """Repository listing failed: transport or decode error"""


class BackupError(Exception):
    """A single repository could not be backed up"""


class BackupCancelled(BackupError):
    """The batch was stopped before this repository was attempted"""


@dataclass(frozen=True)
class Repository:
    name: str
    owner: str
    name_with_owner: str
    https_url: str
    ssh_url: str
    domain: str
    url_with_token: str = field(default="", repr=False)

    def __str__(self) -> str:
        return f"{self.domain}:{self.name_with_owner}"


@dataclass
class DescribeReposOutput:
    repos: List[Repository] = field(default_factory=list)


def normalize_owner(name: str) -> str:
    # GitLab reports hyphenated owner names with spaces
    return name.replace(" ", "-")


def build_session(max_idle_conns: int = MAX_IDLE_CONNS) -> requests.Session:
    """
    Create the HTTP session shared by the identity and enumeration calls.

    Connections are pooled and reused; compression is disabled so response
    sizes are deterministic.
    """
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=max_idle_conns, pool_maxsize=max_idle_conns)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.headers.update(
        {
            "Accept": "application/json; charset=utf-8",
            "Content-Type": "application/json; charset=utf-8",
            "Accept-Encoding": "identity",
        }
    )
    return session


class GitHost(ABC):
    """
    A git hosting service able to authenticate, enumerate the user's
    repositories and report its API base URL.

    Hosts hold no connection state: every describe_repos() call opens a
    fresh client on a new shared session.
    """

    provider: str = ""

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.api_url = config.api_url
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def connect(self) -> Any:
        """Return a provider client built on one shared HTTP session"""

    @abstractmethod
    def authenticate(self, client: Any) -> Any:
        pass

    @abstractmethod
    def list_repositories(self, client: Any, user_id: Any) -> List[Repository]:
        pass

    def describe_repos(self) -> DescribeReposOutput:
        self.logger.info(f"[DISCOVER] Listing {self.provider} repositories")

        if not self.config.token:
            raise AuthenticationError(f"{self.provider} token is not configured")

        client = self.connect()
        user_id = self.authenticate(client)
        repos = self.list_repositories(client, user_id)

        self.logger.info(f"[OK] Found {len(repos)} {self.provider} repositories")
        return DescribeReposOutput(repos=repos)

    def get_api_url(self) -> str:
        return self.api_url

    def clone_credentials(self, repo: Repository) -> Tuple[str, str]:
        """User and secret embedded into the clone URL of repo"""
        return repo.owner, self.config.token
