"""
GitHub hosting provider

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

from typing import List
from urllib.parse import urlparse

import requests
from github import Auth, BadCredentialsException, Github, GithubException

from .base import (
    MAX_IDLE_CONNS,
    MAX_REQUEST_TIME,
    AuthenticationError,
    EnumerationError,
    GitHost,
    Repository,
    normalize_owner,
)
from .config import ProviderConfig

PAGE_SIZE = 100


class GitHubHost(GitHost):
    provider = "GitHub"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        host = urlparse(self.api_url).netloc
        # Enterprise servers serve the API from their own host
        self.domain = "github.com" if host in ("", "api.github.com") else host

    def connect(self) -> Github:
        return Github(
            base_url=self.api_url,
            auth=Auth.Token(self.config.token),
            timeout=MAX_REQUEST_TIME,
            per_page=PAGE_SIZE,
            pool_size=MAX_IDLE_CONNS,
            # a failed identity lookup is reported once, never retried
            retry=None,
        )

    def authenticate(self, client: Github) -> str:
        try:
            login = client.get_user().login
        except BadCredentialsException as e:
            raise AuthenticationError(
                "GitHub authentication failed: invalid or expired token"
            ) from e
        except (GithubException, requests.RequestException) as e:
            raise AuthenticationError(f"GitHub identity lookup failed: {e}") from e

        self.logger.debug(f"GitHub authentication successful for user: {login}")
        return login

    def list_repositories(self, client: Github, user_id: str) -> List[Repository]:
        self.logger.debug(f"Fetching repositories owned by {user_id}")
        try:
            page = client.get_user().get_repos(affiliation="owner").get_page(0)
            return [self._to_repository(repo) for repo in page]
        except (GithubException, requests.RequestException) as e:
            raise EnumerationError(f"GitHub repository listing failed: {e}") from e

    def _to_repository(self, repo) -> Repository:
        return Repository(
            name=repo.name,
            owner=normalize_owner(repo.owner.login),
            name_with_owner=repo.full_name,
            https_url=repo.clone_url,
            ssh_url=repo.ssh_url,
            domain=self.domain,
        )
