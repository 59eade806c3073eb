"""
GitLab hosting provider

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

import gitlab
import requests

from .base import (
    MAX_REQUEST_TIME,
    AuthenticationError,
    EnumerationError,
    GitHost,
    Repository,
    build_session,
    normalize_owner,
)
from .config import ProviderConfig

# Only the first page is fetched
PAGE_SIZE = 100
API_PATH = "/api/v4"


class GitLabHost(GitHost):
    provider = "GitLab"

    def __init__(self, config: ProviderConfig):
        super().__init__(config)
        # python-gitlab appends the API path itself
        if self.api_url.endswith(API_PATH):
            self.api_url = self.api_url[: -len(API_PATH)]
        self.domain = urlparse(self.api_url).netloc or "gitlab.com"

    def connect(self) -> gitlab.Gitlab:
        return gitlab.Gitlab(
            self.api_url,
            private_token=self.config.token,
            timeout=MAX_REQUEST_TIME,
            session=build_session(),
        )

    def get_api_url(self) -> str:
        return f"{self.api_url}{API_PATH}"

    def authenticate(self, client: gitlab.Gitlab) -> int:
        try:
            client.auth()
            user_id = client.user.id
        except gitlab.exceptions.GitlabAuthenticationError as e:
            raise AuthenticationError(
                f"GitLab rejected the token for {self.get_api_url()}: {e}"
            ) from e
        except (gitlab.exceptions.GitlabError, requests.RequestException) as e:
            raise AuthenticationError(f"GitLab identity lookup failed: {e}") from e
        except AttributeError as e:
            raise AuthenticationError(f"GitLab /user response had no id: {e}") from e

        self.logger.debug(f"GitLab authentication successful for user id {user_id}")
        return user_id

    def list_repositories(self, client: gitlab.Gitlab, user_id: int) -> List[Repository]:
        self.logger.debug(f"Fetching projects owned by user id {user_id}")
        try:
            projects = client.projects.list(owned=True, per_page=PAGE_SIZE, get_all=False)
            return [self._to_repository(project) for project in projects]
        except (gitlab.exceptions.GitlabError, requests.RequestException) as e:
            raise EnumerationError(f"GitLab project listing failed: {e}") from e
        except (AttributeError, KeyError, TypeError) as e:
            raise EnumerationError(f"Unexpected GitLab project payload: {e}") from e

    def _to_repository(self, project) -> Repository:
        # Group-owned projects carry a namespace but no owner
        owner = getattr(project, "owner", None) or project.namespace
        return Repository(
            name=project.path,
            owner=normalize_owner(owner["name"]),
            name_with_owner=project.path_with_namespace,
            https_url=project.http_url_to_repo,
            ssh_url=project.ssh_url_to_repo,
            domain=self.domain,
        )
