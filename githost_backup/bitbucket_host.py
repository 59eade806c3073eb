"""
Bitbucket Cloud hosting provider

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

import re
from typing import Any, Dict, List, Optional, Tuple

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

PAGE_SIZE = 100


class BitbucketHost(GitHost):
    """
    Bitbucket Cloud provider using app passwords.

    App passwords authenticate with HTTP basic auth and must be paired with
    the account username (BITBUCKET_USERNAME). The same pair is embedded in
    clone URLs, so the repository owner is never used as the clone user.
    """

    provider = "Bitbucket"
    domain = "bitbucket.org"

    def connect(self) -> requests.Session:
        session = build_session()
        session.auth = (self.config.username or "", self.config.token)
        return session

    def _get_json(self, session: requests.Session, url: str, params=None) -> Any:
        response = session.get(url, params=params, timeout=MAX_REQUEST_TIME)
        if response.status_code == 401:
            raise AuthenticationError(
                "Bitbucket authentication failed. App password needs Account: Read "
                "and Repositories: Read permissions"
            )
        response.raise_for_status()
        return response.json()

    def authenticate(self, session: requests.Session) -> str:
        if not self.config.username:
            raise AuthenticationError("Bitbucket app passwords require BITBUCKET_USERNAME")

        try:
            data = self._get_json(session, f"{self.api_url}/user")
            username = data["username"]
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            raise AuthenticationError(f"Bitbucket identity lookup failed: {e}") from e

        self.logger.debug(f"Bitbucket authentication successful for user: {username}")
        return username

    def list_repositories(self, session: requests.Session, user_id: str) -> List[Repository]:
        url = f"{self.api_url}/repositories/{user_id}"
        try:
            data = self._get_json(session, url, params={"role": "owner", "pagelen": PAGE_SIZE})
            return [self._to_repository(repo) for repo in data.get("values", [])]
        except AuthenticationError as e:
            raise EnumerationError(str(e)) from e
        except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
            raise EnumerationError(f"Bitbucket repository listing failed: {e}") from e

    def _to_repository(self, repo: Dict[str, Any]) -> Repository:
        return Repository(
            name=repo["slug"],
            owner=normalize_owner(repo["workspace"]["slug"]),
            name_with_owner=repo["full_name"],
            https_url=self._clone_link(repo, "https") or "",
            ssh_url=self._clone_link(repo, "ssh") or "",
            domain=self.domain,
        )

    @staticmethod
    def _clone_link(repo: Dict[str, Any], name: str) -> Optional[str]:
        for link in repo.get("links", {}).get("clone", []):
            if link.get("name") == name:
                href = link["href"]
                if name == "https":
                    # Bitbucket embeds the account name: https://user@bitbucket.org/...
                    href = re.sub(r"^https://[^@/]+@", "https://", href)
                return href
        return None

    def clone_credentials(self, repo: Repository) -> Tuple[str, str]:
        return self.config.username or "", self.config.token
