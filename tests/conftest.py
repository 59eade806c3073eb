"""
Shared fixtures for githost-backup tests

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

import subprocess
from pathlib import Path
from typing import List

import pytest

from githost_backup.base import GitHost, Repository
from githost_backup.config import ProviderConfig


class FakeHost(GitHost):
    """Host returning a fixed repository list without any HTTP"""

    provider = "Fake"

    def __init__(self, config: ProviderConfig, repos: List[Repository]):
        super().__init__(config)
        self.repos = repos
        self.authenticated = 0

    def connect(self):
        return object()

    def authenticate(self, client):
        self.authenticated += 1
        return 42

    def list_repositories(self, client, user_id):
        assert user_id == 42
        return list(self.repos)


def make_repo(name: str, owner: str = "Org", domain: str = "git.example") -> Repository:
    return Repository(
        name=name,
        owner=owner,
        name_with_owner=f"{owner}/{name}",
        https_url=f"https://{domain}/{name}.git",
        ssh_url=f"git@{domain}:{owner}/{name}.git",
        domain=domain,
    )


@pytest.fixture
def fake_config():
    return ProviderConfig(provider="fake", token="abc", api_url="https://git.example/api", backups_to_keep=3)


@pytest.fixture
def local_git_repo(tmp_path):
    """A local git repository with one commit"""
    repo_path = tmp_path / "source" / "test-repo"
    repo_path.mkdir(parents=True)

    def git(*args):
        subprocess.run(["git", *args], cwd=repo_path, capture_output=True, check=True)

    git("init")
    git("config", "user.email", "test@test.com")
    git("config", "user.name", "Test User")
    (repo_path / "README.md").write_text("# Test Repository\n")
    git("add", "README.md")
    git("commit", "-m", "Initial commit")

    yield repo_path


def commit_file(repo_path: Path, name: str, content: str) -> None:
    (repo_path / name).write_text(content)
    subprocess.run(["git", "add", name], cwd=repo_path, capture_output=True, check=True)
    subprocess.run(
        ["git", "commit", "-m", f"Add {name}"], cwd=repo_path, capture_output=True, check=True
    )
