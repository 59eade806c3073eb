"""
githost-backup - Git hosting backup tool

Discovers every repository the authenticated user owns on GitLab, GitHub
and Bitbucket and keeps rotating git bundles of each on local storage.

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

__version__ = "1.0.0"
__license__ = "Apache-2.0"
__description__ = "Back up every repository you own on GitLab, GitHub and Bitbucket as rotating git bundles"

from .base import (
    AuthenticationError,
    BackupError,
    EnumerationError,
    GitHost,
    GitHostError,
    Repository,
)
from .bitbucket_host import BitbucketHost
from .config import ProviderConfig, load_provider_config
from .github_host import GitHubHost
from .gitlab_host import GitLabHost
from .orchestrator import BackupSummary, backup

__all__ = [
    "Repository",
    "GitHost",
    "GitHostError",
    "AuthenticationError",
    "EnumerationError",
    "BackupError",
    "GitLabHost",
    "GitHubHost",
    "BitbucketHost",
    "ProviderConfig",
    "load_provider_config",
    "BackupSummary",
    "backup",
]
