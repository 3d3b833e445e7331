"""
Configuration for pytest test suite
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Variables read by Settings.from_env; cleared so the developer's or CI's
# environment never leaks into a test
SETTINGS_ENV_VARS = [
    "COMMENT_PLATFORM",
    "COMMENT_TOKEN",
    "COMMENT_API_URL",
    "COMMENT_REPOSITORY",
    "COMMENT_PULL_REQUEST",
    "COMMENT_TAG",
    "COMMENT_BEHAVIOR",
    "COMMENT_SKIP_NO_DIFF",
    "TIMEOUT_SECONDS",
    "REQUEST_TIMEOUT_SECONDS",
    "MAX_RETRIES",
    "RETRY_DELAY",
    "RETRY_BACKOFF_FACTOR",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FILE",
    "TROUBLESHOOTING_URL",
    "GITHUB_TOKEN",
    "GITHUB_API_URL",
    "GITHUB_REPOSITORY",
    "GITHUB_PULL_REQUEST_NUMBER",
    "GITLAB_TOKEN",
    "CI_API_V4_URL",
    "CI_PROJECT_ID",
    "CI_MERGE_REQUEST_IID",
    "BITBUCKET_TOKEN",
    "BITBUCKET_REPO_FULL_NAME",
    "BITBUCKET_PR_ID",
    "SYSTEM_ACCESSTOKEN",
    "SYSTEM_COLLECTIONURI",
    "SYSTEM_TEAMPROJECT",
    "BUILD_REPOSITORY_NAME",
    "SYSTEM_PULLREQUEST_PULLREQUESTID",
]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove settings variables from the environment for every test."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_log_context():
    """Tests must not see log context left behind by another test."""
    from comment_poster.utils.logger import clear_log_context

    clear_log_context()
    yield
    clear_log_context()
