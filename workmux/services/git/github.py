"""GitHub pull request lookup through the `gh` CLI"""
import json
import subprocess
from typing import Optional, Tuple
from urllib.parse import urlparse

from workmux.exceptions import CliNotFoundError, PrFetchFailedError
from workmux.logging_config import get_logger
from workmux.models.pull_request import PrReference

logger = get_logger(__name__)

PR_JSON_FIELDS = "headRefName,headRepositoryOwner,state,isDraft,title,author"


def parse_github_remote(remote_url: str) -> Optional[Tuple[str, str]]:
    """Split a GitHub remote URL into (owner, repo); None for other hosts."""
    if not remote_url or "github.com" not in remote_url:
        return None

    if remote_url.startswith("git@"):
        # SSH URL format (git@github.com:org/repo.git)
        path = remote_url.split("github.com:", 1)[1]
    else:
        # HTTPS URL format (https://github.com/org/repo.git)
        path = urlparse(remote_url).path.strip("/")

    if path.endswith(".git"):
        path = path[:-4]

    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        return None
    return parts[0], parts[1]


def fork_remote_url(origin_url: str, fork_owner: str) -> str:
    """URL of the same repository under another owner, in origin's URL style."""
    parsed = parse_github_remote(origin_url)
    if parsed is None:
        raise ValueError(f"Not a GitHub remote: {origin_url}")
    _, repo = parsed
    if origin_url.startswith("git@"):
        return f"git@github.com:{fork_owner}/{repo}.git"
    return f"https://github.com/{fork_owner}/{repo}.git"


class GitHubService:
    """Fetches pull request metadata with the GitHub CLI."""

    def __init__(self, repo_path: str):
        self.repo_path = repo_path

    def fetch_pr(self, number: int) -> PrReference:
        """Look up a pull request.

        Args:
            number: PR number

        Returns:
            PrReference for the PR

        Raises:
            CliNotFoundError: `gh` is not installed
            PrFetchFailedError: `gh` exited non-zero or returned unusable data
        """
        cmd = ["gh", "pr", "view", str(number), "--json", PR_JSON_FIELDS]
        logger.debug(f"[GitHub] Running {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=self.repo_path,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                check=False,
            )
        except FileNotFoundError:
            raise CliNotFoundError(
                "gh",
                "GitHub CLI (gh) is required for --pr. Install from https://cli.github.com",
            )

        if result.returncode != 0:
            raise PrFetchFailedError(number, result.stderr or f"gh exited with {result.returncode}")

        try:
            data = json.loads(result.stdout)
            pr = PrReference.from_gh_json(number, data)
        except (ValueError, KeyError, TypeError) as e:
            raise PrFetchFailedError(number, f"unexpected response from gh: {e}")

        logger.debug(f"[GitHub] PR #{number}: {pr.head_owner}:{pr.head_ref} ({pr.state.value})")
        return pr
