"""Pull request models."""

from dataclasses import dataclass
from enum import Enum


class PrState(Enum):
    """State of a pull request as reported by GitHub."""
    OPEN = "OPEN"
    MERGED = "MERGED"
    CLOSED = "CLOSED"


@dataclass
class PrReference:
    """Pull request details needed to check out its head branch."""

    number: int
    head_ref: str
    head_owner: str
    state: PrState
    is_draft: bool
    title: str
    author: str

    def is_fork(self, repo_owner: str) -> bool:
        """Whether the head branch lives in a fork rather than the base repository."""
        return self.head_owner.lower() != repo_owner.lower()

    @classmethod
    def from_gh_json(cls, number: int, data: dict) -> "PrReference":
        """Build from `gh pr view --json` output."""
        owner = data.get("headRepositoryOwner") or {}
        author = data.get("author") or {}
        return cls(
            number=number,
            head_ref=data["headRefName"],
            head_owner=owner.get("login", ""),
            state=PrState(data.get("state", "OPEN")),
            is_draft=bool(data.get("isDraft", False)),
            title=data.get("title", ""),
            author=author.get("login", ""),
        )
