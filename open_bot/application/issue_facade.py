import logging
from typing import Any, Dict, List, Optional

from open_bot.application.lazy import LazyValue
from open_bot.domain.models import Repository

logger = logging.getLogger(__name__)


class IssueFacade:
    """
    Issue or pull request handed to the rule engine.

    Raw fields are read through subscription (``issue["title"]``). Auxiliary
    data is exposed as lazily fetched, cached accessors that are awaited
    (``await issue.comments()``); nothing is requested until a rule asks for it.
    """

    type = "issue"

    def __init__(self, github_client, owner: str, repo_name: str, data: Dict[str, Any],
                 repo: Optional[Repository] = None):
        self.github_client = github_client
        self.owner = owner
        self.repo_name = repo_name
        self.data = data
        self.repo = repo
        self.full_name = f"{owner}/{repo_name}#{self.number}"

        self.timeline = LazyValue(self._fetch_timeline)
        self.comments = LazyValue(self._fetch_comments)
        self.pull_request_info = LazyValue(self._fetch_pull_request_info)
        self.pull_request_commits = LazyValue(self._fetch_pull_request_commits)
        self.pull_request_reviews = LazyValue(self._fetch_pull_request_reviews)
        self.pull_request_statuses = LazyValue(self._fetch_pull_request_statuses)

    @classmethod
    def attach(cls, github_client, owner: str, repo_name: str, issue: Dict[str, Any],
               repo: Optional[Repository] = None) -> "IssueFacade":
        return cls(github_client, owner, repo_name, issue, repo)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    @property
    def number(self) -> int:
        return self.data["number"]

    @property
    def is_pull_request(self) -> bool:
        return bool(self.data.get("pull_request"))

    def __repr__(self) -> str:
        return f"<IssueFacade {self.full_name}>"

    async def _fetch_timeline(self) -> List[Dict]:
        return await self.github_client.get_events_for_issue(self.owner, self.repo_name, self.number)

    async def _fetch_comments(self) -> List[Dict]:
        return await self.github_client.get_comments_for_issue(self.owner, self.repo_name, self.number)

    async def _fetch_pull_request_info(self) -> Optional[Dict[str, Any]]:
        if not self.is_pull_request:
            return None
        return await self.github_client.get_pull_request(self.owner, self.repo_name, self.number)

    async def _fetch_pull_request_commits(self) -> List[Dict]:
        if not self.is_pull_request:
            return []
        return await self.github_client.get_commits_for_pull_request(self.owner, self.repo_name, self.number)

    async def _fetch_pull_request_reviews(self) -> List[Dict]:
        if not self.is_pull_request:
            return []
        return await self.github_client.get_reviews_for_pull_request(self.owner, self.repo_name, self.number)

    async def _fetch_pull_request_statuses(self) -> List[Dict]:
        """Statuses of the head commit, newest first."""
        if not self.is_pull_request:
            return []
        info = await self.pull_request_info()
        sha = ((info or {}).get("head") or {}).get("sha")
        if not sha:
            logger.debug(f"{self.full_name} has no head sha; no statuses to fetch")
            return []
        statuses = await self.github_client.get_statuses(self.owner, self.repo_name, sha)
        return list(reversed(statuses))
