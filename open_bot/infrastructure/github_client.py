import aiohttp
import logging
from typing import Dict, Any, List, Optional

from open_bot.domain.exceptions import ForgeRequestError

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
PER_PAGE = 100
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)
# Limit concurrent connections to avoid overwhelming GitHub's servers
CONNECTOR_LIMIT = 20

class GitHubRestClient:
    """
    Client for the GitHub REST API.
    Every method issues the request(s) for one capability; there is no retry or caching.
    """

    def __init__(self, token: Optional[str] = None, session: Optional[aiohttp.ClientSession] = None,
                 api_url: str = API_URL):
        self.headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "open-bot",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.api_url = api_url.rstrip("/")
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "GitHubRestClient":
        if self._session is None:
            self._session = aiohttp.ClientSession(
                connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
                timeout=REQUEST_TIMEOUT,
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        await self.close()
        return False

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None
            self._owns_session = False

    async def _request(self, url: str, params: Optional[Dict[str, Any]] = None):
        """
        Performs a single GET request.

        Returns:
            Tuple of (decoded JSON body, URL of the next page or None).
        """
        if self._session is None:
            raise RuntimeError("GitHubRestClient session is not open; use 'async with'.")

        logger.debug(f"GET {url} {params or ''}")
        async with self._session.get(url, params=params, headers=self.headers) as response:
            if response.status >= 400:
                message = await response.text()
                raise ForgeRequestError(response.status, url, message[:200])
            data = await response.json()
            next_link = response.links.get("next")
            next_url = str(next_link["url"]) if next_link else None
            return data, next_url

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        data, _ = await self._request(f"{self.api_url}{path}", params)
        return data

    async def _get_paginated(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict]:
        """Follows the Link header until every page has been collected."""
        params = {"per_page": PER_PAGE, **(params or {})}
        url = f"{self.api_url}{path}"
        items: List[Dict] = []
        while url:
            page, url = await self._request(url, params)
            # The next link already carries the query string
            params = None
            items.extend(page or [])
        return items

    async def get_repo(self, owner: str, repo: str) -> Dict[str, Any]:
        return await self._get(f"/repos/{owner}/{repo}")

    async def get_issue(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return await self._get(f"/repos/{owner}/{repo}/issues/{number}")

    async def get_repos_of_org(self, org: str) -> List[Dict]:
        return await self._get_paginated(f"/orgs/{org}/repos")

    async def get_blob(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetches a file through the contents API.

        Returns:
            The contents payload; ``content`` holds the base64 encoded file.
        """
        params = {"ref": ref} if ref else None
        return await self._get(f"/repos/{owner}/{repo}/contents/{path.lstrip('/')}", params)

    async def get_issues_for_repo(self, owner: str, repo: str) -> List[Dict]:
        """Returns all open issues and pull requests of a repository."""
        return await self._get_paginated(f"/repos/{owner}/{repo}/issues", {"state": "open"})

    async def get_events_for_issue(self, owner: str, repo: str, number: int) -> List[Dict]:
        return await self._get_paginated(f"/repos/{owner}/{repo}/issues/{number}/timeline")

    async def get_comments_for_issue(self, owner: str, repo: str, number: int) -> List[Dict]:
        return await self._get_paginated(f"/repos/{owner}/{repo}/issues/{number}/comments")

    async def get_pull_request(self, owner: str, repo: str, number: int) -> Dict[str, Any]:
        return await self._get(f"/repos/{owner}/{repo}/pulls/{number}")

    async def get_commits_for_pull_request(self, owner: str, repo: str, number: int) -> List[Dict]:
        return await self._get_paginated(f"/repos/{owner}/{repo}/pulls/{number}/commits")

    async def get_reviews_for_pull_request(self, owner: str, repo: str, number: int) -> List[Dict]:
        return await self._get_paginated(f"/repos/{owner}/{repo}/pulls/{number}/reviews")

    async def get_statuses(self, owner: str, repo: str, sha: str) -> List[Dict]:
        """Returns the commit statuses of ``sha`` in the order GitHub lists them."""
        return await self._get_paginated(f"/repos/{owner}/{repo}/commits/{sha}/statuses")
