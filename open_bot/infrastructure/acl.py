from typing import Any, Dict
from open_bot.domain.models import IssueWorkItem, RepoWorkItem, Repository

class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON payloads into domain work items.
    """

    @staticmethod
    def to_repository(raw_repo: Dict[str, Any]) -> Repository:
        """
        Transforms a raw repository payload into a Repository.

        Args:
            raw_repo (Dict[str, Any]): The raw JSON of GET /repos/{owner}/{repo}.

        Returns:
            Repository: The domain model of the repository.
        """
        owner_data = raw_repo.get('owner') or {}
        owner = owner_data.get('login', '')
        name = raw_repo.get('name', '')
        if not owner or not name:
            raise ValueError("owner.login and name are required to build Repository.")

        return Repository(
            owner=owner,
            name=name,
            full_name=raw_repo.get('full_name') or f"{owner}/{name}",
            default_branch=raw_repo.get('default_branch'),
            raw=raw_repo,
        )

    @staticmethod
    def to_repo_work_item(raw_repo: Dict[str, Any]) -> RepoWorkItem:
        repo = GitHubTranslator.to_repository(raw_repo)
        return RepoWorkItem(repo=repo, full_name=repo.full_name)

    @staticmethod
    def to_issue_work_item(raw_issue: Dict[str, Any], raw_repo: Dict[str, Any]) -> IssueWorkItem:
        """
        Pairs a raw issue payload with its repository.

        Args:
            raw_issue (Dict[str, Any]): The raw JSON of GET /repos/{owner}/{repo}/issues/{number}.
            raw_repo (Dict[str, Any]): The raw JSON of the owning repository.

        Returns:
            IssueWorkItem: The resolved issue, identified as owner/repo#number.
        """
        number = raw_issue.get('number')
        if number is None:
            raise ValueError("number is required to build IssueWorkItem.")

        repo = GitHubTranslator.to_repository(raw_repo)
        return IssueWorkItem(
            repo=repo,
            number=number,
            full_name=f"{repo.owner}/{repo.name}#{number}",
            data=raw_issue,
        )
