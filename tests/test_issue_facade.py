import asyncio
import unittest
from collections import Counter

from open_bot.application.issue_facade import IssueFacade
from open_bot.application.lazy import LazyValue


class _CountingClient:
    def __init__(self, pull_request=None, statuses=None) -> None:
        self.counts = Counter()
        self.pull_request = pull_request
        self.statuses = statuses or []

    async def _hit(self, name):
        self.counts[name] += 1
        await asyncio.sleep(0)

    async def get_events_for_issue(self, owner, repo, number):
        await self._hit("events")
        return [{"event": "labeled"}]

    async def get_comments_for_issue(self, owner, repo, number):
        await self._hit("comments")
        raise RuntimeError("comments unavailable")

    async def get_pull_request(self, owner, repo, number):
        await self._hit("pull_request")
        return self.pull_request

    async def get_commits_for_pull_request(self, owner, repo, number):
        await self._hit("commits")
        return [{"sha": "abc"}]

    async def get_reviews_for_pull_request(self, owner, repo, number):
        await self._hit("reviews")
        return [{"state": "APPROVED"}]

    async def get_statuses(self, owner, repo, sha):
        await self._hit("statuses")
        return list(self.statuses)


ISSUE = {"number": 12, "title": "Crash on start"}
PULL_REQUEST = {"number": 13, "title": "Fix crash", "pull_request": {"url": "https://api.github.com/..."}}


class TestLazyValue(unittest.IsolatedAsyncioTestCase):
    async def test_producer_runs_once_and_only_when_called(self) -> None:
        calls = []

        async def produce():
            calls.append(1)
            return 42

        lazy = LazyValue(produce)
        self.assertEqual(lazy.state, "uncomputed")
        self.assertEqual(calls, [])

        first = lazy()
        self.assertEqual(lazy.state, "pending")
        self.assertIs(lazy(), first)
        self.assertEqual(await lazy(), 42)
        self.assertEqual(await lazy(), 42)
        self.assertEqual(lazy.state, "resolved")
        self.assertEqual(calls, [1])


class TestIssueFacade(unittest.IsolatedAsyncioTestCase):
    async def test_plain_issue_needs_no_pull_request_fetches(self) -> None:
        client = _CountingClient()
        issue = IssueFacade.attach(client, "acme", "widgets", dict(ISSUE))

        self.assertIsNone(await issue.pull_request_info())
        self.assertEqual(await issue.pull_request_commits(), [])
        self.assertEqual(await issue.pull_request_reviews(), [])
        self.assertEqual(await issue.pull_request_statuses(), [])
        self.assertEqual(sum(client.counts.values()), 0)

    async def test_raw_fields_and_identity(self) -> None:
        issue = IssueFacade.attach(_CountingClient(), "acme", "widgets", dict(ISSUE))

        self.assertEqual(issue["title"], "Crash on start")
        self.assertEqual(issue.get("missing", "-"), "-")
        self.assertIn("number", issue)
        self.assertEqual(issue.type, "issue")
        self.assertEqual(issue.full_name, "acme/widgets#12")
        self.assertIsNone(issue.repo)

    async def test_nothing_is_fetched_until_read(self) -> None:
        client = _CountingClient(pull_request={"head": {"sha": "abc"}})
        IssueFacade.attach(client, "acme", "widgets", dict(PULL_REQUEST))
        await asyncio.sleep(0)

        self.assertEqual(sum(client.counts.values()), 0)

    async def test_concurrent_reads_share_one_fetch(self) -> None:
        client = _CountingClient()
        issue = IssueFacade.attach(client, "acme", "widgets", dict(ISSUE))

        first, second = await asyncio.gather(issue.timeline(), issue.timeline())
        third = await issue.timeline()

        self.assertIs(first, second)
        self.assertIs(first, third)
        self.assertEqual(client.counts["events"], 1)

    async def test_failures_are_cached_too(self) -> None:
        client = _CountingClient()
        issue = IssueFacade.attach(client, "acme", "widgets", dict(ISSUE))

        for _ in range(2):
            with self.assertRaises(RuntimeError):
                await issue.comments()
        self.assertEqual(client.counts["comments"], 1)

    async def test_statuses_are_newest_first(self) -> None:
        client = _CountingClient(
            pull_request={"head": {"sha": "abc"}},
            statuses=[{"id": "oldest"}, {"id": "middle"}, {"id": "newest"}],
        )
        issue = IssueFacade.attach(client, "acme", "widgets", dict(PULL_REQUEST))

        statuses = await issue.pull_request_statuses()

        self.assertEqual([s["id"] for s in statuses], ["newest", "middle", "oldest"])

    async def test_statuses_reuse_the_pull_request_fetch(self) -> None:
        client = _CountingClient(pull_request={"head": {"sha": "abc"}}, statuses=[{"id": 1}])
        issue = IssueFacade.attach(client, "acme", "widgets", dict(PULL_REQUEST))

        info, statuses, again = await asyncio.gather(
            issue.pull_request_info(), issue.pull_request_statuses(), issue.pull_request_statuses()
        )

        self.assertEqual(info["head"]["sha"], "abc")
        self.assertIs(statuses, again)
        self.assertEqual(client.counts["pull_request"], 1)
        self.assertEqual(client.counts["statuses"], 1)

    async def test_statuses_without_head_sha_are_empty(self) -> None:
        client = _CountingClient(pull_request={"head": {}})
        issue = IssueFacade.attach(client, "acme", "widgets", dict(PULL_REQUEST))

        self.assertEqual(await issue.pull_request_statuses(), [])
        self.assertEqual(client.counts["statuses"], 0)

    async def test_pull_request_fields_are_fetched_for_pull_requests(self) -> None:
        client = _CountingClient(pull_request={"head": {"sha": "abc"}})
        issue = IssueFacade.attach(client, "acme", "widgets", dict(PULL_REQUEST))

        self.assertEqual(await issue.pull_request_commits(), [{"sha": "abc"}])
        self.assertEqual(await issue.pull_request_reviews(), [{"state": "APPROVED"}])
        self.assertEqual((client.counts["commits"], client.counts["reviews"]), (1, 1))
