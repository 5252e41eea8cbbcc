import unittest

from open_bot.application.reporting import EventRecorder, LoggingReporter, noop_reporter
from open_bot.domain.models import ReportEvent


class TestReporters(unittest.TestCase):
    def test_noop_reporter_accepts_events(self) -> None:
        self.assertIsNone(noop_reporter(ReportEvent(item="acme/widgets", action="skip (no config)")))

    def test_recorder_keeps_order_and_forwards(self) -> None:
        forwarded = []
        recorder = EventRecorder(forward=forwarded.append)
        events = [
            ReportEvent(item="a", action="fetch config and issues", change="queued"),
            ReportEvent(item="b", action="fetch config and issues", change="queued"),
            ReportEvent(item="a", error="Failed to process work item: boom", stack="..."),
        ]

        for event in events:
            recorder(event)

        self.assertEqual(recorder.events, events)
        self.assertEqual(forwarded, events)
        self.assertEqual(recorder.for_item("a"), [events[0], events[2]])
        self.assertEqual(recorder.errors, [events[2]])

    def test_logging_reporter_levels(self) -> None:
        reporter = LoggingReporter()

        with self.assertLogs("open_bot.application.reporting", level="DEBUG") as logs:
            reporter(ReportEvent(item="acme/widgets#1", action="process issue", change="start"))
            reporter(ReportEvent(item="acme/widgets#2", action="skip (different bot user)"))
            reporter(ReportEvent(item="acme/widgets", error="Failed to process work item: boom", stack="trace"))

        self.assertEqual(
            logs.output,
            [
                "INFO:open_bot.application.reporting:[acme/widgets#1] process issue: start",
                "INFO:open_bot.application.reporting:[acme/widgets#2] skip (different bot user)",
                "ERROR:open_bot.application.reporting:[acme/widgets] Failed to process work item: boom",
                "DEBUG:open_bot.application.reporting:trace",
            ],
        )
