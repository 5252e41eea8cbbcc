import logging
from typing import List, Optional

from open_bot.domain.models import ReportEvent, Reporter

logger = logging.getLogger(__name__)


def noop_reporter(event: ReportEvent) -> None:
    pass


class LoggingReporter:
    """Writes report events to the log: lifecycle at INFO, failures at ERROR."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def __call__(self, event: ReportEvent) -> None:
        if event.is_error:
            self.log.error(f"[{event.item}] {event.error}")
            if event.stack:
                self.log.debug(event.stack)
        elif event.change:
            self.log.info(f"[{event.item}] {event.action}: {event.change}")
        else:
            self.log.info(f"[{event.item}] {event.action}")


class EventRecorder:
    """Keeps every event in emission order, optionally forwarding to another reporter."""

    def __init__(self, forward: Reporter = noop_reporter):
        self.forward = forward
        self.events: List[ReportEvent] = []

    def __call__(self, event: ReportEvent) -> None:
        self.events.append(event)
        self.forward(event)

    def for_item(self, item: str) -> List[ReportEvent]:
        return [event for event in self.events if event.item == item]

    @property
    def errors(self) -> List[ReportEvent]:
        return [event for event in self.events if event.is_error]
