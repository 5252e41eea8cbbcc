from typing import List
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy import Table, Column, String, Integer, Text, DateTime, MetaData, text

from open_bot.domain.models import ReportEvent

# SQLAlchemy core Table definition
metadata = MetaData()
events_table = Table(
    'open_bot_report_events', metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('run_id', String, nullable=False, index=True),
    Column('seq', Integer, nullable=False),
    Column('item', String, nullable=False),
    Column('action', String),
    Column('change', String),
    Column('error', Text),
    Column('stack', Text),
    Column('recorded_at', DateTime(timezone=True), server_default=text('NOW()')),
)

class PostgresEventStore:
    """
    Append-only audit log of report events, one row per event of a run.
    Rows are never read back by the bot.
    """

    def __init__(self, db_url: str):
        self.engine = create_async_engine(db_url, echo=False)

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    async def bulk_insert(self, run_id: str, events: List[ReportEvent]) -> None:
        """
        Inserts the events of one run in a single batch operation.

        Args:
            run_id (str): Identifier shared by every event of the run.
            events (List[ReportEvent]): Events in emission order.
        """
        if not events:
            return  # Nothing was reported

        values = [
            {   'run_id': run_id,
                'seq': seq,
                'item': event.item,
                'action': event.action,
                'change': event.change,
                'error': event.error,
                'stack': event.stack,
            } for seq, event in enumerate(events)
        ]

        async with self.engine.begin() as conn:
            await conn.execute(insert(events_table).values(values))

    async def dispose(self) -> None:
        await self.engine.dispose()
