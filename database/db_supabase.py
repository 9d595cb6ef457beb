# database/db_supabase.py

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from supabase import AsyncClient, acreate_client

logger = logging.getLogger(__name__)


class Database:
    """Thin async gateway over the hosted Supabase tables.

    Errors from the client are not caught here: the stores decide how a
    failure is reported to the user.
    """

    def __init__(self, client: AsyncClient):
        self.client = client

    @classmethod
    async def connect(cls, url: str, key: str) -> 'Database':
        client = await acreate_client(url, key)
        logger.info("Connected to Supabase project.")
        return cls(client)

    @property
    def auth(self):
        return self.client.auth

    # --- Tables ---
    async def fetch_all(self, table: str, order: str, desc: bool = False) -> List[dict]:
        response = await self.client.table(table).select('*').order(order, desc=desc).execute()
        return response.data or []

    async def fetch_in(self, table: str, columns: str, column: str, values: Iterable[Any]) -> List[dict]:
        values = list(values)
        if not values:
            return []
        response = await self.client.table(table).select(columns).in_(column, values).execute()
        return response.data or []

    async def fetch_one(self, table: str, column: str, value: Any, columns: str = '*') -> Optional[dict]:
        response = await self.client.table(table).select(columns).eq(column, value).limit(1).execute()
        return response.data[0] if response.data else None

    async def insert(self, table: str, row: Dict[str, Any]) -> dict:
        response = await self.client.table(table).insert(row).execute()
        return response.data[0]

    async def update(self, table: str, record_id: str, values: Dict[str, Any]) -> dict:
        response = await self.client.table(table).update(values).eq('id', record_id).execute()
        if not response.data:
            raise LookupError(f"No {table} row with id {record_id}")
        return response.data[0]

    async def delete(self, table: str, record_id: str) -> None:
        await self.client.table(table).delete().eq('id', record_id).execute()

    # --- Realtime ---
    async def subscribe(self, table: str, callback: Callable[[dict], None]):
        """Listen to every insert/update/delete on ``public.<table>``."""
        channel = self.client.channel(f'{table}-changes')
        channel.on_postgres_changes('*', schema='public', table=table, callback=callback)
        await channel.subscribe()
        logger.info(f"Subscribed to change feed of '{table}'.")
        return channel

    async def unsubscribe(self, channel) -> None:
        await self.client.remove_channel(channel)
