"""Write-through persistence of conversation records."""

from __future__ import annotations

import json

from reply_tracker.log import get_logger
from reply_tracker.storage.database import Database
from reply_tracker.tracking.models import ConversationRecord

logger = get_logger(__name__)


class RecordRepository:
    """Stores each ConversationRecord as one JSON row; plugs into ConversationStore."""

    def __init__(self, db: Database):
        self._db = db

    async def save(self, record: ConversationRecord) -> None:
        await self._db.conn.execute(
            """INSERT INTO conversations (conversation_id, bot_id, needs_reply, payload_json, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(conversation_id)
               DO UPDATE SET needs_reply = excluded.needs_reply,
                             payload_json = excluded.payload_json,
                             updated_at = excluded.updated_at""",
            (
                record.conversation_id,
                record.bot_id,
                int(record.needs_reply),
                json.dumps(record.to_dict(), ensure_ascii=False),
                record.updated_at.isoformat(),
            ),
        )
        await self._db.conn.commit()

    async def delete(self, conversation_id: str) -> None:
        await self._db.conn.execute(
            "DELETE FROM conversations WHERE conversation_id = ?", (conversation_id,)
        )
        await self._db.conn.commit()

    async def load_all(self) -> list[ConversationRecord]:
        cursor = await self._db.conn.execute(
            "SELECT conversation_id, payload_json FROM conversations ORDER BY conversation_id"
        )
        rows = await cursor.fetchall()
        records: list[ConversationRecord] = []
        for row in rows:
            try:
                records.append(ConversationRecord.from_dict(json.loads(row["payload_json"])))
            except (ValueError, KeyError) as e:
                logger.error(
                    "record_load_error", conversation_id=row["conversation_id"], error=str(e)
                )
        return records

