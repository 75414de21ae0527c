"""Meeting record persistence.

All pipeline writes go through ``update_fields``, which issues a
column-targeted UPDATE restricted to the calling writer's ownership set.
Because writers own disjoint columns, concurrent stage writes commute and
no row lock is needed for them.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from models.db_models import (
    MeetingModel,
    STAGE_FIELD_OWNERSHIP,
    TranscriptChunkModel,
    UserModel,
)
from models.extraction_models import ActionItem
from services.database import Database

logger = logging.getLogger(__name__)


class FieldOwnershipError(ValueError):
    """Raised when a writer tries to update a column it does not own."""

    def __init__(self, writer: str, fields: Iterable[str]):
        self.writer = writer
        self.fields = sorted(fields)
        super().__init__(f"writer '{writer}' does not own fields: {', '.join(self.fields)}")


def next_action_item_id(items: Iterable[dict]) -> int:
    """Next per-meeting action item id: max existing id + 1, or 1 if none."""
    ids = [int(item.get("id") or 0) for item in items if isinstance(item, dict)]
    return max(ids) + 1 if ids else 1


def check_ownership(writer: str, fields: Iterable[str]) -> None:
    """Validate that ``writer`` owns every field in ``fields``."""
    owned = STAGE_FIELD_OWNERSHIP.get(writer)
    if owned is None:
        raise FieldOwnershipError(writer, fields)
    foreign = set(fields) - owned
    if foreign:
        raise FieldOwnershipError(writer, foreign)


class MeetingRepository:
    """Reads and stage-scoped writes of meeting records."""

    def __init__(self, database: Database):
        self.database = database

    async def get_by_id(self, meeting_id: str) -> Optional[MeetingModel]:
        async with self.database.session() as session:
            return await session.get(MeetingModel, meeting_id)

    async def get_owned(self, meeting_id: str, owner_id: str) -> Optional[MeetingModel]:
        """Meeting ``meeting_id`` if, and only if, it belongs to ``owner_id``."""
        async with self.database.session() as session:
            result = await session.execute(
                select(MeetingModel).where(
                    MeetingModel.id == meeting_id,
                    MeetingModel.created_by_id == owner_id,
                )
            )
            return result.scalar_one_or_none()

    async def get_owner(self, user_id: str) -> Optional[UserModel]:
        async with self.database.session() as session:
            return await session.get(UserModel, user_id)

    async def list_meeting_ids(self, owner_id: str) -> List[str]:
        async with self.database.session() as session:
            result = await session.execute(
                select(MeetingModel.id).where(MeetingModel.created_by_id == owner_id)
            )
            return list(result.scalars().all())

    async def find_by_bot_id(self, bot_id: str) -> Optional[MeetingModel]:
        """Resolve an external bot id to its meeting record.

        Returns None when nothing matches. When the bot id is (incorrectly)
        shared by several records, the most recently created one wins.
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(MeetingModel)
                .where(MeetingModel.bot_id == bot_id)
                .order_by(MeetingModel.created_at.desc())
                .limit(2)
            )
            matches = list(result.scalars().all())

        if len(matches) > 1:
            logger.warning(
                f"Multiple meetings share bot_id={bot_id}; using most recent meeting_id={matches[0].id}"
            )
        return matches[0] if matches else None

    async def update_fields(self, meeting_id: str, writer: str, **values: Any) -> bool:
        """Update only the given columns of one meeting.

        Args:
            meeting_id: Target meeting.
            writer: Ownership key from ``STAGE_FIELD_OWNERSHIP``.
            **values: Column values to write.

        Returns:
            True if a row was updated, False if the meeting does not exist.

        Raises:
            FieldOwnershipError: If ``values`` contains a column ``writer``
                does not own.
        """
        check_ownership(writer, values.keys())
        values["updated_at"] = datetime.now(timezone.utc)

        async with self.database.session() as session:
            result = await session.execute(
                update(MeetingModel)
                .where(MeetingModel.id == meeting_id)
                .values(**values)
            )
            await session.commit()

        updated = (result.rowcount or 0) > 0
        logger.debug(
            f"Meeting fields updated: meeting_id={meeting_id}, writer={writer}, "
            f"fields={sorted(k for k in values if k != 'updated_at')}, updated={updated}"
        )
        return updated

    async def mark_transcript_ready(
        self,
        meeting_id: str,
        transcript: Any,
        recording_url: Optional[str],
        speakers: Any,
    ) -> bool:
        """Ingress write: flag the meeting ended/transcript-ready and store raw artifacts.

        Artifacts the event did not carry are left untouched, so a
        media-only completion never clears a transcript stored earlier.
        """
        now = datetime.now(timezone.utc)
        artifacts = {
            "transcript": transcript,
            "recording_url": recording_url,
            "speakers": speakers,
        }
        return await self.update_fields(
            meeting_id,
            "ingress",
            meeting_ended=True,
            meeting_ended_at=now,
            transcript_ready=True,
            transcript_ready_at=now,
            **{column: value for column, value in artifacts.items() if value is not None},
        )

    async def add_action_item(self, meeting_id: str, owner_id: str, text: str) -> Optional[ActionItem]:
        """Append an action item with id = max existing id + 1.

        The row is locked for the read-modify-write so two concurrent adds
        cannot be assigned the same id.
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(MeetingModel)
                .where(MeetingModel.id == meeting_id, MeetingModel.created_by_id == owner_id)
                .with_for_update()
            )
            meeting = result.scalar_one_or_none()
            if meeting is None:
                return None

            existing = list(meeting.action_items or [])
            item = ActionItem(id=next_action_item_id(existing), text=text)
            check_ownership("owner", ["action_items"])
            await session.execute(
                update(MeetingModel)
                .where(MeetingModel.id == meeting_id)
                .values(
                    action_items=existing + [item.model_dump()],
                    updated_at=datetime.now(timezone.utc),
                )
            )
            await session.commit()

        logger.info(f"Action item added: meeting_id={meeting_id}, item_id={item.id}")
        return item

    async def remove_action_item(self, meeting_id: str, owner_id: str, item_id: int) -> bool:
        """Remove one action item.

        Returns False if the meeting is not found or holds no item with
        ``item_id``; nothing is written in that case.
        """
        async with self.database.session() as session:
            result = await session.execute(
                select(MeetingModel)
                .where(MeetingModel.id == meeting_id, MeetingModel.created_by_id == owner_id)
                .with_for_update()
            )
            meeting = result.scalar_one_or_none()
            if meeting is None:
                return False

            existing = meeting.action_items or []
            remaining = [
                item for item in existing
                if not (isinstance(item, dict) and item.get("id") == item_id)
            ]
            if len(remaining) == len(existing):
                return False

            await session.execute(
                update(MeetingModel)
                .where(MeetingModel.id == meeting_id)
                .values(action_items=remaining, updated_at=datetime.now(timezone.utc))
            )
            await session.commit()

        logger.info(f"Action item removed: meeting_id={meeting_id}, item_id={item_id}")
        return True

    async def save_chunks(self, chunks: List[TranscriptChunkModel]) -> int:
        """Insert chunk rows, skipping any (meeting_id, chunk_index) already stored.

        Returns:
            Number of rows actually inserted.
        """
        if not chunks:
            return 0

        rows = [
            {
                "id": chunk.id,
                "meeting_id": chunk.meeting_id,
                "chunk_index": chunk.chunk_index,
                "content": chunk.content,
                "speaker_name": chunk.speaker_name,
                "vector_id": chunk.vector_id,
                "created_at": chunk.created_at,
            }
            for chunk in chunks
        ]
        stmt = (
            pg_insert(TranscriptChunkModel)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["meeting_id", "chunk_index"])
        )

        async with self.database.session() as session:
            result = await session.execute(stmt)
            await session.commit()

        inserted = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else 0
        logger.info(
            f"Transcript chunks saved: meeting_id={chunks[0].meeting_id}, "
            f"inserted={inserted}, skipped={len(chunks) - inserted}"
        )
        return inserted
