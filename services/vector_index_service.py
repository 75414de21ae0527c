"""Vector indexing and semantic search over meeting transcripts.

Transcripts are chunked, embedded with OpenAI and upserted into a Chroma
collection under deterministic ids (``{meeting_id}_chunk_{index}``), so
re-indexing the same meeting replaces vectors instead of duplicating them.
"""
import os
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from models.db_models import TranscriptChunkModel, build_vector_id
from models.transcript import NormalizedTranscript
from services.meeting_repository import MeetingRepository
from utils.text_utils import chunk_transcript, extract_speaker

logger = logging.getLogger(__name__)

EMBEDDING_BATCH_SIZE = 100
DEFAULT_MEETING_TITLE = "Untitled Meeting"


@dataclass
class SearchMatch:
    """One chunk returned by a semantic search."""
    meeting_id: Optional[str]
    meeting_title: Optional[str]
    content: str
    speaker_name: str
    confidence: float


class VectorIndexService:
    """Embeds transcript chunks into Chroma and searches them per owner."""

    def __init__(
        self,
        openai_client: AsyncOpenAI,
        collection: Any,
        repository: MeetingRepository,
        embedding_model: Optional[str] = None
    ):
        """
        Args:
            openai_client: Shared OpenAI client used for embeddings
            collection: Chroma async collection (or any object with async
                ``upsert`` and ``query`` of the same signature)
            repository: Meeting repository for chunk rows and the rag flag
            embedding_model: Embedding model name (default: OPENAI_EMBEDDING_MODEL)
        """
        self.openai_client = openai_client
        self.collection = collection
        self.repository = repository
        self.embedding_model = embedding_model or os.getenv(
            "OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"
        )
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

    def _require_collection(self) -> Any:
        if self.collection is None:
            raise RuntimeError("Vector store is not available")
        return self.collection

    async def embed_texts(self, texts: List[str]) -> List[List[float]]:
        """Embed texts in batches, preserving input order."""
        embeddings: List[List[float]] = []
        for offset in range(0, len(texts), EMBEDDING_BATCH_SIZE):
            batch = texts[offset:offset + EMBEDDING_BATCH_SIZE]
            response = await self.openai_client.embeddings.create(
                model=self.embedding_model,
                input=batch,
                timeout=self.timeout,
            )
            embeddings.extend(item.embedding for item in sorted(response.data, key=lambda d: d.index))
        return embeddings

    async def index_transcript(
        self,
        meeting_id: str,
        user_id: str,
        transcript: NormalizedTranscript,
        meeting_title: Optional[str] = None
    ) -> int:
        """Chunk, embed and upsert a meeting transcript, then flag it indexed.

        Returns:
            Number of chunks indexed (0 for an empty transcript, in which
            case nothing is written)
        """
        chunks = chunk_transcript(transcript.text)
        if not chunks:
            logger.info(f"No transcript content to index: meeting_id={meeting_id}")
            return 0

        texts = [chunk.content for chunk in chunks]
        embeddings = await self.embed_texts(texts)

        title = meeting_title or DEFAULT_MEETING_TITLE
        ids = [build_vector_id(meeting_id, chunk.chunk_index) for chunk in chunks]
        speakers = [extract_speaker(chunk.content) for chunk in chunks]

        await self.repository.save_chunks([
            TranscriptChunkModel(
                meeting_id=meeting_id,
                chunk_index=chunk.chunk_index,
                content=chunk.content,
                speaker_name=speaker,
                vector_id=vector_id,
            )
            for chunk, speaker, vector_id in zip(chunks, speakers, ids)
        ])

        await self._require_collection().upsert(
            ids=ids,
            embeddings=embeddings,
            documents=texts,
            metadatas=[
                {
                    "meetingId": meeting_id,
                    "userId": user_id,
                    "chunkIndex": chunk.chunk_index,
                    "content": chunk.content,
                    "speakerName": speaker,
                    "meetingTitle": title,
                }
                for chunk, speaker in zip(chunks, speakers)
            ],
        )

        await self.repository.update_fields(
            meeting_id,
            "vector",
            rag_processed=True,
            rag_processed_at=datetime.now(timezone.utc),
        )

        logger.info(f"Transcript indexed: meeting_id={meeting_id}, chunks={len(chunks)}")
        return len(chunks)

    async def search(
        self,
        question: str,
        user_id: str,
        meeting_id: Optional[str] = None,
        top_k: int = 5
    ) -> List[SearchMatch]:
        """Nearest chunks to ``question``, restricted to one owner (and optionally one meeting)."""
        embedding = (await self.embed_texts([question]))[0]

        if meeting_id:
            where: Dict[str, Any] = {"$and": [{"userId": user_id}, {"meetingId": meeting_id}]}
        else:
            where = {"userId": user_id}

        results = await self._require_collection().query(
            query_embeddings=[embedding],
            n_results=top_k,
            where=where,
            include=["metadatas", "distances"],
        )

        metadatas = (results.get("metadatas") or [[]])[0] or []
        distances = (results.get("distances") or [[]])[0] or []

        matches = []
        for index, metadata in enumerate(metadatas):
            metadata = metadata or {}
            distance = distances[index] if index < len(distances) else None
            matches.append(SearchMatch(
                meeting_id=metadata.get("meetingId"),
                meeting_title=metadata.get("meetingTitle"),
                content=metadata.get("content", ""),
                speaker_name=metadata.get("speakerName", "Unknown"),
                # cosine distance -> similarity
                confidence=round(1.0 - float(distance), 4) if distance is not None else 0.0,
            ))

        logger.debug(
            f"Vector search: user_id={user_id}, meeting_id={meeting_id}, matches={len(matches)}"
        )
        return matches
