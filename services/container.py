"""Process-wide service wiring.

Every external client (database engine, OpenAI, HTTP, Redis, Chroma, Neo4j)
is created once at startup and passed by reference to the services that
use it. Tests replace the whole container on ``app.state``.
"""
import os
import logging
from dataclasses import dataclass
from typing import Any, Optional

import chromadb
import httpx
import instructor
from fastapi import Request
from neo4j import AsyncGraphDatabase
from openai import AsyncOpenAI

from services.cache_service import ResponseCache
from services.database import Database
from services.email_service import EmailService
from services.graph_service import GraphService
from services.meeting_repository import MeetingRepository
from services.pipeline_service import MeetingPipeline
from services.queue_service import QueueService
from services.rag_service import RagService
from services.risk_service import RiskService
from services.sentiment_service import SentimentService
from services.speaker_profile_service import SpeakerProfileService
from services.summarizer_service import SummarizerService
from services.vector_index_service import VectorIndexService

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    repository: MeetingRepository
    queue: QueueService
    pipeline: MeetingPipeline
    rag: RagService
    graph: Optional[GraphService] = None
    database: Optional[Database] = None
    openai_client: Optional[AsyncOpenAI] = None
    http_client: Optional[httpx.AsyncClient] = None
    cache: Optional[ResponseCache] = None
    neo4j_driver: Any = None

    async def close(self) -> None:
        """Release every client. Errors are logged so one failure cannot block the rest."""
        for name, closer in (
            ("http_client", self.http_client.aclose if self.http_client else None),
            ("openai_client", self.openai_client.close if self.openai_client else None),
            ("cache", self.cache.close if self.cache else None),
            ("neo4j_driver", self.neo4j_driver.close if self.neo4j_driver else None),
            ("database", self.database.close if self.database else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the container built at startup."""
    return request.app.state.container


async def _connect_chroma_collection() -> Any:
    host = os.getenv("CHROMA_HOST", "localhost")
    port = int(os.getenv("CHROMA_PORT", "8000"))
    name = os.getenv("CHROMA_COLLECTION", "meeting-transcripts")

    logger.info(f"Connecting to ChromaDB HTTP server at {host}:{port}")
    client = await chromadb.AsyncHttpClient(host=host, port=port)
    return await client.get_or_create_collection(name=name, metadata={"hnsw:space": "cosine"})


async def build_container() -> ServiceContainer:
    """Create every client and service for this process."""
    database = Database()
    await database.create_tables()
    repository = MeetingRepository(database)

    openai_client = AsyncOpenAI(
        api_key=os.getenv("OPENAI_API_KEY"),
        timeout=float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60")),
    )
    http_client = httpx.AsyncClient()
    cache = ResponseCache()

    try:
        collection = await _connect_chroma_collection()
    except Exception as e:
        logger.warning("=" * 60)
        logger.warning(f"Vector store UNAVAILABLE: {e}")
        logger.warning("Vector indexing and chat will fail until ChromaDB is reachable")
        logger.warning("=" * 60)
        collection = None

    neo4j_driver = AsyncGraphDatabase.driver(
        os.getenv("NEO4J_URI", "bolt://localhost:7687"),
        auth=(os.getenv("NEO4J_USERNAME", "neo4j"), os.getenv("NEO4J_PASSWORD", "")),
    )

    vector_index = VectorIndexService(openai_client, collection, repository)
    graph = GraphService(instructor.from_openai(openai_client), neo4j_driver)

    pipeline = MeetingPipeline(
        repository=repository,
        summarizer=SummarizerService(openai_client),
        email=EmailService(http_client),
        risk=RiskService(openai_client),
        sentiment=SentimentService(openai_client),
        speakers=SpeakerProfileService(openai_client),
        vector_index=vector_index,
        graph=graph,
    )

    logger.info("Service container initialized")
    return ServiceContainer(
        repository=repository,
        queue=QueueService(http_client),
        pipeline=pipeline,
        rag=RagService(openai_client, repository, vector_index, graph, cache),
        graph=graph,
        database=database,
        openai_client=openai_client,
        http_client=http_client,
        cache=cache,
        neo4j_driver=neo4j_driver,
    )
