"""Knowledge graph extraction and lookup.

Entities and relationships are extracted with instructor against a closed
vocabulary and merged into Neo4j. The merge is additive only: elements are
matched by (label, id), tagged with the meeting that mentioned them last
(``meetingId``) and every meeting that mentioned them (``meetingIds``).
Nothing is ever deleted, so re-running a meeting never loses facts.
"""
import os
import logging
from typing import Any, Dict, List, Optional, Sequence

from models.api_models import GraphViewLink, GraphViewNode, GraphViewResponse
from models.extraction_models import (
    GraphExtraction,
    GraphNode,
    GraphRelationship,
    NODE_TYPES,
    RELATIONSHIP_TYPES,
)
from models.transcript import NormalizedTranscript

logger = logging.getLogger(__name__)

MAX_GRAPH_INPUT_CHARS = 20000
MAX_GRAPH_FACTS = 25
MAX_GRAPH_VIEW_EDGES = 300

# Labels and relationship types cannot be Cypher parameters. Only values
# from the closed vocabulary are ever interpolated.
_MERGE_NODE = """
MERGE (n:`{label}` {{id: $id}})
SET n.meetingId = $meeting_id,
    n.meetingIds = CASE
        WHEN $meeting_id IN coalesce(n.meetingIds, []) THEN n.meetingIds
        ELSE coalesce(n.meetingIds, []) + $meeting_id
    END
"""

_MERGE_RELATIONSHIP = """
MATCH (a:`{source_label}` {{id: $source}})
MATCH (b:`{target_label}` {{id: $target}})
MERGE (a)-[r:`{rel_type}`]->(b)
SET r.meetingId = $meeting_id,
    r.meetingIds = CASE
        WHEN $meeting_id IN coalesce(r.meetingIds, []) THEN r.meetingIds
        ELSE coalesce(r.meetingIds, []) + $meeting_id
    END
"""

_FACTS_FOR_QUESTION = """
MATCH (n)-[r]-(m)
WHERE size(n.id) >= 3
  AND toLower($question) CONTAINS toLower(n.id)
  AND any(mid IN coalesce(r.meetingIds, []) WHERE mid IN $meeting_ids)
RETURN startNode(r).id AS source, type(r) AS rel_type, endNode(r).id AS target
LIMIT $limit
"""

_GRAPH_FOR_MEETINGS = """
MATCH (n)-[r]->(m)
WHERE any(mid IN coalesce(r.meetingIds, []) WHERE mid IN $meeting_ids)
RETURN n.id AS source, labels(n)[0] AS source_label, type(r) AS rel_type,
       m.id AS target, labels(m)[0] AS target_label
LIMIT $limit
"""


def sanitize_extraction(extraction: GraphExtraction) -> GraphExtraction:
    """Deduplicate nodes and drop relationships with an unknown endpoint.

    Node ids are whitespace-trimmed; the first type seen for an id wins.
    """
    nodes: Dict[str, GraphNode] = {}
    for node in extraction.nodes:
        node_id = node.id.strip()
        if node_id and node.type in NODE_TYPES and node_id not in nodes:
            nodes[node_id] = GraphNode(id=node_id, type=node.type)

    relationships: List[GraphRelationship] = []
    seen = set()
    for rel in extraction.relationships:
        source, target = rel.source.strip(), rel.target.strip()
        if source not in nodes or target not in nodes or rel.type not in RELATIONSHIP_TYPES:
            continue
        key = (source, rel.type, target)
        if key in seen:
            continue
        seen.add(key)
        relationships.append(GraphRelationship(source=source, target=target, type=rel.type))

    return GraphExtraction(nodes=list(nodes.values()), relationships=relationships)


class GraphService:
    """Extracts a knowledge graph from transcripts and answers fact lookups."""

    def __init__(self, instructor_client: Any, driver: Any, model: Optional[str] = None):
        """
        Args:
            instructor_client: Async instructor client (``instructor.from_openai``)
            driver: Async Neo4j driver
            model: Chat model name (default: OPENAI_MODEL)
        """
        self.client = instructor_client
        self.driver = driver
        self.model = model or os.getenv("OPENAI_MODEL", "gpt-4o-mini")
        self.timeout = float(os.getenv("OPENAI_TIMEOUT_SECONDS", "60"))

    async def extract(self, transcript: NormalizedTranscript) -> GraphExtraction:
        result = await self.client.chat.completions.create(
            model=self.model,
            response_model=GraphExtraction,
            messages=[
                {"role": "system", "content": self._get_system_prompt()},
                {"role": "user", "content": transcript.text[:MAX_GRAPH_INPUT_CHARS]}
            ],
            temperature=0,
            max_retries=2,
            timeout=self.timeout,
        )
        return sanitize_extraction(result)

    async def add_to_knowledge_graph(self, meeting_id: str, transcript: NormalizedTranscript) -> GraphExtraction:
        """Extract and merge one meeting's graph.

        Returns:
            The sanitized extraction that was merged
        """
        if transcript.is_empty:
            logger.info(f"Skipping graph extraction for empty transcript: meeting_id={meeting_id}")
            return GraphExtraction()

        extraction = await self.extract(transcript)
        await self.merge(meeting_id, extraction)

        logger.info(
            f"Knowledge graph merged: meeting_id={meeting_id}, "
            f"nodes={len(extraction.nodes)}, relationships={len(extraction.relationships)}"
        )
        return extraction

    async def merge(self, meeting_id: str, extraction: GraphExtraction) -> None:
        """MERGE every node, then every relationship, in one write transaction."""
        labels = {node.id: node.type for node in extraction.nodes}

        async def _write(tx):
            for node in extraction.nodes:
                await tx.run(
                    _MERGE_NODE.format(label=node.type),
                    id=node.id,
                    meeting_id=meeting_id,
                )
            for rel in extraction.relationships:
                await tx.run(
                    _MERGE_RELATIONSHIP.format(
                        source_label=labels[rel.source],
                        target_label=labels[rel.target],
                        rel_type=rel.type,
                    ),
                    source=rel.source,
                    target=rel.target,
                    meeting_id=meeting_id,
                )

        async with self.driver.session() as session:
            await session.execute_write(_write)

    async def query_facts(self, question: str, meeting_ids: Sequence[str]) -> List[str]:
        """Relationship facts about entities named in ``question``.

        Only relationships recorded by one of ``meeting_ids`` are returned.
        Lookup failures degrade to no facts.
        """
        if not meeting_ids or not question.strip():
            return []

        try:
            async with self.driver.session() as session:
                result = await session.run(
                    _FACTS_FOR_QUESTION,
                    question=question,
                    meeting_ids=list(meeting_ids),
                    limit=MAX_GRAPH_FACTS,
                )
                records = [record async for record in result]
        except Exception as e:
            logger.warning(f"Graph lookup failed, continuing without graph facts: error={str(e)}")
            return []

        facts = []
        for record in records:
            fact = f"{record['source']} -[{record['rel_type']}]-> {record['target']}"
            if fact not in facts:
                facts.append(fact)
        return facts

    async def get_graph(self, meeting_ids: Sequence[str], limit: int = MAX_GRAPH_VIEW_EDGES) -> GraphViewResponse:
        """Nodes and links recorded by any of ``meeting_ids``.

        Each node appears once even when several relationships touch it.
        Driver errors propagate to the caller.
        """
        if not meeting_ids:
            return GraphViewResponse()

        async with self.driver.session() as session:
            result = await session.run(
                _GRAPH_FOR_MEETINGS,
                meeting_ids=list(meeting_ids),
                limit=limit,
            )
            records = [record async for record in result]

        nodes: Dict[str, GraphViewNode] = {}
        links: List[GraphViewLink] = []
        seen = set()
        for record in records:
            source, target = record["source"], record["target"]
            if not source or not target:
                continue
            nodes.setdefault(source, GraphViewNode(id=source, label=record["source_label"] or "Node"))
            nodes.setdefault(target, GraphViewNode(id=target, label=record["target_label"] or "Node"))
            key = (source, record["rel_type"], target)
            if key not in seen:
                seen.add(key)
                links.append(GraphViewLink(source=source, target=target, label=record["rel_type"]))

        logger.debug(f"Graph view built: meetings={len(meeting_ids)}, nodes={len(nodes)}, links={len(links)}")
        return GraphViewResponse(nodes=list(nodes.values()), links=links)

    def _get_system_prompt(self) -> str:
        return f"""You build a knowledge graph from a meeting transcript.

Extract entities using ONLY these node types: {", ".join(NODE_TYPES)}.
Extract relationships using ONLY these types: {", ".join(RELATIONSHIP_TYPES)}.

Rules:
- Node ids are the canonical, human-readable entity name (e.g. "Alice Chen", "Project Apollo").
- Use the same id every time the same entity is referenced.
- Every relationship source and target must be the id of an extracted node.
- Only extract what the transcript states. Do not guess."""
