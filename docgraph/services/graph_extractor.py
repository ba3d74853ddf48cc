"""
Entity/relation extraction with a generative model.

Extraction is an enrichment, never a dependency of ingestion: every failure
(collaborator unreachable, unparseable text, wrong JSON shape) degrades to an
empty graph. The failure kind is kept on ``ExtractedGraph.degraded_reason``
and in the logs so the cases stay distinguishable.
"""

import json
import re
from typing import Any, List

from ..config import settings
from ..errors import ExtractionParseError
from ..schemas import ExtractedEdge, ExtractedGraph, ExtractedNode
from ..utils.logging_utils import get_logger
from ..utils.text import extraction_excerpt

logger = get_logger(__name__)

REASON_UNREACHABLE = "unreachable"
REASON_UNPARSEABLE = "unparseable"
REASON_INVALID_SHAPE = "invalid-shape"

DEFAULT_NODE_TYPE = "Concept"
DEFAULT_RELATION = "related_to"

PROMPT_TEMPLATE = """Extract the knowledge graph from the text below.
Identify key "nodes" (Concepts, Technologies, People, Organizations) and "edges" (relationships between them).
Output strictly valid JSON with this structure:
{{ "nodes": [{{"id": "Name", "type": "Type", "summary": "Short desc"}}], "edges": [{{"source": "Name", "target": "Name", "relation": "verb"}}] }}

Text: "{text}"
"""

# Opening fence with optional language tag; closing fence may be missing
_FENCE = re.compile(r"```[ \t]*[\w-]*[ \t]*\n?(.*?)(?:```|$)", re.DOTALL)


def strip_code_fence(text: str) -> str:
    stripped = (text or "").strip()
    if "```" not in stripped:
        return stripped
    match = _FENCE.search(stripped)
    return match.group(1).strip() if match else stripped


def _clean(value: Any) -> str:
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        value = str(value)
    return value.strip() if isinstance(value, str) else ""


def parse_graph(text: str) -> ExtractedGraph:
    """Two-stage parse: strip wrapping markers, then load and shape-check.

    Raises ExtractionParseError; `GraphExtractor.extract` turns that into an
    empty graph.
    """
    body = strip_code_fence(text)
    if not body:
        raise ExtractionParseError("Empty model response", reason=REASON_UNPARSEABLE)
    try:
        data = json.loads(body)
    except ValueError as e:
        raise ExtractionParseError(
            "Model response is not valid JSON", reason=REASON_UNPARSEABLE, details={"error": str(e)}
        ) from e

    if not isinstance(data, dict):
        raise ExtractionParseError("Top-level JSON is not an object", reason=REASON_INVALID_SHAPE)
    raw_nodes = data.get("nodes")
    raw_edges = data.get("edges")
    if raw_edges is None:
        raw_edges = []
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        raise ExtractionParseError("'nodes'/'edges' must be lists", reason=REASON_INVALID_SHAPE)

    nodes: List[ExtractedNode] = []
    for item in raw_nodes:
        if not isinstance(item, dict):
            continue
        node_id = _clean(item.get("id"))
        if not node_id:
            continue
        nodes.append(ExtractedNode(
            id=node_id,
            type=_clean(item.get("type")) or DEFAULT_NODE_TYPE,
            summary=_clean(item.get("summary")),
        ))

    edges: List[ExtractedEdge] = []
    for item in raw_edges:
        if not isinstance(item, dict):
            continue
        source, target = _clean(item.get("source")), _clean(item.get("target"))
        if not source or not target:
            continue
        edges.append(ExtractedEdge(
            source=source,
            target=target,
            relation=_clean(item.get("relation")) or DEFAULT_RELATION,
        ))

    dropped = len(raw_nodes) - len(nodes) + len(raw_edges) - len(edges)
    if dropped:
        logger.debug("Dropped %d malformed graph items", dropped)
    return ExtractedGraph(nodes=nodes, edges=edges)


class GraphExtractor:
    def __init__(self, chat, max_tokens: int | None = None):
        self.chat = chat
        self.max_tokens = max_tokens if max_tokens is not None else settings.EXTRACTION_MAX_TOKENS

    def build_messages(self, content: str) -> List[dict]:
        excerpt = extraction_excerpt(content).replace('"', "'")
        return [{"role": "user", "content": PROMPT_TEMPLATE.format(text=excerpt)}]

    async def extract(self, content: str) -> ExtractedGraph:
        """Never raises: any failure yields an empty graph."""
        messages = self.build_messages(content)
        try:
            text = await self.chat.complete(messages, max_tokens=self.max_tokens)
        except Exception as e:
            logger.warning("Graph extraction skipped (reason=%s): %s", REASON_UNREACHABLE, e)
            return ExtractedGraph(degraded_reason=REASON_UNREACHABLE)

        try:
            graph = parse_graph(text)
        except ExtractionParseError as e:
            logger.warning("Graph extraction skipped (reason=%s): %s", e.reason, e)
            return ExtractedGraph(degraded_reason=e.reason)

        logger.info("Extracted %d nodes, %d edges", len(graph.nodes), len(graph.edges))
        return graph
