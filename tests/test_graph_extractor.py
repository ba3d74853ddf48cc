"""Graph extraction degrades to an empty graph on every failure kind."""

import pytest

from conftest import GRAPH_JSON, FakeChat
from docgraph.errors import ExtractionParseError, LLMServiceError
from docgraph.services.graph_extractor import (
    REASON_INVALID_SHAPE,
    REASON_UNPARSEABLE,
    REASON_UNREACHABLE,
    GraphExtractor,
    parse_graph,
    strip_code_fence,
)


class TestStripCodeFence:
    def test_plain_text_untouched(self) -> None:
        assert strip_code_fence('  {"nodes": []} ') == '{"nodes": []}'

    def test_json_fence(self) -> None:
        assert strip_code_fence('```json\n{"nodes": []}\n```') == '{"nodes": []}'

    def test_bare_fence_with_leading_prose(self) -> None:
        assert strip_code_fence('Here you go:\n```\n{"a": 1}\n```\nDone.') == '{"a": 1}'

    def test_unclosed_fence_keeps_rest(self) -> None:
        assert strip_code_fence('```json\n{"a": 1}') == '{"a": 1}'


class TestParseGraph:
    def test_parses_nodes_and_edges(self) -> None:
        graph = parse_graph(GRAPH_JSON)

        assert [n.id for n in graph.nodes] == ["Python", "Guido van Rossum", "PSF", "CPython"]
        assert graph.nodes[1].type == "Person"
        assert graph.edges[0].relation == "created"

    def test_missing_edges_is_allowed(self) -> None:
        graph = parse_graph('{"nodes": [{"id": "A"}]}')

        assert graph.nodes[0].type == "Concept"
        assert graph.nodes[0].summary == ""
        assert graph.edges == []

    def test_items_without_ids_are_dropped(self) -> None:
        graph = parse_graph(
            '{"nodes": [{"id": ""}, "junk", {"type": "X"}, {"id": " B "}],'
            ' "edges": [{"source": "B"}, {"source": "B", "target": "C"}]}'
        )

        assert [n.id for n in graph.nodes] == ["B"]
        assert len(graph.edges) == 1
        assert graph.edges[0].relation == "related_to"

    @pytest.mark.parametrize(
        "text, reason",
        [
            ('```json\n{"nodes": [{"id": "A"', REASON_UNPARSEABLE),
            ('{"nodes": [', REASON_UNPARSEABLE),
            ("I could not find any entities.", REASON_UNPARSEABLE),
            ("", REASON_UNPARSEABLE),
            ('["A", "B"]', REASON_INVALID_SHAPE),
            ('{"nodes": "A"}', REASON_INVALID_SHAPE),
            ('{"edges": []}', REASON_INVALID_SHAPE),
        ],
    )
    def test_malformed_output_raises_parse_error(self, text: str, reason: str) -> None:
        with pytest.raises(ExtractionParseError) as exc_info:
            parse_graph(text)
        assert exc_info.value.reason == reason


class TestGraphExtractor:
    @pytest.mark.asyncio
    async def test_extracts_fenced_response(self) -> None:
        chat = FakeChat(response=f"```json\n{GRAPH_JSON}\n```")
        graph = await GraphExtractor(chat).extract("Python was created by Guido.")

        assert len(graph.nodes) == 4
        assert len(graph.edges) == 2
        assert graph.degraded_reason is None

    @pytest.mark.asyncio
    async def test_truncated_json_yields_empty_graph(self) -> None:
        chat = FakeChat(response='```json\n{"nodes": [{"id": "Python", "ty')
        graph = await GraphExtractor(chat).extract("text")

        assert graph.nodes == [] and graph.edges == []
        assert graph.degraded_reason == REASON_UNPARSEABLE

    @pytest.mark.asyncio
    async def test_network_error_yields_empty_graph(self) -> None:
        chat = FakeChat(error=LLMServiceError("connection reset"))
        graph = await GraphExtractor(chat).extract("text")

        assert graph.is_empty
        assert graph.degraded_reason == REASON_UNREACHABLE

    @pytest.mark.asyncio
    async def test_unexpected_client_error_yields_empty_graph(self) -> None:
        chat = FakeChat(error=ConnectionError("boom"))
        graph = await GraphExtractor(chat).extract("text")

        assert graph.is_empty

    @pytest.mark.asyncio
    async def test_prompt_excerpt_is_bounded(self) -> None:
        chat = FakeChat()
        content = "z" * 50_000
        await GraphExtractor(chat).extract(content)

        prompt = chat.calls[0][0]["content"]
        assert "z" * 2000 in prompt
        assert "z" * 2001 not in prompt

    @pytest.mark.asyncio
    async def test_double_quotes_in_excerpt_are_replaced(self) -> None:
        chat = FakeChat()
        await GraphExtractor(chat).extract('He said "hello"')

        assert "He said 'hello'" in chat.calls[0][0]["content"]

    @pytest.mark.asyncio
    async def test_max_tokens_forwarded(self) -> None:
        seen = {}

        class RecordingChat:
            async def complete(self, messages, max_tokens=None):
                seen["max_tokens"] = max_tokens
                return GRAPH_JSON

        await GraphExtractor(RecordingChat(), max_tokens=256).extract("x")
        assert seen["max_tokens"] == 256
