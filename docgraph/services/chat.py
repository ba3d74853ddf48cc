from typing import Dict, List, Optional, Sequence

from ..schemas import ChatSource, VectorMatch
from ..utils.logging_utils import get_logger
from .search import DEFAULT_TOP_K

logger = get_logger(__name__)

DEFAULT_SYSTEM = "You are a helpful assistant."

AGENT_SYSTEM_PROMPTS: Dict[str, str] = {
    "rag-chat": (
        "You are a helpful assistant that answers questions based on retrieved knowledge. "
        "Prioritize accuracy and cite sources when relevant."
    ),
    "graph-analyst": (
        "You are a knowledge graph analyst specializing in structural analysis of information networks. "
        "Identify central nodes and their influence, detect clusters of related concepts, "
        "and highlight important connections that might not be immediately obvious."
    ),
    "executive-summary": (
        "You are an executive communication specialist. Generate professional, high-level summaries "
        "with clear sections (Overview, Key Findings, Recommendations) and actionable takeaways."
    ),
}

USER_TEMPLATE = """[SYSTEM CONTEXT]
Goal: {goals}
Role: {role}

[SHORT-TERM MEMORY / CHAT HISTORY]
{history}

[RETRIEVED KNOWLEDGE]
{contexts}

[USER QUESTION]
{query}

Answer the user's question based on the Knowledge and Memory. If the answer is in Memory, prioritize it.
"""

NO_CONTEXT = "No relevant documents found."


def resolve_system_prompt(system_prompt: Optional[str], agent_type: Optional[str]) -> str:
    """Explicit prompt, then the agent's prompt, then the default."""
    if system_prompt:
        return system_prompt
    return AGENT_SYSTEM_PROMPTS.get(agent_type or "", DEFAULT_SYSTEM)


def to_sources(matches: Sequence[VectorMatch]) -> List[ChatSource]:
    return [
        ChatSource(
            id=m.id,
            document_id=m.metadata.get("document_id"),
            document_title=m.metadata.get("title") or "Unknown",
            snippet=m.metadata.get("chunk_text") or "",
            score=m.score,
        )
        for m in matches
    ]


def build_messages(
    query: str,
    sources: Sequence[ChatSource],
    system: str,
    history: Optional[str] = None,
    goals: Optional[str] = None,
) -> List[Dict[str, str]]:
    contexts = "\n\n".join(f"[Doc: {s.document_title}]\n{s.snippet}" for s in sources)
    prompt = USER_TEMPLATE.format(
        goals=goals or "Help the user",
        role=system,
        history=history or "No previous context.",
        contexts=contexts or NO_CONTEXT,
        query=query,
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": prompt}]


class ChatService:
    """Answer a question from the chunks Search retrieves for it.

    Search and LLM errors propagate; the router maps them to 502.
    """

    def __init__(self, search, chat):
        self.search = search
        self.chat = chat

    async def answer(
        self,
        query: str,
        *,
        agent_type: Optional[str] = None,
        system_prompt: Optional[str] = None,
        history_context: Optional[str] = None,
        user_goals: Optional[str] = None,
        top_k: int = DEFAULT_TOP_K,
    ) -> tuple[str, List[ChatSource]]:
        matches = await self.search.search(query, top_k)
        sources = to_sources(matches)
        system = resolve_system_prompt(system_prompt, agent_type)
        messages = build_messages(query, sources, system, history_context, user_goals)
        text = await self.chat.complete(messages)
        logger.info("Chat answered with %d sources", len(sources))
        return text.strip(), sources
