#!/usr/bin/env python3
"""
Retrieval-augmented context for the chat assistant

Query -> embedding -> top-K chunks -> one prompt-ready context string.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .embedding import EmbeddingClient
from .vector_store import SearchResult, VectorStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 5

NO_EMBEDDINGS_FOUND = "NO_EMBEDDINGS_FOUND: This analysis is old and does not have a searchable index."
NO_RESULTS = "No relevant messages found."
RETRIEVAL_FAILED = "Unable to search through messages."
BLOCK_DELIMITER = "\n\n---\n\n"

SYSTEM_PROMPT = """You are an assistant that helps the user explore one of their chat histories.

Style:
- Sound like a person, not a press release
- Be clear, direct and conversational
- Skip buzzwords and corporate jargon

Excerpts retrieved from the conversation:
{context}

Guidelines:
- Quote specific messages when they support your answer
- If the answer is not in the excerpts, say "I couldn't find that in the messages I searched, but you can try asking differently"
- Help spot patterns, find specific moments, or summarize parts of the conversation
- Treat the conversation as private and sensitive
- If the excerpts contain "NO_EMBEDDINGS_FOUND", tell the user: "I can't answer questions about this chat because it hasn't been indexed for search. Please analyze this chat again to enable search features." and link to [Create New Analysis](/new)"""


def format_context(results: Sequence[SearchResult]) -> str:
    """Render ranked chunks as numbered blocks, most similar first"""
    if not results:
        return NO_RESULTS
    return BLOCK_DELIMITER.join(
        f"[Relevant Conversation {i}]\n{result.content}"
        for i, result in enumerate(results, 1)
    )


class RetrievalService:
    """Semantic search over one analysis's indexed chunks"""

    def __init__(self, embedder: EmbeddingClient, store: VectorStore, default_limit: int = DEFAULT_LIMIT):
        self.embedder = embedder
        self.store = store
        self.default_limit = default_limit

    def exists(self, analysis_id: str) -> bool:
        return self.store.exists(analysis_id)

    def find_relevant(self, analysis_id: str, query: str, limit: Optional[int] = None) -> List[SearchResult]:
        """
        Embed the query and return the nearest chunks of the analysis

        Raises:
            EmbeddingError: If the query cannot be embedded
        """
        vector = self.embedder.embed(query)
        return self.store.search(analysis_id, vector, limit or self.default_limit)

    def build_context(self, query: str, analysis_id: str, limit: Optional[int] = None) -> str:
        """
        Context string for the assistant prompt

        Returns the NO_EMBEDDINGS_FOUND sentinel when the analysis was never
        indexed, so the assistant can say so instead of guessing.
        """
        if not self.exists(analysis_id):
            return NO_EMBEDDINGS_FOUND
        return format_context(self.find_relevant(analysis_id, query, limit))


def latest_user_query(conversation: Sequence[Dict[str, Any]]) -> str:
    for message in reversed(conversation):
        if message.get("role") == "user":
            return str(message.get("content") or "")
    return ""


class ChatAssistant:
    """
    Answers questions about an analysis using retrieved excerpts

    Args:
        retrieval: RetrievalService for the context
        client: OpenAI-compatible client (``client.chat.completions.create``)
        model: Chat model name
    """

    def __init__(self, retrieval: RetrievalService, client: Any, model: str = "gpt-4o-mini"):
        self.retrieval = retrieval
        self.client = client
        self.model = model

    def context_for(self, analysis_id: str, query: str) -> str:
        try:
            return self.retrieval.build_context(query, analysis_id)
        except Exception as e:
            logger.error("Error retrieving context for analysis %s: %s", analysis_id, e)
            return RETRIEVAL_FAILED

    def reply(self, analysis_id: str, conversation: Sequence[Dict[str, Any]]) -> str:
        """
        Generate the assistant's next message

        Args:
            analysis_id: Analysis the user is asking about
            conversation: Prior turns as [{"role": ..., "content": ...}]

        Returns:
            Assistant reply text
        """
        context = self.context_for(analysis_id, latest_user_query(conversation))
        system_prompt = SYSTEM_PROMPT.replace("{context}", context)

        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(
            {"role": m.get("role", "user"), "content": str(m.get("content") or "")}
            for m in conversation
        )

        response = self.client.chat.completions.create(model=self.model, messages=messages)
        return response.choices[0].message.content or ""
