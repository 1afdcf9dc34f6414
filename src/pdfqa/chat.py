"""Grounded question answering over retrieved chunks.

The answer prompt carries the last few conversation turns, the retrieved
chunks with their page and similarity, and the question. The model is told
to say when the context is insufficient rather than guess.
"""

from __future__ import annotations

import json
import logging
import random
import string
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pdfqa.exceptions import ValidationError
from pdfqa.tokens import count_tokens
from pdfqa.types import ConversationMessage

if TYPE_CHECKING:
    from pathlib import Path

    from pdfqa.llm.base import BaseCompleter
    from pdfqa.types import SearchResult

__all__ = [
    "ConversationAnswerer",
    "ConversationHistory",
    "build_prompt",
    "new_message_id",
]

logger = logging.getLogger(__name__)

SOURCE_SEPARATOR = "\n\n---\n\n"
DEFAULT_HISTORY_TURNS = 4

ANSWER_INSTRUCTIONS = (
    "You are a helpful AI assistant that answers questions based on the provided "
    "document context. Use the context to provide accurate, detailed answers. If the "
    "context doesn't contain enough information, say so clearly. Do not mention sources "
    "or page numbers in your answer, and keep it under 300 tokens."
)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_message_id() -> str:
    """``msg_<epoch ms>_<9 random base-36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"msg_{int(time.time() * 1000)}_{suffix}"


def _format_source(index: int, result: SearchResult) -> str:
    chunk = result.chunk
    similarity = chunk.similarity if chunk.similarity is not None else result.score
    return (
        f"[Source {index} - Page {chunk.page_number}, Similarity: {similarity:.3f}]\n"
        f"{chunk.title}\n{chunk.text}"
    )


def build_prompt(
    question: str,
    retrieved: list[SearchResult],
    history: list[ConversationMessage],
    history_turns: int = DEFAULT_HISTORY_TURNS,
) -> str:
    context = SOURCE_SEPARATOR.join(
        _format_source(i, result) for i, result in enumerate(retrieved, start=1)
    )

    recent = history[-history_turns:] if history_turns > 0 else []
    conversation = "\n".join(
        f"{'Human' if m.role == 'user' else 'Assistant'}: {m.content}" for m in recent
    )
    previous = f"Previous conversation:\n{conversation}\n\n" if conversation else ""

    return (
        f"{ANSWER_INSTRUCTIONS}\n\n"
        f"{previous}"
        f"Context from document:\n{context}\n\n"
        f"Question: {question}\n"
        "Answer:"
    )


class ConversationAnswerer:
    """Turns a question plus retrieved chunks into a grounded answer."""

    def __init__(
        self,
        completer: BaseCompleter,
        max_tokens: int = 400,
        temperature: float = 0.3,
        history_turns: int = DEFAULT_HISTORY_TURNS,
    ) -> None:
        self._completer = completer
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._history_turns = history_turns

    def check_credentials(self) -> None:
        """Raise ``MissingCredentialsError`` before any retrieval work is done."""
        self._completer.check_credentials()

    def generate_answer(
        self,
        question: str,
        retrieved: list[SearchResult],
        history: list[ConversationMessage] | None = None,
    ) -> str:
        """Answer ``question`` from ``retrieved`` context.

        Raises:
            ValidationError: If the question is blank.
            MissingCredentialsError: If the model's API key is not configured.
            AuthorizationError: If the provider rejects the key.
            CompletionError: On any other completion failure.
        """
        if not question.strip():
            raise ValidationError("Question is required")

        self._completer.check_credentials()

        prompt = build_prompt(question, retrieved, history or [], self._history_turns)
        logger.info(
            "Answering with %d sources via %s (%d prompt tokens)",
            len(retrieved),
            self._completer.name,
            count_tokens(prompt),
        )
        return self._completer.complete(
            prompt, max_tokens=self._max_tokens, temperature=self._temperature
        )


class ConversationHistory:
    """Rolling chat history, optionally persisted as JSON.

    Only the last ``max_messages`` messages are kept.
    """

    def __init__(self, max_messages: int = 20) -> None:
        if max_messages < 1:
            raise ValidationError(f"max_messages must be at least 1, got {max_messages}")
        self.max_messages = max_messages
        self._messages: list[ConversationMessage] = []

    @property
    def messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    def add(self, role: str, content: str) -> ConversationMessage:
        if role not in ("user", "assistant"):
            raise ValidationError(f"Unknown message role: {role!r}")
        message = ConversationMessage(
            message_id=new_message_id(),
            role=role,  # type: ignore[arg-type]
            content=content,
            token_count=count_tokens(content),
            timestamp=datetime.now(UTC).isoformat(),
        )
        self._messages.append(message)
        del self._messages[: -self.max_messages]
        return message

    def recent(self, turns: int = DEFAULT_HISTORY_TURNS) -> list[ConversationMessage]:
        return self._messages[-turns:] if turns > 0 else []

    def clear(self) -> None:
        self._messages.clear()

    def save(self, path: Path) -> None:
        data = [
            {
                "id": m.message_id,
                "role": m.role,
                "content": m.content,
                "token_count": m.token_count,
                "timestamp": m.timestamp,
            }
            for m in self._messages
        ]
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    @classmethod
    def load(cls, path: Path, max_messages: int = 20) -> ConversationHistory:
        """Load a saved history; a missing or unreadable file gives an empty one."""
        history = cls(max_messages=max_messages)
        if not path.exists():
            return history
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable chat history %s: %s", path, e)
            return history
        if not isinstance(records, list):
            logger.warning("Ignoring chat history %s: expected a list of messages", path)
            return history

        for record in records[-max_messages:]:
            if not isinstance(record, dict) or record.get("role") not in ("user", "assistant"):
                continue
            history._messages.append(
                ConversationMessage(
                    message_id=str(record.get("id", "")),
                    role=record["role"],
                    content=str(record.get("content", "")),
                    token_count=int(record.get("token_count", 0)),
                    timestamp=str(record.get("timestamp", "")),
                )
            )
        return history
