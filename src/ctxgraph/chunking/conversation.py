"""Conversation-aware chunking.

Splits exported chat transcripts into turns before chunking, so every
fragment is attributed to one speaker and turn. Recognized markers:

    ## Turn 3
    **Timestamp:** 2024-05-01 10:12
    **User Prompt:** ...
    **AI Response:** ...

Blocks are separated by ``---`` lines. Plain ``User:`` / ``Assistant:``
labels work as well. Transcripts without any marker are split on markdown
headers, each section becoming an unattributed turn.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ctxgraph.chunking.chunker import SemanticChunker
from ctxgraph.chunking.models import ChunkingResult, ChunkingStrategy, ChunkType, Fragment
from ctxgraph.chunking.tokens import TokenEstimator

logger = logging.getLogger("ctxgraph.chunking")

BLOCK_DIVIDER_RE = re.compile(r"\n-{3,}\n")
TURN_HEADER_RE = re.compile(r"##\s*Turn\s*(\d+)", re.IGNORECASE)
TIMESTAMP_RE = re.compile(r"(?:\*\*)?Timestamp:(?:\*\*)?\s*([^\n]+)", re.IGNORECASE)
ROLE_LABEL_RE = re.compile(
    r"^[ \t]*(?:\*\*)?[ \t]*"
    r"(User\s*Prompt|AI\s*Response|User|Human|Assistant|AI)"
    r"[ \t]*:[ \t]*(?:\*\*)?",
    re.IGNORECASE | re.MULTILINE,
)
ANY_HEADER_RE = re.compile(r"^#{1,6}\s+", re.MULTILINE)

_USER_ROLES = ("user", "human")


@dataclass
class ConversationTurn:
    """One speaker's contribution to a transcript."""

    turn: int
    role: str | None  # "user", "ai", or None when unattributed
    content: str
    timestamp: str | None = None


def _role_for(label: str) -> str:
    word = label.lower().split()[0]
    return "user" if word in _USER_ROLES else "ai"


def looks_like_conversation(content: str) -> bool:
    """Heuristic check for a multi-turn transcript."""
    if TURN_HEADER_RE.search(content):
        return True
    return len(ROLE_LABEL_RE.findall(content)) >= 2


def parse_turns(content: str) -> list[ConversationTurn]:
    """Split a transcript into ordered turns."""
    turns: list[ConversationTurn] = []
    counter = 0

    for block in BLOCK_DIVIDER_RE.split(content or ""):
        labels = list(ROLE_LABEL_RE.finditer(block))
        if not labels:
            continue

        header = TURN_HEADER_RE.search(block)
        number = int(header.group(1)) if header else counter + 1
        counter = number
        stamp = TIMESTAMP_RE.search(block)
        timestamp = stamp.group(1).strip() if stamp else None

        seen: set[str] = set()
        for i, label in enumerate(labels):
            role = _role_for(label.group(1))
            # A speaker reappearing without a divider starts the next turn
            if role in seen:
                counter += 1
                number = counter
                seen.clear()
            seen.add(role)
            end = labels[i + 1].start() if i + 1 < len(labels) else len(block)
            turns.append(
                ConversationTurn(
                    turn=number,
                    role=role,
                    content=block[label.start() : end],
                    timestamp=timestamp,
                )
            )

    if turns:
        return turns

    # No speaker markers: fall back to header-delimited sections
    starts = [m.start() for m in ANY_HEADER_RE.finditer(content or "")]
    if not starts or starts[0] != 0:
        starts.insert(0, 0)
    bounds = starts + [len(content or "")]
    number = 0
    for start, end in zip(bounds, bounds[1:]):
        section = (content or "")[start:end]
        if not clean_text(section):
            continue
        number += 1
        turns.append(ConversationTurn(turn=number, role=None, content=section))
    return turns


def clean_text(text: str) -> str:
    """Strip transcript scaffolding, keeping only what was said."""
    t = text or ""
    t = re.sub(r"^#+\s+.*$", "", t, flags=re.MULTILINE)
    t = re.sub(r"^[ \t]*(?:\*\*)?Timestamp:(?:\*\*)?.*$", "", t, flags=re.MULTILINE | re.IGNORECASE)
    t = ROLE_LABEL_RE.sub("", t)
    t = re.sub(
        r"\*\*\s*(User\s*Prompt|AI\s*Response|Timestamp)\s*:\s*\*\*", "", t, flags=re.IGNORECASE
    )
    # Unwrap fenced blocks, keeping their body
    t = re.sub(r"```\w*\n?([\s\S]*?)\n?```", r"\1", t)
    t = re.sub(r"\[(.*?)\]", r"\1", t)
    t = re.sub(r"[\t ]+", " ", t)
    t = re.sub(r"\n{3,}", "\n\n", t)
    return t.strip()


class ConversationChunker:
    """Turn-aware front end to the semantic chunker."""

    def __init__(self, chunker: SemanticChunker | None = None) -> None:
        self.chunker = chunker or SemanticChunker()

    def chunk(self, content: str, strategy: ChunkingStrategy | None = None) -> ChunkingResult:
        strategy = strategy or ChunkingStrategy()
        fragments: list[Fragment] = []

        for turn in parse_turns(content):
            cleaned = clean_text(turn.content)
            if not cleaned:
                continue
            meta = {"turn": turn.turn, "role": turn.role}
            if turn.timestamp:
                meta["timestamp"] = turn.timestamp

            tokens = TokenEstimator.estimate(cleaned)
            if tokens > strategy.max_tokens:
                # Oversized turn: split it like any other document
                sub = self.chunker.chunk(cleaned, strategy)
                for part, piece in enumerate(sub.fragments):
                    fragments.append(
                        piece.model_copy(
                            update={
                                "chunk_type": ChunkType.CONVERSATION_TURN,
                                "index": len(fragments),
                                "metadata": {**meta, "part": part},
                            }
                        )
                    )
                continue

            fragments.append(
                Fragment(
                    content=cleaned,
                    token_count=tokens,
                    chunk_type=ChunkType.CONVERSATION_TURN,
                    index=len(fragments),
                    end=len(cleaned),
                    metadata=meta,
                )
            )

        for fragment in fragments:
            fragment.total_chunks = len(fragments)

        logger.info(f"Split conversation into {len(fragments)} turn fragments")
        return ChunkingResult(
            fragments=fragments,
            total_tokens=sum(f.token_count for f in fragments),
            analysis=self.chunker.detector.analyze(content or ""),
            strategy=strategy,
        )
