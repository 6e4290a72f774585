"""Shared test fixtures for ctxgraph."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest

from ctxgraph.chunking.tokens import TokenEstimator
from ctxgraph.nodes.models import ContextNode, NodeMetadata


def make_node(
    node_id: str,
    content: str,
    keywords: list[str] | None = None,
    importance: float = 0.5,
    chunk_type: str = "text",
    title: str | None = None,
    embedding: list[float] | None = None,
    timestamp: datetime | None = None,
) -> ContextNode:
    """Build a ContextNode directly, bypassing the factory."""
    return ContextNode(
        id=node_id,
        content=content,
        token_count=TokenEstimator.estimate(content),
        importance=importance,
        keywords=keywords or [],
        summary=content,
        title=title,
        embedding=embedding or [],
        metadata=NodeMetadata(original_content_id=node_id.split("_")[0], chunk_type=chunk_type),
        timestamp=timestamp or datetime(2024, 1, 1, tzinfo=timezone.utc),
        parent_id=node_id.split("_")[0],
    )


@pytest.fixture
def login_nodes() -> list[ContextNode]:
    """Ten nodes, three of which talk about login errors."""
    matching = [
        make_node("auth_chunk_0", "The login form shows an error when the password is wrong.",
                  keywords=["login", "form", "password"]),
        make_node("auth_chunk_1", "Login sessions expire after an hour of inactivity.",
                  keywords=["login", "sessions", "expire"]),
        make_node("logs_chunk_0", "Every server error is written to the audit log.",
                  keywords=["server", "audit", "written"]),
    ]
    unrelated = [
        make_node(f"misc_chunk_{i}", text, keywords=text.lower().rstrip(".").split()[:3])
        for i, text in enumerate(
            [
                "Deployment runs through the staging cluster first.",
                "Database migrations are applied on startup.",
                "The billing page renders monthly invoices.",
                "Images are resized by a background worker.",
                "Search results are paginated twenty per page.",
                "Feature flags live in a shared settings table.",
                "Nightly backups are copied to cold storage.",
            ]
        )
    ]
    return matching + unrelated


@pytest.fixture
def sample_markdown() -> str:
    return """# Authentication

Users sign in with an email address and a password. Sessions are stored
server side and expire after one hour.

## Tokens

Access tokens are short lived. Refresh tokens rotate on every use.

```python
def refresh(token):

    return issue(token.subject)
```

## Errors

A failed login returns a generic error so accounts cannot be enumerated.
"""


@pytest.fixture
def sample_conversation() -> str:
    return """## Turn 1
**Timestamp:** 2024-05-01 10:00
**User Prompt:** How do I rotate a refresh token?
**AI Response:** Call the refresh endpoint with the old token and store the new one.

---

## Turn 2
**Timestamp:** 2024-05-01 10:05
**User Prompt:** What happens to the old token?
**AI Response:** It is revoked as soon as the new token is issued.
"""


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """A project directory with a few documents to ingest."""
    docs = tmp_path / "docs"
    docs.mkdir()
    (docs / "auth.md").write_text(
        "# Authentication\n\n"
        "The login form shows an error when the password is wrong.\n\n"
        "Login sessions expire after an hour of inactivity.\n"
    )
    (docs / "deploy.md").write_text(
        "# Deployment\n\n"
        "Deployment runs through the staging cluster first.\n\n"
        "Database migrations are applied on startup.\n"
    )
    (docs / "notes.txt").write_text("Nightly backups are copied to cold storage.\n")
    return tmp_path
