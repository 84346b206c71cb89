"""Vector store against Postgres + pgvector: tenant isolation, idempotent inserts, primary/fallback agreement.

Seeds chat_messages directly (the chat service owns that table), then drives VectorStoreGateway.
Skipped unless DATABASE_TEST_URL points at a reachable *_test database.
"""

import os
import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from apps.sangam.db import Database
from apps.sangam.models.chat_message import ChatMessage
from apps.sangam.schemas.sangam import EmbeddingRecordCreate
from apps.sangam.services.embedding_provider import DeterministicEmbeddingProvider
from apps.sangam.services.repo import VectorStoreGateway
from tests.conftest import requires_db

T0 = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

provider = DeterministicEmbeddingProvider()


@pytest.fixture
def gateway():
    db = Database(os.environ["DATABASE_TEST_URL"])
    yield VectorStoreGateway(db)
    db.dispose()


@pytest.fixture
def tenants():
    suffix = uuid.uuid4().hex[:8]
    return f"iso_a_{suffix}", f"iso_b_{suffix}"


def _seed_messages(gateway: VectorStoreGateway, tenant_id: str, contents: list[str]) -> list[str]:
    ids = []
    with gateway.database.session() as session:
        for i, content in enumerate(contents):
            mid = f"{tenant_id}_m{i}"
            session.add(ChatMessage(id=mid, tenant_id=tenant_id, content=content, created_at=T0 + timedelta(minutes=i)))
            ids.append(mid)
    return ids


def _record(chat_id: str, content: str, chunk_index: int = 0, chunk_total: int = 1, content_type: str = "message"):
    [vec] = provider.embed([content])
    return EmbeddingRecordCreate(
        chat_id=chat_id,
        content=content,
        embedding=vec,
        chunk_index=chunk_index,
        chunk_total=chunk_total,
        content_type=content_type,
    )


@requires_db
def test_matches_never_cross_tenants(gateway, tenants) -> None:
    a, b = tenants
    [ma] = _seed_messages(gateway, a, ["Q3 budget deadline is Oct 15"])
    [mb] = _seed_messages(gateway, b, ["Q3 budget deadline is Nov 30"])
    gateway.insert_embeddings(a, [_record(ma, "Q3 budget deadline is Oct 15")])
    gateway.insert_embeddings(b, [_record(mb, "Q3 budget deadline is Nov 30")])

    [q] = provider.embed(["When is the Q3 budget deadline?"])
    found_a = gateway.match_messages(a, q, 10, 0.3)
    found_b = gateway.match_messages(b, q, 10, 0.3)
    assert [m.chat_id for m in found_a] == [ma]
    assert [m.chat_id for m in found_b] == [mb]
    assert [m.chat_id for m in gateway.get_recent_embeddings(a, 10)] == [ma]


@requires_db
def test_indexed_and_fallback_paths_agree(gateway, tenants) -> None:
    a, _ = tenants
    contents = [
        "budget deadline Friday",
        "budget review notes",
        "deadline moved to Monday",
        "lunch menu",
    ]
    ids = _seed_messages(gateway, a, contents)
    gateway.insert_embeddings(a, [_record(i, c) for i, c in zip(ids, contents)])
    [q] = provider.embed(["budget deadline"])

    primary = gateway.match_messages(a, q, 3, 0.1)
    assert gateway.fallback_invocations == 0

    with patch.object(gateway, "_match_indexed", side_effect=RuntimeError("function unavailable")):
        fallback = gateway.match_messages(a, q, 3, 0.1)
    assert gateway.fallback_invocations == 1

    assert [m.id for m in primary] == [m.id for m in fallback]
    for p, f in zip(primary, fallback):
        assert p.similarity == pytest.approx(f.similarity, abs=1e-5)


@requires_db
def test_content_type_filter(gateway, tenants) -> None:
    a, _ = tenants
    ids = _seed_messages(gateway, a, ["venue contract", "venue contract"])
    gateway.insert_embeddings(
        a,
        [_record(ids[0], "venue contract"), _record(ids[1], "venue contract", content_type="document")],
    )
    [q] = provider.embed(["venue contract"])
    found = gateway.match_messages(a, q, 10, 0.3, content_types=["document", "mixed"])
    assert [m.chat_id for m in found] == [ids[1]]


@requires_db
def test_insert_is_idempotent(gateway, tenants) -> None:
    a, _ = tenants
    [mid] = _seed_messages(gateway, a, ["long document"])
    records = [_record(mid, "part one", 0, 2), _record(mid, "part two", 1, 2)]
    assert gateway.insert_embeddings(a, records) == 2
    assert gateway.insert_embeddings(a, records) == 0
    assert gateway.has_embedding(a, mid)
    assert len(gateway.get_recent_embeddings(a, 10)) == 2


@requires_db
def test_unembedded_are_oldest_first_and_shrink(gateway, tenants) -> None:
    a, b = tenants
    ids = _seed_messages(gateway, a, ["first", "second", "   ", "third"])
    _seed_messages(gateway, b, ["other tenant"])

    pending = gateway.get_unembedded_messages(a, 10)
    assert [m.id for m in pending] == [ids[0], ids[1], ids[3]]
    assert all(m.tenant_id == a for m in pending)

    gateway.insert_embeddings(a, [_record(ids[0], "first")])
    assert [m.id for m in gateway.get_unembedded_messages(a, 10)] == [ids[1], ids[3]]


@requires_db
def test_stats_and_delete(gateway, tenants) -> None:
    a, b = tenants
    ids = _seed_messages(gateway, a, ["one", "two", "three"])
    gateway.insert_embeddings(a, [_record(ids[0], "one", 0, 2), _record(ids[0], "one more", 1, 2), _record(ids[1], "two")])

    stats = gateway.get_embedding_stats(a)
    assert stats.total_messages == 3
    assert stats.embedded_messages == 2
    assert stats.unembedded_messages == 1
    assert stats.last_embedding_created is not None

    empty = gateway.get_embedding_stats(b)
    assert (empty.total_messages, empty.embedded_messages, empty.unembedded_messages) == (0, 0, 0)
    assert empty.last_embedding_created is None

    assert gateway.delete_embeddings_for_message(a, ids[0]) == 2
    assert gateway.get_embedding_stats(a).embedded_messages == 1


@requires_db
def test_whitespace_only_and_empty_url_messages_are_not_backlog(gateway, tenants) -> None:
    a, _ = tenants
    with gateway.database.session() as session:
        session.add(ChatMessage(id=f"{a}_tabs", tenant_id=a, content="\n\t", created_at=T0))
        session.add(ChatMessage(id=f"{a}_crlf", tenant_id=a, content="\r\n \f", created_at=T0 + timedelta(minutes=1)))
        session.add(
            ChatMessage(id=f"{a}_nourl", tenant_id=a, content=None, attachment_url="", created_at=T0 + timedelta(minutes=2))
        )
        session.add(
            ChatMessage(
                id=f"{a}_named",
                tenant_id=a,
                content="",
                attachment_name="minutes.pdf",
                created_at=T0 + timedelta(minutes=3),
            )
        )
        session.add(
            ChatMessage(id=f"{a}_real", tenant_id=a, content="Q3 budget deadline is Oct 15", created_at=T0 + timedelta(minutes=4))
        )

    pending = gateway.get_unembedded_messages(a, 3)
    assert [m.id for m in pending] == [f"{a}_named", f"{a}_real"]
    assert pending[0].attachment is not None


@requires_db
def test_small_tenant_is_found_among_many_nearer_neighbours(gateway, tenants) -> None:
    a, b = tenants
    contents = ["budget deadline Friday", "budget review notes", "deadline moved to Monday"]
    ids = _seed_messages(gateway, a, contents)
    gateway.insert_embeddings(a, [_record(i, c) for i, c in zip(ids, contents)])
    crowd = [_record(f"{b}_m{i}", f"budget deadline {i}") for i in range(300)]
    gateway.insert_embeddings(b, crowd)
    [q] = provider.embed(["budget deadline"])

    primary = gateway.match_messages(a, q, 3, 0.1)
    with patch.object(gateway, "_match_indexed", side_effect=RuntimeError("function unavailable")):
        fallback = gateway.match_messages(a, q, 3, 0.1)

    assert len(primary) == 3
    assert {m.chat_id for m in primary} == set(ids)
    assert [m.id for m in primary] == [m.id for m in fallback]
