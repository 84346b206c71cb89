"""VectorStoreGateway unit tests: tenant guard, fallback ranking, stats shape. DB calls are patched."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.dialects import postgresql

from apps.sangam.errors import RetrievalError, TenantRequiredError, ValidationError
from apps.sangam.services.normalize import NON_BLANK_PATTERN
from apps.sangam.services.repo import VectorStoreGateway, to_vector_literal
from apps.sangam.services.similarity import cosine_similarity, rank_by_cosine

T0 = datetime(2026, 10, 1, tzinfo=timezone.utc)


def _gateway() -> VectorStoreGateway:
    return VectorStoreGateway(MagicMock(), embedding_dim=3)


def _row(rid: int, embedding, content_type: str = "message", chat_id: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        id=rid,
        chat_id=chat_id or f"m{rid}",
        content=f"content {rid}",
        embedding=embedding,
        created_at=T0,
        has_attachment=False,
        attachment_file_name=None,
        attachment_file_type=None,
        content_type=content_type,
        chunk_index=0,
        chunk_total=1,
    )


def _indexed_row(rid: int, similarity: float) -> tuple:
    return (rid, f"m{rid}", f"content {rid}", similarity, T0, False, None, None, "message", 0, 1)


# --- similarity ------------------------------------------------------------------


def test_cosine_basics() -> None:
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([0, 0], [1, 0]) == 0.0
    assert cosine_similarity([1, 0], [1, 0, 0]) == 0.0


def test_rank_by_cosine_threshold_order_and_limit() -> None:
    candidates = [(3, [1, 0]), (1, [1, 0]), (2, [1, 1]), (4, [0, 1])]
    ranked = rank_by_cosine([1, 0], candidates, threshold=0.5, limit=10)
    assert [cid for cid, _ in ranked] == [1, 3, 2]
    assert rank_by_cosine([1, 0], candidates, threshold=0.5, limit=2) == ranked[:2]
    assert rank_by_cosine([1, 0], candidates, threshold=0.5, limit=0) == []


def test_rank_by_cosine_threshold_is_inclusive() -> None:
    assert rank_by_cosine([1, 0], [(1, [1, 0])], threshold=1.0, limit=5) == [(1, 1.0)]


def test_to_vector_literal() -> None:
    assert to_vector_literal([1, 0.5, -2]) == "[1.0,0.5,-2.0]"


# --- tenant guard ---------------------------------------------------------------


@pytest.mark.parametrize("tenant_id", [None, "", "   "])
def test_every_method_requires_tenant(tenant_id) -> None:
    g = _gateway()
    with pytest.raises(TenantRequiredError):
        g.match_messages(tenant_id, [1.0, 0.0, 0.0])
    with pytest.raises(TenantRequiredError):
        g.get_recent_embeddings(tenant_id, 5)
    with pytest.raises(TenantRequiredError):
        g.insert_embeddings(tenant_id, [])
    with pytest.raises(TenantRequiredError):
        g.get_unembedded_messages(tenant_id)
    with pytest.raises(TenantRequiredError):
        g.get_embedding_stats(tenant_id)
    g.database.session.assert_not_called()


def test_query_dimension_is_checked_before_db() -> None:
    g = _gateway()
    with pytest.raises(ValidationError):
        g.match_messages("t1", [1.0, 0.0])
    g.database.session.assert_not_called()


def test_insert_empty_touches_nothing() -> None:
    g = _gateway()
    assert g.insert_embeddings("t1", []) == 0
    g.database.session.assert_not_called()


def test_insert_rejects_wrong_dimension() -> None:
    g = _gateway()
    with pytest.raises(ValidationError):
        g.insert_embeddings("t1", [{"chat_id": "m1", "content": "x", "embedding": [0.1, 0.2]}])
    g.database.session.assert_not_called()


def test_zero_match_count_returns_empty() -> None:
    g = _gateway()
    assert g.match_messages("t1", [1.0, 0.0, 0.0], match_count=0) == []
    g.database.session.assert_not_called()


# --- retrieval paths --------------------------------------------------------------


def test_indexed_path_is_used_when_available() -> None:
    g = _gateway()
    rows = [_indexed_row(2, 0.7), _indexed_row(1, 0.9), _indexed_row(3, 0.2)]
    with patch.object(g, "_match_indexed", return_value=rows) as indexed, patch.object(g, "_load_candidates") as load:
        matches = g.match_messages("t1", [1.0, 0.0, 0.0], match_count=5, similarity_threshold=0.5)
    indexed.assert_called_once()
    load.assert_not_called()
    assert [m.id for m in matches] == [1, 2]
    assert g.fallback_invocations == 0


def test_fallback_ranks_in_python_when_indexed_path_fails() -> None:
    g = _gateway()
    rows = [
        _row(1, [1.0, 0.0, 0.0]),
        _row(2, "[0.6,0.8,0]"),
        _row(3, [0.0, 1.0, 0.0]),
        _row(4, [0.9, 0.1, 0.0], content_type="document"),
    ]
    with patch.object(g, "_match_indexed", side_effect=RuntimeError("function missing")), patch.object(
        g, "_load_candidates", return_value=rows
    ):
        matches = g.match_messages("t1", [1.0, 0.0, 0.0], match_count=3, similarity_threshold=0.5)
    assert [m.id for m in matches] == [1, 4, 2]
    assert matches[0].similarity == pytest.approx(1.0)
    assert matches[2].similarity == pytest.approx(0.6)
    assert g.fallback_invocations == 1


def test_fallback_and_indexed_agree_on_order() -> None:
    vectors = {1: [1.0, 0.0, 0.0], 2: [0.6, 0.8, 0.0], 3: [0.8, 0.6, 0.0], 4: [0.0, 0.0, 1.0]}
    query = [1.0, 0.0, 0.0]
    indexed_rows = [_indexed_row(i, cosine_similarity(query, v)) for i, v in vectors.items()]

    primary = _gateway()
    with patch.object(primary, "_match_indexed", return_value=indexed_rows):
        a = primary.match_messages("t1", query, match_count=3, similarity_threshold=0.3)

    fallback = _gateway()
    with patch.object(fallback, "_match_indexed", side_effect=RuntimeError("down")), patch.object(
        fallback, "_load_candidates", return_value=[_row(i, v) for i, v in vectors.items()]
    ):
        b = fallback.match_messages("t1", query, match_count=3, similarity_threshold=0.3)

    assert [m.id for m in a] == [m.id for m in b] == [1, 3, 2]


def test_fallback_failure_raises_retrieval_error() -> None:
    g = _gateway()
    with patch.object(g, "_match_indexed", side_effect=RuntimeError("down")), patch.object(
        g, "_load_candidates", side_effect=RuntimeError("still down")
    ):
        with pytest.raises(RetrievalError):
            g.match_messages("t1", [1.0, 0.0, 0.0])
    assert g.fallback_invocations == 1


def test_content_types_are_forwarded() -> None:
    g = _gateway()
    with patch.object(g, "_match_indexed", return_value=[]) as indexed:
        g.match_messages("t1", [1.0, 0.0, 0.0], content_types=("document", "mixed"))
    assert indexed.call_args.args[4] == ["document", "mixed"]


# --- backlog ----------------------------------------------------------------------


def test_backlog_filter_uses_shared_blank_rule() -> None:
    g = _gateway()
    assert g.get_unembedded_messages("t1", 10) == []
    session = g.database.session.return_value.__enter__.return_value
    stmt = session.scalars.call_args.args[0]
    compiled = stmt.compile(dialect=postgresql.dialect())
    sql = str(compiled)
    assert "chat_messages.content ~ " in sql
    assert "coalesce(chat_messages.attachment_url" in sql
    assert "coalesce(chat_messages.attachment_name" in sql
    assert "trim(" not in sql
    assert NON_BLANK_PATTERN in compiled.params.values()


# --- stats ------------------------------------------------------------------------


def test_stats_for_empty_tenant_are_zero() -> None:
    g = _gateway()
    with patch.object(g, "_fetch_stats_row", return_value=(0, 0, None)):
        stats = g.get_embedding_stats("t1")
    assert stats.total_messages == 0
    assert stats.embedded_messages == 0
    assert stats.unembedded_messages == 0
    assert stats.last_embedding_created is None


def test_stats_unembedded_is_derived() -> None:
    g = _gateway()
    with patch.object(g, "_fetch_stats_row", return_value=(10, 7, T0)):
        stats = g.get_embedding_stats("t1")
    assert stats.unembedded_messages == 3
    assert stats.last_embedding_created == T0
