"""Unit tests: tenant-scoped query choke point. No DB."""

import pytest

from apps.sangam.models.chat_embedding import ChatEmbedding
from apps.sangam.repositories import select_chat_embedding_for_tenant, select_chat_message_for_tenant
from apps.sangam.services.tenant_guard import TenantRequiredError, require_tenant_id, tenant_where


def test_require_tenant_id_raises_immediately_no_db() -> None:
    with pytest.raises(TenantRequiredError):
        require_tenant_id(None)
    with pytest.raises(TenantRequiredError):
        require_tenant_id("")
    with pytest.raises(TenantRequiredError):
        require_tenant_id("   ")
    assert require_tenant_id("  ok  ") == "ok"


def test_tenant_required_error_is_a_value_error() -> None:
    assert issubclass(TenantRequiredError, ValueError)


def test_tenant_where_binds_tenant() -> None:
    clause = tenant_where(ChatEmbedding, "t1")
    assert "tenant_id" in str(clause)
    assert clause.right.value == "t1"


@pytest.mark.parametrize(
    "builder,table",
    [(select_chat_embedding_for_tenant, "chat_embeddings"), (select_chat_message_for_tenant, "chat_messages")],
)
def test_select_helpers_filter_by_tenant(builder, table) -> None:
    sql = str(builder("t1"))
    assert f"FROM {table}" in sql
    assert f"WHERE {table}.tenant_id = :tenant_id_1" in sql

