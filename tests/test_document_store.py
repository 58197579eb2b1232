"""In-memory document store query and batch semantics."""

import pytest

from core.database import (
    DocumentNotFoundError,
    FirestoreDocumentStore,
    MemoryDocumentStore,
    create_document_store,
    get_field,
    matches,
)
from models.query import BatchOperation, OrderBy, Predicate, QuerySpec, SortDirection
from conftest import make_settings


def doc_ids(documents) -> list:
    return [doc_id for doc_id, _ in documents]


class TestPredicates:
    def test_dotted_field_path(self):
        assert get_field({"venue": {"city": "Santiago"}}, "venue.city") == "Santiago"

    def test_missing_field_never_matches(self):
        assert matches({"a": 1}, Predicate("b", "==", None)) is False

    def test_mismatched_types_do_not_match(self):
        assert matches({"budget": "high"}, Predicate("budget", ">=", 100)) is False

    def test_unknown_operator_rejected(self):
        with pytest.raises(ValueError):
            matches({"a": 1}, Predicate("a", "array-contains", 1))


class TestRunQuery:
    @pytest.mark.asyncio
    async def test_unknown_collection_is_empty(self, store):
        assert await store.run_query(QuerySpec("nope")) == []

    @pytest.mark.asyncio
    async def test_predicates_are_anded(self, store):
        docs = await store.run_query(QuerySpec("gigs", [
            Predicate("status", "==", "active"),
            Predicate("genre", "==", "jazz"),
        ]))
        assert doc_ids(docs) == ["g1"]

    @pytest.mark.asyncio
    async def test_nested_field_filter(self, store):
        docs = await store.run_query(QuerySpec("gigs", [Predicate("venue.city", "==", "Santiago")]))
        assert doc_ids(docs) == ["g2"]

    @pytest.mark.asyncio
    async def test_order_excludes_documents_without_field(self, store):
        docs = await store.run_query(QuerySpec("gigs", order_by=OrderBy("budget", SortDirection.ASC)))
        assert doc_ids(docs) == ["g3", "g1", "g2", "g4"]

    @pytest.mark.asyncio
    async def test_offset_and_limit(self, store):
        docs = await store.run_query(QuerySpec("gigs", limit=2, offset=3))
        assert doc_ids(docs) == ["g4", "g5"]

    @pytest.mark.asyncio
    async def test_results_are_copies(self, store):
        docs = await store.run_query(QuerySpec("gigs", [Predicate("status", "==", "pending")]))
        docs[0][1]["status"] = "changed"
        assert store.documents("gigs")["g2"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_count(self, store):
        assert await store.count("gigs", [Predicate("genre", "in", ["jazz", "rock"])]) == 3


class TestCommitBatch:
    @pytest.mark.asyncio
    async def test_results_describe_each_write(self, store):
        results = await store.commit_batch([
            BatchOperation("create", "gigs", "g6", {"title": "New"}),
            BatchOperation("delete", "gigs", "g5"),
        ])
        assert [(r["document"], r["type"]) for r in results] == [("g6", "create"), ("g5", "delete")]
        assert all(r["updateTime"] for r in results)

    @pytest.mark.asyncio
    async def test_update_after_create_in_same_batch(self, store):
        await store.commit_batch([
            BatchOperation("create", "users", "u1", {"name": "Ana"}),
            BatchOperation("update", "users", "u1", {"role": "musician"}),
        ])
        assert store.documents("users") == {"u1": {"name": "Ana", "role": "musician"}}

    @pytest.mark.asyncio
    async def test_failed_batch_applies_nothing(self, store):
        with pytest.raises(DocumentNotFoundError):
            await store.commit_batch([
                BatchOperation("create", "gigs", "g7", {"title": "Never"}),
                BatchOperation("update", "gigs", "ghost", {"x": 1}),
            ])
        assert "g7" not in store.documents("gigs")

    @pytest.mark.asyncio
    async def test_update_after_delete_fails(self, store):
        with pytest.raises(DocumentNotFoundError):
            await store.commit_batch([
                BatchOperation("delete", "gigs", "g1"),
                BatchOperation("update", "gigs", "g1", {"x": 1}),
            ])
        assert "g1" in store.documents("gigs")


class TestFactory:
    def test_memory_by_default(self):
        assert isinstance(create_document_store(make_settings()), MemoryDocumentStore)

    def test_firestore_when_configured(self):
        store = create_document_store(make_settings(document_store="firestore",
                                                    firestore_project_id="mussikon-test"))
        assert isinstance(store, FirestoreDocumentStore)
        assert store.client is None
