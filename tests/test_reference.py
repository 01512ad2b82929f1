"""Tests for firemock.client and firemock.reference -- store, references, writes."""

from __future__ import annotations

import pytest

from firemock.client import MockFirestore
from firemock.config import MockConfig
from firemock.models import DocumentNotFoundError, DocumentSnapshot, NothingToFlushError
from firemock.reference import MockCollectionReference, MockDocumentReference, auto_id


class TestMockFirestore:
    def test_seed_data(self, db: MockFirestore) -> None:
        assert db.read_document("items/a") == {"x": 1, "name": "alpha", "tags": ["red", "blue"]}

    def test_references_are_cached(self, db: MockFirestore) -> None:
        assert db.collection("items") is db.collection("/items/")
        assert db.doc("items/a") is db.collection("items").doc("a")

    def test_collection_path_validation(self, db: MockFirestore) -> None:
        with pytest.raises(ValueError, match="document path"):
            db.collection("items/a")
        with pytest.raises(ValueError, match="collection path"):
            db.doc("items")
        with pytest.raises(ValueError, match="non-empty"):
            db.collection("")

    def test_read_document_returns_copy(self, db: MockFirestore) -> None:
        db.read_document("items/a")["x"] = 500
        assert db.read_document("items/a")["x"] == 1

    def test_missing_document_reads_none(self, db: MockFirestore) -> None:
        assert db.read_document("items/zz") is None
        assert db.read_document("nowhere/zz") is None

    def test_flush_on_empty_queue_raises(self, db: MockFirestore) -> None:
        with pytest.raises(NothingToFlushError):
            db.flush()

    def test_auto_flush_applies_to_every_reference(self, db: MockFirestore) -> None:
        db.collection("items").where("x", "==", 1).auto_flush()
        assert db.doc("items/a").get().done()
        assert db.auto_flush(False) is db
        assert not db.doc("items/a").get().done()

    def test_config_auto_flush(self) -> None:
        db = MockFirestore({"items": {"a": {}}}, MockConfig(auto_flush=True))
        assert db.collection("items").get().result().size == 1

    def test_get_flush_queue(self, db: MockFirestore) -> None:
        db.collection("items").get()
        db.doc("items/a").set({"x": 5})
        assert [(e.method, e.ref.path) for e in db.get_flush_queue()] == [
            ("get", "items"),
            ("set", "items/a"),
        ]


class TestCollectionReference:
    def test_identity(self, db: MockFirestore, items: MockCollectionReference) -> None:
        assert items.id == "items"
        assert items.path == "items"
        assert items.parent is db

    def test_get_returns_document_refs(self, db: MockFirestore, items) -> None:
        future = items.get()
        db.flush()
        snapshot = future.result()
        assert snapshot.query is items
        assert snapshot.docs[0].ref is db.doc("items/a")

    def test_derived_query_results_point_to_collection(self, db: MockFirestore, items) -> None:
        future = items.where("x", "==", 2).get()
        db.flush()
        snapshot = future.result()
        assert snapshot.query is items
        assert [doc.ref.path for doc in snapshot] == ["items/b"]

    def test_live_view_sees_writes(self, db: MockFirestore, items) -> None:
        items.doc("d").set({"x": 9})
        db.flush()
        future = items.get()
        db.flush()
        assert future.result().size == 4

    def test_add_generates_id(self, db: MockFirestore, items) -> None:
        future = items.add({"x": 7})
        assert not future.done()
        db.flush()
        ref = future.result()
        assert isinstance(ref, MockDocumentReference)
        assert len(ref.id) == 20
        assert db.read_document(ref.path) == {"x": 7}

    def test_add_injected_error(self, db: MockFirestore, items) -> None:
        err = RuntimeError("quota")
        items.fail_next("add", err)
        future = items.add({"x": 7})
        db.flush()
        assert future.exception() is err
        assert db.documents("items").keys() == {"a", "b", "c"}

    def test_doc_without_id(self, items) -> None:
        assert items.doc().id != items.doc().id

    def test_subcollection(self, db: MockFirestore) -> None:
        posts = db.doc("users/alice").collection("posts")
        assert posts.path == "users/alice/posts"
        assert posts.parent is db.doc("users/alice")
        posts.doc("p1").set({"title": "hi"})
        db.flush()
        future = posts.where("title", "==", "hi").get()
        db.flush()
        snapshot = future.result()
        assert snapshot.query is posts
        assert [doc.ref.path for doc in snapshot] == ["users/alice/posts/p1"]

    def test_injected_error_persists_across_lookups(self, db: MockFirestore) -> None:
        db.collection("items").fail_next("get", RuntimeError("x"))
        future = db.collection("items").get()
        db.flush()
        assert isinstance(future.exception(), RuntimeError)


class TestDocumentReference:
    def test_identity(self, db: MockFirestore) -> None:
        ref = db.doc("items/a")
        assert ref.id == "a"
        assert ref.parent is db.collection("items")
        assert ref == MockDocumentReference(db, "items/a")

    def test_get_existing(self, db: MockFirestore) -> None:
        future = db.doc("items/a").get()
        db.flush()
        snapshot = future.result()
        assert isinstance(snapshot, DocumentSnapshot)
        assert snapshot.exists
        assert snapshot.get("name") == "alpha"
        assert snapshot.ref is db.doc("items/a")

    def test_get_missing(self, db: MockFirestore) -> None:
        future = db.doc("items/zz").get()
        db.flush()
        assert not future.result().exists
        assert future.result().to_dict() is None

    def test_set_is_deferred(self, db: MockFirestore) -> None:
        future = db.doc("items/a").set({"x": 100})
        assert db.read_document("items/a")["x"] == 1
        db.flush()
        assert future.result() is None
        assert db.read_document("items/a") == {"x": 100}

    def test_set_copies_payload(self, db: MockFirestore) -> None:
        payload = {"x": 100}
        db.doc("items/a").set(payload)
        payload["x"] = 0
        db.flush()
        assert db.read_document("items/a") == {"x": 100}

    def test_set_merge(self, db: MockFirestore) -> None:
        db.doc("items/d").set({"meta": {"a": 1, "b": 2}, "keep": True})
        db.doc("items/d").set({"meta": {"b": 3}}, merge=True)
        db.flush()
        assert db.read_document("items/d") == {"meta": {"a": 1, "b": 3}, "keep": True}

    def test_update_dotted_keys(self, db: MockFirestore) -> None:
        db.doc("items/a").update({"name": "ALPHA", "meta.seen": True})
        db.flush()
        doc = db.read_document("items/a")
        assert doc["name"] == "ALPHA"
        assert doc["meta"] == {"seen": True}

    def test_update_missing_document(self, db: MockFirestore) -> None:
        future = db.doc("items/zz").update({"x": 1})
        db.flush()
        assert isinstance(future.exception(), DocumentNotFoundError)
        assert "items/zz" in str(future.exception())

    def test_invalid_update_fails_its_future_only(self, db: MockFirestore, items) -> None:
        bad = db.doc("items/a").update({"meta..seen": True})
        good = items.get()
        db.flush()
        assert isinstance(bad.exception(), ValueError)
        assert good.result().size == 3
        assert db.get_flush_queue() == []
        assert db.read_document("items/a")["x"] == 1

    def test_delete(self, db: MockFirestore) -> None:
        db.doc("items/a").delete()
        db.flush()
        assert db.read_document("items/a") is None

    def test_delete_keeps_subcollections(self, db: MockFirestore) -> None:
        db.write_document("items/a/notes/n1", {"t": 1})
        db.doc("items/a").delete()
        db.flush()
        assert db.read_document("items/a/notes/n1") == {"t": 1}

    def test_injected_write_error(self, db: MockFirestore) -> None:
        ref = db.doc("items/a")
        ref.fail_next("set", RuntimeError("denied"))
        failed = ref.set({"x": 0})
        ok = ref.set({"x": 5})
        db.flush()
        assert isinstance(failed.exception(), RuntimeError)
        assert ok.result() is None
        assert db.read_document("items/a") == {"x": 5}

    def test_flush_from_document(self, db: MockFirestore) -> None:
        ref = db.doc("items/a")
        future = ref.get()
        assert ref.flush() is ref
        assert future.done()


class TestAutoId:
    def test_length_and_alphabet(self) -> None:
        value = auto_id(32)
        assert len(value) == 32
        assert value.isalnum()

    def test_configured_length(self) -> None:
        db = MockFirestore(config=MockConfig(auto_id_length=8))
        assert len(db.collection("things").doc().id) == 8
