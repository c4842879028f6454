"""Tests for the Mongo document helpers that need no server."""

import pytest
from bson import ObjectId
from pymongo import DESCENDING

from database import get_documents
from repository import MongoRepository, from_doc, to_oid
from schemas import Actor, Party


class TestToOid:

    def test_valid_id(self):
        oid = ObjectId()
        assert to_oid(str(oid)) == oid

    def test_malformed_id_is_absent(self):
        assert to_oid("not-an-id") is None
        assert to_oid(None) is None


class TestFromDoc:

    def test_missing_document(self):
        assert from_doc(Party, None) is None

    def test_id_exposed_as_string(self):
        oid = ObjectId()
        party = from_doc(Party, {"_id": oid, "workspace_id": "w", "name": "Acme", "type": "customer",
                                 "updated_at": None})
        assert party.id == str(oid)
        assert party.type == "customer"


class RecordingCursor:

    def __init__(self, docs):
        self.docs = docs
        self.sort_by = None
        self.limit_to = None

    def sort(self, sort):
        self.sort_by = sort
        return self

    def limit(self, limit):
        self.limit_to = limit
        return self

    def __iter__(self):
        return iter(self.docs)


class RecordingCollection:

    def __init__(self, docs=()):
        self.docs = list(docs)
        self.filters = []
        self.cursors = []

    def find(self, filter_dict):
        self.filters.append(filter_dict)
        cursor = RecordingCursor(self.docs)
        self.cursors.append(cursor)
        return cursor


class RecordingDb(dict):

    def __missing__(self, name):
        self[name] = RecordingCollection()
        return self[name]


class TestMongoQueries:
    """Queries built by MongoRepository."""

    def test_party_ids_filter(self):
        db = RecordingDb()
        MongoRepository(db).find_transactions("w", party_ids=["a", "b"], limit=5)
        coll = db["transaction"]
        assert coll.filters == [{"workspace_id": "w", "party_id": {"$in": ["a", "b"]}}]
        assert coll.cursors[0].sort_by == [("date", DESCENDING)]
        assert coll.cursors[0].limit_to == 5

    def test_single_party_filter_without_limit(self):
        db = RecordingDb()
        MongoRepository(db).find_transactions("w", party_id="a")
        assert db["transaction"].filters == [{"workspace_id": "w", "party_id": "a"}]
        assert db["transaction"].cursors[0].limit_to is None

    def test_party_ids_and_party_id_together_rejected(self):
        db = RecordingDb()
        with pytest.raises(ValueError):
            MongoRepository(db).find_transactions("w", party_ids=["a"], party_id="b")
        assert db["transaction"].filters == []

    def test_workspaces_for_owner_or_member_email(self):
        db = RecordingDb()
        MongoRepository(db).find_workspaces_for(Actor(id="u-1", email=" Me@Example.com"))
        assert db["workspace"].filters == [{"$or": [
            {"owner_id": "u-1"},
            {"members": {"$elemMatch": {"user_email": "me@example.com"}}},
        ]}]

    def test_workspaces_for_actor_without_email(self):
        db = RecordingDb()
        MongoRepository(db).find_workspaces_for(Actor(id="u-1"))
        assert db["workspace"].filters == [{"$or": [{"owner_id": "u-1"}]}]


class TestGetDocuments:

    def test_zero_limit_is_passed_through(self):
        db = RecordingDb()
        get_documents(db, "transaction", {}, limit=0)
        assert db["transaction"].cursors[0].limit_to == 0
