"""
Record store used by the HTTP layer.

Handlers depend on the ``Repository`` protocol only; ``MongoRepository`` is the
production implementation. Lookups return ``None`` when a record is absent or
the id is malformed, so "not found" is always decided by the caller.
"""
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents
from errors import Conflict
from schemas import Actor, Party, Session, Transaction, User, Workspace

logger = logging.getLogger(__name__)


class Repository(Protocol):
    def find_user(self, user_id: str) -> Optional[User]: ...
    def find_user_by_email(self, email: str) -> Optional[User]: ...
    def insert_user(self, user: User) -> str: ...

    def insert_session(self, session: Session) -> None: ...
    def find_session(self, token: str) -> Optional[Session]: ...
    def delete_session(self, token: str) -> None: ...

    def find_workspace(self, workspace_id: str) -> Optional[Workspace]: ...
    def find_workspaces_for(self, actor: Actor) -> List[Workspace]: ...
    def insert_workspace(self, workspace: Workspace) -> str: ...

    def find_parties_by_workspace(self, workspace_id: str, party_type: Optional[str] = None) -> List[Party]: ...
    def find_party(self, workspace_id: str, party_id: str) -> Optional[Party]: ...
    def insert_party(self, party: Party) -> str: ...

    def find_transactions(self, workspace_id: str, party_ids: Optional[Iterable[str]] = None,
                          party_id: Optional[str] = None, limit: Optional[int] = None) -> List[Transaction]: ...
    def find_transaction(self, workspace_id: str, transaction_id: str) -> Optional[Transaction]: ...
    def insert_transaction(self, transaction: Transaction) -> str: ...
    def update_transaction(self, workspace_id: str, transaction_id: str, changes: dict) -> Optional[Transaction]: ...
    def delete_transaction(self, workspace_id: str, transaction_id: str) -> bool: ...


# Utility: ObjectId conversion

def to_oid(value: str) -> Optional[ObjectId]:
    # ObjectId(None) would mint a fresh id
    if not value:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def from_doc(model, doc: Optional[dict]):
    if doc is None:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return model.model_validate(data)


class MongoRepository:
    def __init__(self, db: Database):
        self.db = db

    def _find_one(self, model, collection: str, record_id: str, **scope):
        oid = to_oid(record_id)
        if oid is None:
            return None
        return from_doc(model, self.db[collection].find_one({"_id": oid, **scope}))

    # Users and sessions
    def find_user(self, user_id: str) -> Optional[User]:
        return self._find_one(User, "user", user_id)

    def find_user_by_email(self, email: str) -> Optional[User]:
        return from_doc(User, self.db["user"].find_one({"email": email.strip().lower()}))

    def insert_user(self, user: User) -> str:
        try:
            return create_document(self.db, "user", user)
        except DuplicateKeyError:
            logger.info("Registration conflict for %s", user.email)
            raise Conflict("Email already registered") from None

    def insert_session(self, session: Session) -> None:
        create_document(self.db, "session", session)

    def find_session(self, token: str) -> Optional[Session]:
        doc = self.db["session"].find_one({"token": token})
        return Session.model_validate(doc) if doc else None

    def delete_session(self, token: str) -> None:
        self.db["session"].delete_one({"token": token})

    # Workspaces
    def find_workspace(self, workspace_id: str) -> Optional[Workspace]:
        return self._find_one(Workspace, "workspace", workspace_id)

    def find_workspaces_for(self, actor: Actor) -> List[Workspace]:
        clauses = [{"owner_id": actor.id}]
        if actor.email:
            clauses.append({"members": {"$elemMatch": {"user_email": actor.email.strip().lower()}}})
        docs = get_documents(self.db, "workspace", {"$or": clauses}, sort=[("created_at", DESCENDING)])
        return [from_doc(Workspace, d) for d in docs]

    def insert_workspace(self, workspace: Workspace) -> str:
        return create_document(self.db, "workspace", workspace)

    # Parties
    def find_parties_by_workspace(self, workspace_id: str, party_type: Optional[str] = None) -> List[Party]:
        query = {"workspace_id": workspace_id}
        if party_type:
            query["type"] = party_type
        docs = get_documents(self.db, "party", query, sort=[("created_at", DESCENDING)])
        return [from_doc(Party, d) for d in docs]

    def find_party(self, workspace_id: str, party_id: str) -> Optional[Party]:
        return self._find_one(Party, "party", party_id, workspace_id=workspace_id)

    def insert_party(self, party: Party) -> str:
        return create_document(self.db, "party", party)

    # Transactions
    def find_transactions(self, workspace_id: str, party_ids: Optional[Iterable[str]] = None,
                          party_id: Optional[str] = None, limit: Optional[int] = None) -> List[Transaction]:
        """
        Transactions of a workspace, newest first by date.

        Narrow by either ``party_ids`` or a single ``party_id``, not both.
        """
        if party_ids is not None and party_id is not None:
            raise ValueError("Pass party_ids or party_id, not both")
        query: dict = {"workspace_id": workspace_id}
        if party_ids is not None:
            query["party_id"] = {"$in": list(party_ids)}
        elif party_id is not None:
            query["party_id"] = party_id
        docs = get_documents(self.db, "transaction", query, sort=[("date", DESCENDING)], limit=limit)
        return [from_doc(Transaction, d) for d in docs]

    def find_transaction(self, workspace_id: str, transaction_id: str) -> Optional[Transaction]:
        return self._find_one(Transaction, "transaction", transaction_id, workspace_id=workspace_id)

    def insert_transaction(self, transaction: Transaction) -> str:
        return create_document(self.db, "transaction", transaction)

    def update_transaction(self, workspace_id: str, transaction_id: str, changes: dict) -> Optional[Transaction]:
        oid = to_oid(transaction_id)
        if oid is None:
            return None
        doc = self.db["transaction"].find_one_and_update(
            {"_id": oid, "workspace_id": workspace_id},
            {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
            return_document=ReturnDocument.AFTER,
        )
        return from_doc(Transaction, doc)

    def delete_transaction(self, workspace_id: str, transaction_id: str) -> bool:
        oid = to_oid(transaction_id)
        if oid is None:
            return False
        result = self.db["transaction"].delete_one({"_id": oid, "workspace_id": workspace_id})
        return result.deleted_count == 1
