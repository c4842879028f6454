"""
Pytest fixtures for the ledger test suite.

Provides:
- An in-memory Repository so handlers run without MongoDB
- Builders for parties and transactions
"""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional
from uuid import uuid4

import pytest

from errors import Conflict
from schemas import Actor, Party, Session, Transaction, User, Workspace

BASE_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


class InMemoryRepository:
    """Dict-backed Repository with the same ordering rules as the Mongo one."""

    def __init__(self):
        self.users = {}
        self.sessions = {}
        self.workspaces = {}
        self.parties = {}
        self.transactions = {}
        self._clock = itertools.count()

    def _stamp(self, record):
        record_id = uuid4().hex
        created_at = record.created_at if getattr(record, "created_at", None) else (
            BASE_DATE + timedelta(seconds=next(self._clock))
        )
        updates = {"id": record_id}
        if "created_at" in type(record).model_fields:
            updates["created_at"] = created_at
        return record_id, record.model_copy(update=updates)

    def find_user(self, user_id):
        return self.users.get(user_id)

    def find_user_by_email(self, email):
        email = email.strip().lower()
        return next((u for u in self.users.values() if u.email == email), None)

    def insert_user(self, user):
        if self.find_user_by_email(user.email) is not None:
            raise Conflict("Email already registered")
        record_id, stored = self._stamp(user)
        self.users[record_id] = stored
        return record_id

    def insert_session(self, session):
        self.sessions[session.token] = session

    def find_session(self, token):
        return self.sessions.get(token)

    def delete_session(self, token):
        self.sessions.pop(token, None)

    def find_workspace(self, workspace_id):
        return self.workspaces.get(workspace_id)

    def find_workspaces_for(self, actor):
        email = actor.email.lower() if actor.email else None
        found = [
            w for w in self.workspaces.values()
            if w.owner_id == actor.id or any(m.user_email == email for m in w.members)
        ]
        return sorted(found, key=lambda w: w.created_at, reverse=True)

    def insert_workspace(self, workspace):
        record_id, stored = self._stamp(workspace)
        self.workspaces[record_id] = stored
        return record_id

    def find_parties_by_workspace(self, workspace_id, party_type=None):
        found = [
            p for p in self.parties.values()
            if p.workspace_id == workspace_id and (party_type is None or p.type == party_type)
        ]
        return sorted(found, key=lambda p: p.created_at, reverse=True)

    def find_party(self, workspace_id, party_id):
        party = self.parties.get(party_id)
        return party if party is not None and party.workspace_id == workspace_id else None

    def insert_party(self, party):
        record_id, stored = self._stamp(party)
        self.parties[record_id] = stored
        return record_id

    def find_transactions(self, workspace_id, party_ids=None, party_id=None, limit=None):
        if party_ids is not None and party_id is not None:
            raise ValueError("Pass party_ids or party_id, not both")
        wanted = set(party_ids) if party_ids is not None else None
        found = [
            t for t in self.transactions.values()
            if t.workspace_id == workspace_id
            and (wanted is None or t.party_id in wanted)
            and (party_id is None or t.party_id == party_id)
        ]
        found.sort(key=lambda t: t.date, reverse=True)
        return found[:limit] if limit is not None else found

    def find_transaction(self, workspace_id, transaction_id):
        tx = self.transactions.get(transaction_id)
        return tx if tx is not None and tx.workspace_id == workspace_id else None

    def insert_transaction(self, transaction):
        record_id, stored = self._stamp(transaction)
        self.transactions[record_id] = stored
        return record_id

    def update_transaction(self, workspace_id, transaction_id, changes):
        tx = self.find_transaction(workspace_id, transaction_id)
        if tx is None:
            return None
        updated = tx.model_copy(update=changes)
        self.transactions[transaction_id] = updated
        return updated

    def delete_transaction(self, workspace_id, transaction_id):
        if self.find_transaction(workspace_id, transaction_id) is None:
            return False
        del self.transactions[transaction_id]
        return True


def make_party(party_type: str, workspace_id: str = "ws-1", party_id: Optional[str] = None,
               name: str = "Acme") -> Party:
    return Party(id=party_id or uuid4().hex, workspace_id=workspace_id, name=name, type=party_type)


def make_tx(party: Party, direction: str, amount: float, days: int = 0,
            workspace_id: Optional[str] = None) -> Transaction:
    return Transaction(
        id=uuid4().hex,
        workspace_id=workspace_id or party.workspace_id,
        party_id=party.id,
        amount=amount,
        direction=direction,
        date=BASE_DATE + timedelta(days=days),
        created_by="user-1",
    )


def make_txs(party: Party, pairs: Iterable[tuple]) -> List[Transaction]:
    return [make_tx(party, direction, amount, days=i) for i, (direction, amount) in enumerate(pairs)]


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def owner(repo):
    user = User(name="Olive Owner", email="Olive@Example.com", password_hash="x", password_salt="00")
    user_id = repo.insert_user(user)
    return repo.find_user(user_id)


@pytest.fixture
def owner_actor(owner):
    return Actor(id=owner.id, email=owner.email)


@pytest.fixture
def member_actor():
    return Actor(id="member-1", email="Member@Example.com")


@pytest.fixture
def stranger_actor():
    return Actor(id="stranger-1", email="stranger@example.com")


@pytest.fixture
def workspace(repo, owner):
    ws = Workspace(name="Corner Shop", owner_id=owner.id, members=[{"user_email": "member@example.com"}])
    return repo.find_workspace(repo.insert_workspace(ws))


@pytest.fixture
def session_token(repo, owner):
    repo.insert_session(Session(user_id=owner.id, token="token-owner"))
    return "token-owner"
