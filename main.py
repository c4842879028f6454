import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from access import require_member, require_workspace_id
from balances import compute_party_balance, list_parties_with_totals
from config import get_settings
from database import ensure_indexes, get_db
from errors import Forbidden, InvariantViolation, LedgerError, NotFound, Unauthorized
from repository import MongoRepository, Repository
from schemas import (
    Actor, LoginPayload, Membership, Party, PartyCreate, PartyDetail, PartyType, PartyWithTotals,
    RegisterPayload, Session, TokenResponse, Transaction, TransactionCreate, TransactionUpdate,
    User, Workspace, WorkspaceCreate, WorkspaceSummary,
)
from security import bearer_token, hash_password, issue_token, verify_password
from summary import summarize

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="[%(asctime)s] %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def lifespan(_app: FastAPI):
    ensure_indexes(get_db())
    yield


app = FastAPI(title="Party Ledger API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(_request: Request, exc: LedgerError):
    if isinstance(exc, InvariantViolation):
        logger.error("Invariant violation: %s", exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    # rejected input may be a non-finite float, which JSON cannot carry
    errors = [{k: v for k, v in err.items() if k not in ("input", "ctx")} for err in exc.errors()]
    return JSONResponse(status_code=422, content={"error": "ValidationError", "detail": jsonable_encoder(errors)})


router = APIRouter(prefix="/api")


# Dependencies

def get_repository() -> Repository:
    return MongoRepository(get_db())


def get_current_user(authorization: Optional[str] = Header(None),
                     repo: Repository = Depends(get_repository)) -> User:
    token = bearer_token(authorization)
    if token is None:
        raise Unauthorized("Missing or invalid Authorization header")
    session = repo.find_session(token)
    if session is None:
        raise Unauthorized("Invalid token")
    user = repo.find_user(session.user_id)
    if user is None or not user.is_active:
        raise Unauthorized("User not found")
    return user


def get_actor(user: User = Depends(get_current_user)) -> Actor:
    return Actor(id=user.id, email=user.email)


def get_workspace(workspace_id: str, actor: Actor = Depends(get_actor),
                  repo: Repository = Depends(get_repository)) -> Workspace:
    workspace_id = require_workspace_id(workspace_id)
    workspace = repo.find_workspace(workspace_id)
    if workspace is None:
        raise NotFound("Workspace not found")
    try:
        return require_member(actor, workspace)
    except Forbidden:
        logger.info("Denied workspace %s to user %s", workspace_id, actor.id)
        raise


def start_session(repo: Repository, user: User) -> dict:
    token = issue_token()
    repo.insert_session(Session(user_id=user.id, token=token, created_at=datetime.now(timezone.utc)))
    return {"token": token, "user": user.public()}


# Routes: Health
@router.get("/health")
def health():
    return {"ok": True}


# Routes: Auth
@router.post("/auth/register", response_model=TokenResponse, status_code=201)
def register(payload: RegisterPayload, repo: Repository = Depends(get_repository)):
    pwd_hash, salt = hash_password(payload.password)
    user = User(name=payload.name, email=payload.email, password_hash=pwd_hash, password_salt=salt)
    user.id = repo.insert_user(user)
    logger.info("Registered user %s", user.id)
    return start_session(repo, user)


@router.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginPayload, repo: Repository = Depends(get_repository)):
    user = repo.find_user_by_email(payload.email)
    if user is None or not verify_password(payload.password, user.password_hash, user.password_salt):
        raise Unauthorized("Invalid credentials")
    return start_session(repo, user)


@router.get("/auth/me")
def me(user: User = Depends(get_current_user)):
    return user.public()


@router.post("/auth/logout")
def logout(authorization: Optional[str] = Header(None), repo: Repository = Depends(get_repository)):
    token = bearer_token(authorization)
    if token is not None:
        repo.delete_session(token)
    return {"ok": True}


# Routes: Workspaces
@router.post("/workspaces", status_code=201)
def create_workspace(payload: WorkspaceCreate, actor: Actor = Depends(get_actor),
                     repo: Repository = Depends(get_repository)):
    members = {}
    for email in payload.members:
        membership = Membership(user_email=email, role="member")
        members.setdefault(membership.user_email, membership)
    workspace = Workspace(name=payload.name, owner_id=actor.id, members=list(members.values()))
    workspace_id = repo.insert_workspace(workspace)
    logger.info("User %s created workspace %s", actor.id, workspace_id)
    return {"id": workspace_id, "name": workspace.name}


@router.get("/workspaces/mine")
def my_workspaces(actor: Actor = Depends(get_actor), repo: Repository = Depends(get_repository)):
    return [{"id": w.id, "name": w.name} for w in repo.find_workspaces_for(actor)]


@router.get("/workspaces/{workspace_id}/home", response_model=WorkspaceSummary)
def workspace_home(workspace: Workspace = Depends(get_workspace), repo: Repository = Depends(get_repository)):
    parties = repo.find_parties_by_workspace(workspace.id)
    recent = repo.find_transactions(workspace.id, limit=get_settings().recent_window)
    history = repo.find_transactions(workspace.id)
    return summarize(parties, recent, history)


# Routes: Parties
@router.post("/workspaces/{workspace_id}/parties", status_code=201)
def create_party(payload: PartyCreate, workspace: Workspace = Depends(get_workspace),
                 repo: Repository = Depends(get_repository)):
    party = Party(workspace_id=workspace.id, name=payload.name, phone=payload.phone, type=payload.type)
    return {"id": repo.insert_party(party)}


@router.get("/workspaces/{workspace_id}/parties", response_model=List[PartyWithTotals])
def list_parties(party_type: Optional[PartyType] = Query(None, alias="type"),
                 workspace: Workspace = Depends(get_workspace), repo: Repository = Depends(get_repository)):
    parties = repo.find_parties_by_workspace(workspace.id, party_type=party_type)
    txs = repo.find_transactions(workspace.id, party_ids=[p.id for p in parties])
    return list_parties_with_totals(parties, txs)


@router.get("/workspaces/{workspace_id}/parties/{party_id}", response_model=PartyDetail)
def party_detail(party_id: str, workspace: Workspace = Depends(get_workspace),
                 repo: Repository = Depends(get_repository)):
    party = repo.find_party(workspace.id, party_id)
    if party is None:
        raise NotFound("Party not found")
    txs = repo.find_transactions(workspace.id, party_id=party.id)
    balance = compute_party_balance(party.type, txs)
    return PartyDetail(**party.model_dump(), **balance.model_dump(), transactions=txs)


# Routes: Transactions
@router.post("/workspaces/{workspace_id}/parties/{party_id}/transactions", status_code=201)
def create_transaction(party_id: str, payload: TransactionCreate, workspace: Workspace = Depends(get_workspace),
                       actor: Actor = Depends(get_actor), repo: Repository = Depends(get_repository)):
    party = repo.find_party(workspace.id, party_id)
    if party is None:
        raise NotFound("Party not found")
    tx = Transaction(
        workspace_id=workspace.id,
        party_id=party.id,
        amount=payload.amount,
        direction=payload.direction,
        description=payload.description,
        date=payload.date,
        bill_image_url=payload.bill_image_url,
        created_by=actor.id,
    )
    return {"id": repo.insert_transaction(tx)}


@router.get("/workspaces/{workspace_id}/transactions/{transaction_id}", response_model=Transaction)
def get_transaction(transaction_id: str, workspace: Workspace = Depends(get_workspace),
                    repo: Repository = Depends(get_repository)):
    tx = repo.find_transaction(workspace.id, transaction_id)
    if tx is None:
        raise NotFound("Transaction not found")
    return tx


@router.put("/workspaces/{workspace_id}/transactions/{transaction_id}", response_model=Transaction)
def update_transaction(transaction_id: str, payload: TransactionUpdate,
                       workspace: Workspace = Depends(get_workspace), repo: Repository = Depends(get_repository)):
    tx = repo.update_transaction(workspace.id, transaction_id, payload.changes())
    if tx is None:
        raise NotFound("Transaction not found")
    return tx


@router.delete("/workspaces/{workspace_id}/transactions/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: str, workspace: Workspace = Depends(get_workspace),
                       repo: Repository = Depends(get_repository)):
    if not repo.delete_transaction(workspace.id, transaction_id):
        raise NotFound("Transaction not found")
    return Response(status_code=204)


app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
