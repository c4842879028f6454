"""
Per-party balances.

Every transaction lands in exactly one bucket, chosen by the party's type and
the transaction's direction:

    customer / gave  -> will_get   (credit extended, the customer owes us)
    customer / got   -> will_give  (prepayment received, we owe the customer)
    supplier / gave  -> will_give
    supplier / got   -> will_get

Buckets are summed independently and never netted against each other.
"""
import math
from collections import defaultdict
from typing import Dict, Iterable, List, Tuple

from errors import InvariantViolation
from schemas import Party, PartyBalance, PartyWithTotals, Transaction

WILL_GIVE = "will_give"
WILL_GET = "will_get"

BUCKETS: Dict[Tuple[str, str], str] = {
    ("customer", "gave"): WILL_GET,
    ("customer", "got"): WILL_GIVE,
    ("supplier", "gave"): WILL_GIVE,
    ("supplier", "got"): WILL_GET,
}


def bucket_for(party_type: str, direction: str) -> str:
    try:
        return BUCKETS[(party_type, direction)]
    except KeyError:
        raise InvariantViolation(
            f"No balance bucket for party type {party_type!r} and direction {direction!r}"
        ) from None


def check_amount(tx: Transaction) -> float:
    if tx.amount is None or not math.isfinite(tx.amount) or not tx.amount > 0:
        raise InvariantViolation(f"Transaction {tx.id} has invalid amount {tx.amount!r}")
    return tx.amount


def check_same_workspace(tx: Transaction, party: Party) -> None:
    if tx.workspace_id != party.workspace_id:
        raise InvariantViolation(
            f"Transaction {tx.id} belongs to workspace {tx.workspace_id} "
            f"but party {party.id} belongs to {party.workspace_id}"
        )


def accumulate(pairs: Iterable[Tuple[str, Transaction]]) -> PartyBalance:
    """Sum (party_type, transaction) pairs into a single balance."""
    amounts: Dict[str, List[float]] = {WILL_GIVE: [], WILL_GET: []}
    for party_type, tx in pairs:
        amounts[bucket_for(party_type, tx.direction)].append(check_amount(tx))
    # fsum is correctly rounded, so the result does not depend on input order
    try:
        return PartyBalance(
            will_give=math.fsum(amounts[WILL_GIVE]),
            will_get=math.fsum(amounts[WILL_GET]),
        )
    except OverflowError:
        raise InvariantViolation("Balance total exceeds the representable range") from None


def compute_party_balance(party_type: str, transactions: Iterable[Transaction]) -> PartyBalance:
    return accumulate((party_type, tx) for tx in transactions)


def list_parties_with_totals(
    parties: List[Party], transactions: Iterable[Transaction]
) -> List[PartyWithTotals]:
    """
    One row per party, in the order given, with its will_give/will_get.

    Transactions for parties outside ``parties`` are ignored. A transaction
    filed under a party of another workspace is an invariant violation.
    """
    by_id = {p.id: p for p in parties}
    grouped: Dict[str, List[Transaction]] = defaultdict(list)
    for tx in transactions:
        party = by_id.get(tx.party_id)
        if party is None:
            continue
        check_same_workspace(tx, party)
        grouped[party.id].append(tx)

    rows = []
    for party in parties:
        balance = compute_party_balance(party.type, grouped.get(party.id, []))
        rows.append(PartyWithTotals(**party.model_dump(), **balance.model_dump()))
    return rows
