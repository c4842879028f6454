"""Workspace home view: overall totals plus the recent activity feed."""
from typing import Iterable, List, Optional

from balances import accumulate, check_same_workspace
from schemas import Party, Transaction, WorkspaceSummary


def summarize(
    parties: Iterable[Party],
    recent: List[Transaction],
    history: Optional[Iterable[Transaction]] = None,
) -> WorkspaceSummary:
    """
    Build the workspace summary.

    ``recent`` is returned as given; the caller orders it newest-first and
    bounds it. Totals come from ``history`` (the full transaction set) when it
    is supplied, otherwise from ``recent``. Transactions whose party is not in
    ``parties`` are left out of the totals but stay in the feed. A transaction
    filed under a party of another workspace is an invariant violation.
    """
    by_id = {p.id: p for p in parties}
    source = recent if history is None else history

    def resolved():
        for tx in source:
            party = by_id.get(tx.party_id)
            if party is None:
                continue
            check_same_workspace(tx, party)
            yield party.type, tx

    return WorkspaceSummary(totals=accumulate(resolved()), recent=list(recent))
