"""
Record types shared by the ingestor, the store, the matcher and the controller.

Statement lines carry a reconciliation status that moves through:

- unmatched: no candidate found, or best candidate below the review threshold
- needs_review: tentative link awaiting a reviewer
- matched: link confirmed, automatically or by a reviewer
- recorded: a new internal entry was created from the line (terminal)
"""

from dataclasses import dataclass, field
from typing import Optional

UNMATCHED = 'unmatched'
NEEDS_REVIEW = 'needs_review'
MATCHED = 'matched'
RECORDED = 'recorded'

STATUSES = (UNMATCHED, NEEDS_REVIEW, MATCHED, RECORDED)

# Statuses that must carry a matched_entry_id
LINKED_STATUSES = (NEEDS_REVIEW, MATCHED, RECORDED)

DEBIT = 'debit'
CREDIT = 'credit'

@dataclass(frozen=True)
class BankAccount:
    id: str
    account_name: str
    bank_name: str = ''
    account_number: str = ''

@dataclass
class StatementLine:
    """One imported bank transaction."""

    bank_account_id: str
    transaction_date: str
    description: str = ''
    reference: str = ''
    debit_amount: float = 0.0
    credit_amount: float = 0.0
    running_balance: float = 0.0
    reconciliation_status: str = UNMATCHED
    matched_entry_id: Optional[str] = None
    notes: str = ''
    transaction_hash: str = ''
    id: Optional[str] = None

    @property
    def amount(self) -> float:
        """Nonzero side of the line: the credit if present, otherwise the debit."""
        if self.credit_amount:
            return self.credit_amount
        return self.debit_amount

    @property
    def direction(self) -> Optional[str]:
        if self.credit_amount:
            return CREDIT
        if self.debit_amount:
            return DEBIT
        return None

@dataclass(frozen=True)
class LedgerEntry:
    """An internal ledger entry that statement lines are reconciled against.

    ``bank_account_id`` and ``direction`` are optional scopes: a blank value
    matches lines of any account or either side.
    """

    id: str
    entry_date: str
    amount: float
    description: str = ''
    reference: str = ''
    bank_account_id: Optional[str] = None
    direction: Optional[str] = None

@dataclass(frozen=True)
class MatchCandidate:
    """A scored, not yet persisted pairing of a statement line and an entry."""

    line_id: str
    entry_id: str
    confidence: float
    amount_delta: float
    date_delta_days: int
    text_similarity: float

@dataclass(frozen=True)
class AutoMatchResult:
    matched_count: int = 0
    suggested_count: int = 0
    skipped_count: int = 0

    @classmethod
    def from_remote(cls, row):
        """Build a result from the row returned by the ``auto_match_smart`` procedure.

        The procedure returns either a single mapping or a list holding one;
        missing counts default to zero.
        """
        if isinstance(row, (list, tuple)):
            row = row[0] if row else {}
        row = row or {}
        return cls(
            matched_count=int(row.get('matched_count') or 0),
            suggested_count=int(row.get('suggested_count') or 0),
            skipped_count=int(row.get('skipped_count') or 0),
        )

@dataclass
class ImportResult:
    parsed_count: int = 0
    inserted_count: int = 0
    duplicate_count: int = 0
    skipped_count: int = 0
    match_result: Optional[AutoMatchResult] = None
    inserted: list = field(default_factory=list, repr=False)
