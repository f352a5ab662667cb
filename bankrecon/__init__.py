"""
Bank Recon - bank statement reconciliation for the distribution ERP.

This package provides functionality to:
- Import bank statements (CSV or Excel, English or Indonesian headers)
- Store statement lines per bank account without duplicates
- Auto-match statement lines against internal ledger entries
- Confirm, reject or record matches and summarise reconciliation status

Statement lines carry one of four statuses:
- unmatched: no acceptable candidate yet
- needs_review: candidate found with 70-84% confidence
- matched: confirmed, automatically at 85%+ confidence or by a reviewer
- recorded: a new internal entry was created from the line
"""

from .config import MatchSettings
from .controller import (
    confirm_match,
    filter_by_status,
    record_entry,
    reject_match,
    summarize
)
from .ingest import (
    compute_transaction_hash,
    import_statement,
    load_ledger_entries,
    parse_amount,
    parse_statement_date,
    parse_statement_rows,
    read_statement_rows,
    resolve_columns
)
from .matcher import (
    auto_match,
    classify_confidence,
    find_candidates,
    run_auto_match,
    score_candidate,
    string_similarity
)
from .models import (
    AutoMatchResult,
    BankAccount,
    ImportResult,
    LedgerEntry,
    MatchCandidate,
    StatementLine
)
from .store import (
    CsvStatementStore,
    InMemoryStatementStore,
    StatementStore,
    StorageError
)

__all__ = [
    'MatchSettings',
    'confirm_match',
    'filter_by_status',
    'record_entry',
    'reject_match',
    'summarize',
    'compute_transaction_hash',
    'import_statement',
    'load_ledger_entries',
    'parse_amount',
    'parse_statement_date',
    'parse_statement_rows',
    'read_statement_rows',
    'resolve_columns',
    'auto_match',
    'classify_confidence',
    'find_candidates',
    'run_auto_match',
    'score_candidate',
    'string_similarity',
    'AutoMatchResult',
    'BankAccount',
    'ImportResult',
    'LedgerEntry',
    'MatchCandidate',
    'StatementLine',
    'CsvStatementStore',
    'InMemoryStatementStore',
    'StatementStore',
    'StorageError'
]
