"""
Statement Stores

A statement store persists bank statement lines per bank account. The matcher
and the controller only rely on the StatementStore interface, so the in-memory
store, the CSV-backed store and a hosted database client are interchangeable.

Contract:
- upsert: insert lines, skipping any whose (bank_account_id, transaction_hash)
  already exists; returns only the inserted lines
- query: lines of one account, optionally within an inclusive date range,
  newest first
- update_status: change status and link; a line in needs_review, matched or
  recorded always carries a matched_entry_id, an unmatched line never does
"""

import copy
import csv
import logging
import pathlib
import uuid
from datetime import date, timedelta

import pandas as pd

from bankrecon.models import (
    BankAccount,
    LINKED_STATUSES,
    STATUSES,
    StatementLine,
    UNMATCHED,
)

logger = logging.getLogger(__name__)

# Sentinel for update_status: keep the current matched_entry_id
UNCHANGED = object()

LINE_COLUMNS = [
    'id',
    'bank_account_id',
    'transaction_date',
    'description',
    'reference',
    'debit_amount',
    'credit_amount',
    'running_balance',
    'reconciliation_status',
    'matched_entry_id',
    'notes',
    'transaction_hash',
]

ACCOUNT_COLUMNS = ['id', 'account_name', 'bank_name', 'account_number']

class StorageError(RuntimeError):
    """Raised when statement data cannot be read from or written to storage."""

class StatementStore:
    """Interface consumed by the ingestor, the matcher and the controller."""

    def upsert(self, lines, ignore_duplicates=True):
        raise NotImplementedError

    def query(self, bank_account_id, start_date=None, end_date=None):
        raise NotImplementedError

    def get(self, line_id):
        raise NotImplementedError

    def update_status(self, line_id, status, matched_entry_id=UNCHANGED):
        raise NotImplementedError

    def linked_entry_ids(self):
        raise NotImplementedError

    def add_bank_account(self, account):
        raise NotImplementedError

    def list_bank_accounts(self):
        raise NotImplementedError

def _end_exclusive(end_date):
    # Inclusive end date: keep everything before the following day
    return (date.fromisoformat(end_date) + timedelta(days=1)).isoformat()

def validate_transition(line, status, matched_entry_id):
    """Check a status/link pair before it is stored.

    Raises:
        ValueError: If the status is unknown or the link contradicts the status
    """
    if status not in STATUSES:
        raise ValueError(f"Invalid reconciliation status: {status}. Expected one of: {list(STATUSES)}")
    if status in LINKED_STATUSES and not matched_entry_id:
        raise ValueError(f"Line {line.id} cannot be {status} without a matched entry")
    if status == UNMATCHED and matched_entry_id:
        raise ValueError(f"Line {line.id} cannot be unmatched while linked to {matched_entry_id}")

class InMemoryStatementStore(StatementStore):
    """Dictionary-backed store; returned lines are copies of the stored ones."""

    def __init__(self):
        self._lines = {}
        self._hashes = set()
        self._accounts = {}

    def upsert(self, lines, ignore_duplicates=True):
        inserted = []
        for line in lines:
            key = (line.bank_account_id, line.transaction_hash)
            if key in self._hashes:
                if not ignore_duplicates:
                    raise ValueError(f"Duplicate transaction for account {line.bank_account_id}: {line.transaction_hash}")
                continue

            stored = copy.copy(line)
            if not stored.id:
                stored.id = str(uuid.uuid4())
            self._lines[stored.id] = stored
            self._hashes.add(key)
            inserted.append(copy.copy(stored))

        if inserted:
            self._flush()
        logger.debug(f"Upserted {len(inserted)} of {len(lines)} lines")
        return inserted

    def query(self, bank_account_id, start_date=None, end_date=None):
        end_before = _end_exclusive(end_date) if end_date else None
        lines = [
            copy.copy(line) for line in self._lines.values()
            if line.bank_account_id == bank_account_id
            and (start_date is None or line.transaction_date >= start_date)
            and (end_before is None or line.transaction_date < end_before)
        ]
        return sorted(lines, key=lambda line: line.transaction_date, reverse=True)

    def get(self, line_id):
        if line_id not in self._lines:
            raise KeyError(f"Statement line not found: {line_id}")
        return copy.copy(self._lines[line_id])

    def update_status(self, line_id, status, matched_entry_id=UNCHANGED):
        if line_id not in self._lines:
            raise KeyError(f"Statement line not found: {line_id}")
        line = self._lines[line_id]
        if matched_entry_id is UNCHANGED:
            matched_entry_id = line.matched_entry_id

        validate_transition(line, status, matched_entry_id)

        line.reconciliation_status = status
        line.matched_entry_id = matched_entry_id
        self._flush()
        return copy.copy(line)

    def linked_entry_ids(self):
        # Across every account, so an unscoped entry is never claimed twice
        return {line.matched_entry_id for line in self._lines.values() if line.matched_entry_id}

    def add_bank_account(self, account):
        self._accounts[account.id] = account
        self._flush()
        return account

    def list_bank_accounts(self):
        return sorted(self._accounts.values(), key=lambda account: account.account_name)

    def _flush(self):
        """Hook for write-through subclasses."""

def _optional(value):
    if value is None or pd.isna(value) or value == '':
        return None
    return str(value)

class CsvStatementStore(InMemoryStatementStore):
    """In-memory store written through to CSV files in a data directory.

    Files:
    - bank_statement_lines.csv
    - bank_accounts.csv
    """

    LINES_FILE = 'bank_statement_lines.csv'
    ACCOUNTS_FILE = 'bank_accounts.csv'

    def __init__(self, data_dir):
        super().__init__()
        self.data_dir = pathlib.Path(data_dir)
        self._load()

    @property
    def lines_path(self):
        return self.data_dir / self.LINES_FILE

    @property
    def accounts_path(self):
        return self.data_dir / self.ACCOUNTS_FILE

    def _load(self):
        try:
            if self.accounts_path.exists():
                accounts_df = pd.read_csv(self.accounts_path, dtype=str, keep_default_na=False)
                for row in accounts_df.to_dict('records'):
                    self._accounts[row['id']] = BankAccount(**{col: row.get(col, '') for col in ACCOUNT_COLUMNS})

            if self.lines_path.exists():
                lines_df = pd.read_csv(
                    self.lines_path,
                    dtype={col: str for col in LINE_COLUMNS if not col.endswith('_amount') and col != 'running_balance'},
                    keep_default_na=False
                )
                for row in lines_df.to_dict('records'):
                    line = StatementLine(
                        id=row['id'],
                        bank_account_id=row['bank_account_id'],
                        transaction_date=row['transaction_date'],
                        description=row['description'],
                        reference=row['reference'],
                        debit_amount=float(row['debit_amount'] or 0),
                        credit_amount=float(row['credit_amount'] or 0),
                        running_balance=float(row['running_balance'] or 0),
                        reconciliation_status=row['reconciliation_status'] or UNMATCHED,
                        matched_entry_id=_optional(row['matched_entry_id']),
                        notes=row['notes'],
                        transaction_hash=row['transaction_hash'],
                    )
                    self._lines[line.id] = line
                    self._hashes.add((line.bank_account_id, line.transaction_hash))
        except (OSError, ValueError, KeyError) as e:
            raise StorageError(f"Could not load statement data from {self.data_dir}: {str(e)}") from e

        logger.debug(f"Loaded {len(self._lines)} lines and {len(self._accounts)} accounts from {self.data_dir}")

    def _flush(self):
        lines_df = pd.DataFrame(
            [{col: getattr(line, col) for col in LINE_COLUMNS} for line in self._lines.values()],
            columns=LINE_COLUMNS
        )
        accounts_df = pd.DataFrame(
            [{col: getattr(account, col) for col in ACCOUNT_COLUMNS} for account in self._accounts.values()],
            columns=ACCOUNT_COLUMNS
        )
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            lines_df.to_csv(self.lines_path, index=False, quoting=csv.QUOTE_NONNUMERIC)
            accounts_df.to_csv(self.accounts_path, index=False, quoting=csv.QUOTE_NONNUMERIC)
        except OSError as e:
            raise StorageError(f"Could not write statement data to {self.data_dir}: {str(e)}") from e
