"""
Statement Ingestor

Turns an exported bank statement (CSV or the first sheet of an Excel workbook)
into StatementLine records ready to be upserted into a statement store.

Header Resolution:
- Header cells are matched case-insensitively by substring, in English and Indonesian
- date/tanggal, description/keterangan/uraian, ref/no. (reference),
  debit/keluar, credit/kredit/masuk, balance/saldo
- When several cells match the same column, the last one wins
- Unresolved columns fall back to positions: date=0, description=1, debit=2,
  credit=3, balance=4; an unresolved reference is left blank

Row Policy:
- Rows whose date cannot be parsed are dropped silently (bank exports often
  end with footer or summary rows)
- Unreadable amounts become 0.0
"""

import csv
import hashlib
import logging
import os
import re
from datetime import date, datetime

import numpy as np
import pandas as pd

from bankrecon.matcher import auto_match as match_account
from bankrecon.models import ImportResult, LedgerEntry, StatementLine, UNMATCHED

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ['.csv', '.xlsx']

# Spreadsheet serial day 0; serial 25569 is 1970-01-01
SPREADSHEET_EPOCH = '1899-12-30'

COLUMN_KEYWORDS = {
    'date': ['date', 'tanggal'],
    'description': ['description', 'keterangan', 'uraian'],
    'reference': ['ref', 'no.'],
    'debit': ['debit', 'keluar'],
    'credit': ['credit', 'kredit', 'masuk'],
    'balance': ['balance', 'saldo'],
}

DEFAULT_POSITIONS = {
    'date': 0,
    'description': 1,
    'debit': 2,
    'credit': 3,
    'balance': 4,
}

def _is_blank(value):
    if isinstance(value, str):
        return value.strip() == ''
    return value is None or bool(pd.isna(value))

def read_statement_rows(file_path):
    """Read a statement file into raw rows, header included.

    Args:
        file_path (str or pathlib.Path): Path to a .csv or .xlsx file

    Returns:
        list: Rows as lists of cell values; blank cells are None

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the path is a directory, the extension is unsupported,
            or the file is empty
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    if os.path.isdir(file_path):
        raise ValueError("Path is a directory")

    _, ext = os.path.splitext(str(file_path))
    if ext.lower() not in SUPPORTED_EXTENSIONS:
        raise ValueError(f"Unsupported file format: {ext}")

    if os.path.getsize(file_path) == 0:
        raise ValueError(f"Statement file is empty: {file_path}")

    logger.debug(f"Reading statement file: {file_path}")

    if ext.lower() == '.xlsx':
        # First sheet only; cells keep their native types (numbers, datetimes)
        df = pd.read_excel(file_path, sheet_name=0, header=None, dtype=object, engine='openpyxl')
    else:
        rows = None
        for encoding in ['utf-8-sig', 'cp1252']:
            try:
                # Rows may be ragged: an unquoted comma in a description adds a cell
                with open(file_path, newline='', encoding=encoding) as f:
                    rows = [row for row in csv.reader(f, skipinitialspace=True) if row]
                logger.debug(f"Successfully read file with encoding: {encoding}")
                break
            except UnicodeDecodeError:
                continue
        if rows is None:
            raise ValueError("Could not read CSV file with any supported encoding")
        if not rows:
            raise ValueError(f"Statement file has no data: {file_path}")

        # Short rows are padded so every row is as wide as the widest one
        df = pd.DataFrame(rows)

    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()

def resolve_columns(header):
    """Locate statement columns from the header row.

    Args:
        header (list): Header cells

    Returns:
        dict: Column index per field; 'reference' is None when not found
    """
    columns = {}
    for idx, cell in enumerate(header or []):
        cell_str = '' if _is_blank(cell) else str(cell).lower()
        for field, keywords in COLUMN_KEYWORDS.items():
            if any(keyword in cell_str for keyword in keywords):
                columns[field] = idx

    for field, position in DEFAULT_POSITIONS.items():
        columns.setdefault(field, position)
    columns.setdefault('reference', None)

    logger.debug(f"Resolved statement columns: {columns}")
    return columns

def _iso_or_none(year, month, day):
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None
    if parsed.year < 1900 or parsed.year > 2100:
        return None
    return parsed.strftime('%Y-%m-%d')

def _serial_to_iso(serial):
    try:
        stamp = pd.to_datetime(np.floor(float(serial)), unit='D', origin=SPREADSHEET_EPOCH)
    except (ValueError, OverflowError):
        return None
    return _iso_or_none(stamp.year, stamp.month, stamp.day)

def parse_statement_date(value):
    """
    Convert a statement date cell to YYYY-MM-DD (ISO8601).

    Args:
        value: Spreadsheet serial number, datetime/date, or a string delimited by
            '/', '-' or '.'

    Returns:
        str or None: ISO date, or None if the value is not a usable date

    Notes:
        - A 4-digit first segment means year-month-day, otherwise day-month-year
        - A time component after whitespace is ignored
        - Only numeric cells are serials; a string needs three delimited parts,
          so footer cells such as '12' or '2024' are not dates
    """
    if _is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, (datetime, date)):
        return _iso_or_none(value.year, value.month, value.day)

    if isinstance(value, (int, float, np.integer, np.floating)):
        return _serial_to_iso(value)

    date_str = str(value).strip().strip('"\'')
    if not date_str:
        return None

    date_str = date_str.split()[0]
    parts = re.split(r'[/\-.]', date_str)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        return None

    if len(parts[0]) == 4:
        year, month, day = parts
    else:
        day, month, year = parts
    return _iso_or_none(int(year), int(month), int(day))

def parse_amount(value):
    """Parse an amount cell, keeping only digits, '.' and '-'.

    Returns:
        float: Parsed amount, or 0.0 when the cell is empty or unreadable
    """
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float, np.integer, np.floating)):
        return float(value)

    cleaned = re.sub(r'[^\d.\-]', '', str(value))
    try:
        return float(cleaned)
    except ValueError:
        return 0.0

def compute_transaction_hash(bank_account_id, transaction_date, description, reference, debit, credit):
    """Fingerprint a statement line for duplicate detection.

    Hash = SHA256(bank_account_id|date|description|reference|debit|credit)
    """
    components = [
        str(bank_account_id),
        transaction_date,
        (description or '').strip().lower(),
        (reference or '').strip(),
        f"{float(debit):.2f}",
        f"{float(credit):.2f}",
    ]
    hash_input = '|'.join(components).encode('utf-8')
    return hashlib.sha256(hash_input).hexdigest()

def _cell(row, idx):
    if idx is None or idx >= len(row):
        return None
    return row[idx]

def _text(value):
    if _is_blank(value):
        return ''
    return str(value).strip()

def parse_statement_rows(rows, bank_account_id):
    """Parse raw statement rows into unpersisted StatementLines.

    Args:
        rows (list): Raw rows; the first row is the header
        bank_account_id (str): Account the statement belongs to

    Returns:
        tuple: (lines, skipped_count) where skipped_count counts data rows
            dropped because no date could be parsed
    """
    if not rows:
        return [], 0

    columns = resolve_columns(rows[0])
    lines = []
    skipped = 0

    for row_number, row in enumerate(rows[1:], start=2):
        if not row or all(_is_blank(cell) for cell in row):
            continue

        transaction_date = parse_statement_date(_cell(row, columns['date']))
        if not transaction_date:
            logger.debug(f"Skipping row {row_number}: no parseable date in {row}")
            skipped += 1
            continue

        description = _text(_cell(row, columns['description']))
        reference = _text(_cell(row, columns['reference']))
        debit = parse_amount(_cell(row, columns['debit']))
        credit = parse_amount(_cell(row, columns['credit']))

        lines.append(StatementLine(
            bank_account_id=bank_account_id,
            transaction_date=transaction_date,
            description=description,
            reference=reference,
            debit_amount=debit,
            credit_amount=credit,
            running_balance=parse_amount(_cell(row, columns['balance'])),
            reconciliation_status=UNMATCHED,
            transaction_hash=compute_transaction_hash(
                bank_account_id, transaction_date, description, reference, debit, credit
            ),
        ))

    return lines, skipped

def import_statement(file_path, bank_account_id, store, entries=None, auto_match=False, settings=None):
    """Import a statement file into the store for one bank account.

    Args:
        file_path (str or pathlib.Path): Statement file
        bank_account_id (str): Owning bank account
        store (StatementStore): Destination store
        entries (list, optional): Ledger entries to auto-match against after import
        auto_match (bool): Run the matcher after inserting. Defaults to False.
        settings (MatchSettings, optional): Matcher settings

    Returns:
        ImportResult: Aggregate counts of the import

    Raises:
        ValueError: If the file holds no dated transactions
        StorageError: If the store cannot be written
    """
    rows = read_statement_rows(file_path)
    lines, skipped = parse_statement_rows(rows, bank_account_id)

    if not lines:
        raise ValueError(f"No valid transactions found in {file_path}. Please check the format.")

    inserted = store.upsert(lines, ignore_duplicates=True)
    result = ImportResult(
        parsed_count=len(lines),
        inserted_count=len(inserted),
        duplicate_count=len(lines) - len(inserted),
        skipped_count=skipped,
        inserted=inserted,
    )
    logger.info(
        f"Imported {result.inserted_count} new transactions for account {bank_account_id} "
        f"({result.duplicate_count} duplicates, {result.skipped_count} rows skipped)"
    )

    if auto_match:
        result.match_result = match_account(store, bank_account_id, entries or [], settings=settings)

    return result

def load_ledger_entries(file_path, bank_account_id=None):
    """Load internal ledger entries from a CSV or XLSX file.

    Required columns are id, date, amount; description, reference,
    bank_account_id and direction are optional.
    """
    if not os.path.exists(file_path):
        raise FileNotFoundError(f"File not found: {file_path}")

    if str(file_path).lower().endswith('.xlsx'):
        df = pd.read_excel(file_path, sheet_name=0, dtype=object, engine='openpyxl')
    else:
        df = pd.read_csv(file_path, dtype=str, keep_default_na=False, skipinitialspace=True)
    df.columns = df.columns.str.strip().str.lower()

    required_columns = ['id', 'date', 'amount']
    missing_columns = [col for col in required_columns if col not in df.columns]
    if missing_columns:
        raise ValueError(f"Missing required columns: {missing_columns}")

    entries = []
    for _, row in df.iterrows():
        entry_date = parse_statement_date(row['date'])
        if not entry_date:
            logger.debug(f"Skipping ledger entry {row['id']}: no parseable date")
            continue
        account = _text(row.get('bank_account_id')) or None
        if bank_account_id is not None and account not in (None, bank_account_id):
            continue
        entries.append(LedgerEntry(
            id=_text(row['id']),
            entry_date=entry_date,
            amount=abs(parse_amount(row['amount'])),
            description=_text(row.get('description')),
            reference=_text(row.get('reference')),
            bank_account_id=account,
            direction=_text(row.get('direction')).lower() or None,
        ))

    logger.info(f"Loaded {len(entries)} ledger entries from {file_path}")
    return entries
