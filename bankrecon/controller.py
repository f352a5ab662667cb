"""
Reconciliation state controller.

Applies reviewer decisions to statement lines and provides status views over a
loaded set of lines:

    unmatched <-> needs_review -> matched
    unmatched -> recorded                 (never left by matching)
    any status -> unmatched               (reject)
"""

import logging

import pandas as pd

from bankrecon.models import (
    MATCHED,
    NEEDS_REVIEW,
    RECORDED,
    STATUSES,
    UNMATCHED,
)

logger = logging.getLogger(__name__)

ALL = 'all'
UNLINKED = 'unlinked'

# The review screen calls the unlinked view "no_link"
FILTER_ALIASES = {'no_link': UNLINKED}

def confirm_match(store, line_id):
    """Confirm a suggested match. Confirming an already matched line changes nothing.

    Raises:
        KeyError: If the line does not exist
        ValueError: If the line is neither needs_review nor matched
    """
    line = store.get(line_id)
    if line.reconciliation_status == MATCHED:
        logger.debug(f"Line {line_id} already matched")
        return line
    if line.reconciliation_status != NEEDS_REVIEW:
        raise ValueError(f"Cannot confirm line {line_id} with status {line.reconciliation_status}")

    logger.info(f"Confirming match of line {line_id} to entry {line.matched_entry_id}")
    return store.update_status(line_id, MATCHED)

def reject_match(store, line_id):
    """Return a line to unmatched and drop its entry link, whatever its status.

    Rejection is the only way out of recorded; matching itself never touches
    recorded lines.

    Raises:
        KeyError: If the line does not exist
    """
    line = store.get(line_id)

    logger.info(f"Rejecting match of line {line_id} (was {line.reconciliation_status})")
    return store.update_status(line_id, UNMATCHED, matched_entry_id=None)

def record_entry(store, line_id, entry_id):
    """Mark an unmatched line as recorded against a newly created internal entry.

    Raises:
        KeyError: If the line does not exist
        ValueError: If the line is not unmatched or entry_id is empty
    """
    line = store.get(line_id)
    if line.reconciliation_status != UNMATCHED:
        raise ValueError(f"Only unmatched lines can be recorded; line {line_id} is {line.reconciliation_status}")
    if not entry_id:
        raise ValueError("An entry id is required to record a line")

    logger.info(f"Recording line {line_id} as entry {entry_id}")
    return store.update_status(line_id, RECORDED, matched_entry_id=entry_id)

def filter_by_status(lines, status=ALL):
    """
    Select lines for a status view.

    Args:
        lines (list): StatementLines
        status (str): A reconciliation status, 'all', or 'unlinked' (lines without
            a matched entry, whatever their status)

    Returns:
        list: Lines in the view, in their original order

    Raises:
        ValueError: If status is not a known view
    """
    status = FILTER_ALIASES.get(status, status)
    if status == ALL:
        return list(lines)
    if status == UNLINKED:
        return [line for line in lines if not line.matched_entry_id]
    if status not in STATUSES:
        raise ValueError(f"Invalid status filter: {status}. Expected one of: {[ALL, UNLINKED, *STATUSES]}")
    return [line for line in lines if line.reconciliation_status == status]

def summarize(lines):
    """Count lines per status in a single pass.

    Returns:
        dict: One count per status plus 'unlinked' and 'total'
    """
    summary = {status: 0 for status in STATUSES}
    summary[UNLINKED] = 0
    summary['total'] = 0
    for line in lines:
        summary['total'] += 1
        summary[line.reconciliation_status] = summary.get(line.reconciliation_status, 0) + 1
        if not line.matched_entry_id:
            summary[UNLINKED] += 1
    return summary

def format_summary(summary):
    """Format a status summary as report text."""
    lines = [
        f"Total Lines: {summary.get('total', 0)}",
        f"Matched: {summary.get(MATCHED, 0)}",
        f"Needs Review: {summary.get(NEEDS_REVIEW, 0)}",
        f"Unmatched: {summary.get(UNMATCHED, 0)}",
        f"Recorded: {summary.get(RECORDED, 0)}",
        f"No Link: {summary.get(UNLINKED, 0)}",
    ]
    return "\n".join(lines)

def lines_to_frame(lines):
    """Build a DataFrame of statement lines with the persisted column names."""
    columns = [
        'id', 'bank_account_id', 'transaction_date', 'description', 'reference',
        'debit_amount', 'credit_amount', 'running_balance', 'reconciliation_status',
        'matched_entry_id', 'notes',
    ]
    if not lines:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame([{col: getattr(line, col) for col in columns} for line in lines], columns=columns)
