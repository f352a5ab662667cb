"""
Statement Matcher

Pairs unmatched statement lines with internal ledger entries and classifies each
pairing by confidence.

Candidate Rules:
- Amount: the line's nonzero side must equal the entry amount to the cent
- Date: the two dates may be at most ``date_tolerance_days`` apart (7 by default);
  pairs further apart are never candidates, whatever their other signals
- Direction and account: honoured only when the entry declares them

Confidence:
    amount_weight + date_weight * (1 - days / (tolerance + 1)) + text_weight * similarity

Classification:
- confidence >= auto_accept (0.85): matched
- confidence >= review (0.70): needs_review, entry linked tentatively
- otherwise the line stays unmatched

Each line and each entry is claimed at most once per pass, best scores first.
"""

import logging

import numpy as np
import pandas as pd

from bankrecon.config import MatchSettings
from bankrecon.models import (
    AutoMatchResult,
    MatchCandidate,
    MATCHED,
    NEEDS_REVIEW,
    RECORDED,
    UNMATCHED,
)

logger = logging.getLogger(__name__)

def string_similarity(str1, str2):
    """
    Score how alike two descriptions are, from 0.0 to 1.0.

    Args:
        str1 (str): First description
        str2 (str): Second description

    Returns:
        float: 1.0 when equal after lowercasing and trimming, 0.8 when one contains
            the other, otherwise the share of words in common over the larger word count
    """
    if not str1 or not str2:
        return 0.0
    s1 = str1.lower().strip()
    s2 = str2.lower().strip()
    if not s1 or not s2:
        return 0.0

    if s1 == s2:
        return 1.0
    if s1 in s2 or s2 in s1:
        return 0.8

    words1 = s1.split()
    words2 = s2.split()
    common_words = sum(1 for word in words1 if word in words2)
    return common_words / max(len(words1), len(words2))

def score_candidate(date_delta_days, text_similarity, settings=None):
    """Combine the date and text signals of an amount-equal pair into a confidence.

    Returns:
        float: Confidence rounded to 4 decimals
    """
    settings = settings or MatchSettings()
    date_score = 1 - abs(date_delta_days) / (settings.date_tolerance_days + 1)
    confidence = (
        settings.amount_weight
        + settings.date_weight * date_score
        + settings.text_weight * text_similarity
    )
    return round(confidence, 4)

def classify_confidence(confidence, settings=None):
    """Map a confidence to the status a line should take.

    Returns:
        str: MATCHED, NEEDS_REVIEW or UNMATCHED
    """
    settings = settings or MatchSettings()
    if confidence >= settings.auto_accept:
        return MATCHED
    if confidence >= settings.review:
        return NEEDS_REVIEW
    return UNMATCHED

def _amount_key(amount):
    return int(round(abs(amount) * 100))

def _lines_frame(lines):
    return pd.DataFrame([
        {
            'line_id': line.id,
            'line_order': order,
            'line_account': line.bank_account_id,
            'line_date': line.transaction_date,
            'line_description': line.description,
            'line_direction': line.direction,
            'line_amount': abs(line.amount),
            'amount_key': _amount_key(line.amount),
        }
        for order, line in enumerate(lines)
        if line.amount
    ])

def _entries_frame(entries):
    return pd.DataFrame([
        {
            'entry_id': entry.id,
            'entry_account': entry.bank_account_id or None,
            'entry_date': entry.entry_date,
            'entry_description': entry.description,
            'entry_direction': entry.direction or None,
            'entry_amount': abs(entry.amount),
            'amount_key': _amount_key(entry.amount),
        }
        for entry in entries
    ])

def find_candidates(lines, entries, settings=None):
    """Score every in-tolerance pairing of lines and entries.

    Args:
        lines (list): StatementLines with ids
        entries (list): LedgerEntries
        settings (MatchSettings, optional): Tolerance and weights

    Returns:
        list: MatchCandidates, best first (ties: closer date, earlier line, entry id)
    """
    settings = settings or MatchSettings()
    lines_df = _lines_frame(lines)
    entries_df = _entries_frame(entries)
    if lines_df.empty or entries_df.empty:
        return []

    pairs = lines_df.merge(entries_df, on='amount_key', how='inner')
    if pairs.empty:
        return []

    scoped = pairs['entry_account'].isna() | (pairs['entry_account'] == pairs['line_account'])
    same_side = pairs['entry_direction'].isna() | (pairs['entry_direction'] == pairs['line_direction'])
    pairs = pairs[scoped & same_side].copy()

    pairs['date_delta_days'] = (
        pd.to_datetime(pairs['line_date']) - pd.to_datetime(pairs['entry_date'])
    ).dt.days.abs()
    pairs = pairs[pairs['date_delta_days'] <= settings.date_tolerance_days].copy()
    if pairs.empty:
        return []

    pairs['text_similarity'] = [
        string_similarity(a, b)
        for a, b in zip(pairs['line_description'], pairs['entry_description'])
    ]
    date_score = 1 - pairs['date_delta_days'] / (settings.date_tolerance_days + 1)
    pairs['confidence'] = np.round(
        settings.amount_weight
        + settings.date_weight * date_score
        + settings.text_weight * pairs['text_similarity'],
        4
    )
    pairs['amount_delta'] = (pairs['line_amount'] - pairs['entry_amount']).round(2)

    pairs = pairs.sort_values(
        by=['confidence', 'date_delta_days', 'line_order', 'entry_id'],
        ascending=[False, True, True, True],
        kind='mergesort'
    )

    return [
        MatchCandidate(
            line_id=row.line_id,
            entry_id=row.entry_id,
            confidence=float(row.confidence),
            amount_delta=float(row.amount_delta),
            date_delta_days=int(row.date_delta_days),
            text_similarity=float(row.text_similarity),
        )
        for row in pairs.itertuples(index=False)
    ]

def assign_candidates(candidates, settings=None):
    """Claim candidates greedily so no line or entry is used twice.

    Args:
        candidates (list): MatchCandidates ordered best first
        settings (MatchSettings, optional): Review threshold

    Returns:
        list: Winning candidates at or above the review threshold
    """
    settings = settings or MatchSettings()
    claimed_lines = set()
    claimed_entries = set()
    assignments = []

    for candidate in candidates:
        if candidate.confidence < settings.review:
            break
        if candidate.line_id in claimed_lines or candidate.entry_id in claimed_entries:
            continue
        claimed_lines.add(candidate.line_id)
        claimed_entries.add(candidate.entry_id)
        assignments.append(candidate)

    return assignments

def auto_match(store, bank_account_id, entries, settings=None):
    """Run one matching pass over a bank account's unmatched lines.

    Lines already matched or recorded are skipped and counted; lines awaiting
    review are left as they are until a rejection returns them to unmatched.
    Entries already linked to any stored line, of any account, are not offered again.

    Args:
        store (StatementStore): Store holding the account's lines
        bank_account_id (str): Account to reconcile
        entries (list): Candidate LedgerEntries
        settings (MatchSettings, optional): Defaults to MatchSettings.from_env()

    Returns:
        AutoMatchResult: Counts of matched, suggested and skipped lines

    Raises:
        StorageError: If the store cannot be read or written
    """
    settings = settings or MatchSettings.from_env()
    lines = store.query(bank_account_id)

    skipped_count = sum(1 for line in lines if line.reconciliation_status in (MATCHED, RECORDED))
    eligible = [line for line in lines if line.reconciliation_status == UNMATCHED]
    linked = store.linked_entry_ids()
    available = [
        entry for entry in entries
        if entry.id not in linked and entry.bank_account_id in (None, '', bank_account_id)
    ]
    logger.info(
        f"Auto-matching {len(eligible)} unmatched lines of account {bank_account_id} "
        f"against {len(available)} open entries"
    )

    matched_count = 0
    suggested_count = 0
    for candidate in assign_candidates(find_candidates(eligible, available, settings), settings):
        status = classify_confidence(candidate.confidence, settings)
        store.update_status(candidate.line_id, status, matched_entry_id=candidate.entry_id)
        logger.debug(
            f"Line {candidate.line_id} -> entry {candidate.entry_id}: {status} "
            f"(confidence {candidate.confidence:.4f}, {candidate.date_delta_days} days apart)"
        )
        if status == MATCHED:
            matched_count += 1
        else:
            suggested_count += 1

    result = AutoMatchResult(
        matched_count=matched_count,
        suggested_count=suggested_count,
        skipped_count=skipped_count,
    )
    logger.info(
        f"Auto-match complete: {result.matched_count} matched, "
        f"{result.suggested_count} need review, {result.skipped_count} skipped"
    )
    return result

def run_auto_match(store, bank_account_id, entries=None, procedure=None, settings=None):
    """Auto-match through a remote procedure when one is available, locally otherwise.

    Args:
        procedure (callable, optional): Server-side ``auto_match_smart`` routine; called
            with the bank account id and expected to return a row (or list of rows)
            holding matched_count, suggested_count and skipped_count

    Returns:
        AutoMatchResult
    """
    if procedure is not None:
        logger.info(f"Delegating auto-match of account {bank_account_id} to remote procedure")
        return AutoMatchResult.from_remote(procedure(bank_account_id))
    return auto_match(store, bank_account_id, entries or [], settings=settings)
