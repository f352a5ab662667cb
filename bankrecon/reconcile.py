"""
Bank Reconciliation Command Line

Imports bank statements, auto-matches them against internal ledger entries and
applies reviewer decisions. State is kept in CSV files under the data directory
(``--data-dir``, or ``$DATA_DIR/data``).

Commands:
- accounts add|list: manage bank accounts
- import: load a statement file for an account, optionally auto-matching
- match: run an auto-match pass for an account
- confirm / reject / record: apply a decision to one statement line
- list: show statement lines, filtered by status and date range
- summary: count statement lines per status
"""

import argparse
import logging
import sys

from bankrecon.config import MatchSettings
from bankrecon.controller import (
    confirm_match,
    filter_by_status,
    format_summary,
    lines_to_frame,
    record_entry,
    reject_match,
    summarize,
)
from bankrecon.ingest import import_statement, load_ledger_entries
from bankrecon.matcher import run_auto_match
from bankrecon.models import BankAccount
from bankrecon.store import CsvStatementStore
from bankrecon.utils import ensure_output_file, resolve_data_dir, setup_logging

logger = logging.getLogger(__name__)

def build_parser():
    parser = argparse.ArgumentParser(description='Reconcile bank statements against ledger entries')
    parser.add_argument('--data-dir', type=str, default=None,
                        help='Directory holding reconciliation data')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--log-level', type=str, default='info',
                        help='Log level when --debug is not set')
    subparsers = parser.add_subparsers(dest='command', required=True)

    accounts = subparsers.add_parser('accounts', help='Manage bank accounts')
    accounts_sub = accounts.add_subparsers(dest='accounts_command', required=True)
    add = accounts_sub.add_parser('add', help='Register a bank account')
    add.add_argument('id', help='Bank account id')
    add.add_argument('account_name', help='Display name')
    add.add_argument('--bank-name', default='', help='Bank name')
    add.add_argument('--account-number', default='', help='Account number')
    accounts_sub.add_parser('list', help='List bank accounts')

    import_cmd = subparsers.add_parser('import', help='Import a statement file')
    import_cmd.add_argument('file', help='Statement file (.csv or .xlsx)')
    import_cmd.add_argument('--account', required=True, help='Bank account id')
    import_cmd.add_argument('--entries', help='Ledger entries file; runs auto-match after import')

    match = subparsers.add_parser('match', help='Auto-match unmatched statement lines')
    match.add_argument('--account', required=True, help='Bank account id')
    match.add_argument('--entries', required=True, help='Ledger entries file (.csv or .xlsx)')

    for name, help_text in [('confirm', 'Confirm a suggested match'), ('reject', 'Reject a match')]:
        decision = subparsers.add_parser(name, help=help_text)
        decision.add_argument('line_id', help='Statement line id')

    record = subparsers.add_parser('record', help='Mark a line as recorded against a new entry')
    record.add_argument('line_id', help='Statement line id')
    record.add_argument('entry_id', help='Id of the entry created from the line')

    list_cmd = subparsers.add_parser('list', help='List statement lines')
    list_cmd.add_argument('--account', required=True, help='Bank account id')
    list_cmd.add_argument('--status', default='all',
                          help='all, unlinked, unmatched, needs_review, matched or recorded')
    list_cmd.add_argument('--start', help='First transaction date (YYYY-MM-DD)')
    list_cmd.add_argument('--end', help='Last transaction date, inclusive (YYYY-MM-DD)')
    list_cmd.add_argument('--output', help='Write the lines to this CSV file or directory')

    summary = subparsers.add_parser('summary', help='Count statement lines per status')
    summary.add_argument('--account', required=True, help='Bank account id')
    summary.add_argument('--start', help='First transaction date (YYYY-MM-DD)')
    summary.add_argument('--end', help='Last transaction date, inclusive (YYYY-MM-DD)')

    return parser

def format_match_result(result):
    lines = [
        "Auto-match complete!",
        f"Matched (85%+ confidence): {result.matched_count}",
        f"Needs Review (70-84%): {result.suggested_count}",
    ]
    if result.skipped_count > 0:
        lines.append(f"Skipped (already matched): {result.skipped_count}")
    return "\n".join(lines)

def run_command(args, store):
    """Execute a parsed command against a store and return its text output."""
    settings = MatchSettings.from_env()

    if args.command == 'accounts':
        if args.accounts_command == 'add':
            account = store.add_bank_account(BankAccount(
                id=args.id,
                account_name=args.account_name,
                bank_name=args.bank_name,
                account_number=args.account_number,
            ))
            return f"Added bank account {account.id}"
        return "\n".join(
            f"{account.id}\t{account.account_name}\t{account.bank_name}\t{account.account_number}"
            for account in store.list_bank_accounts()
        )

    if args.command == 'import':
        entries = load_ledger_entries(args.entries, args.account) if args.entries else None
        result = import_statement(
            args.file, args.account, store,
            entries=entries, auto_match=entries is not None, settings=settings
        )
        if result.duplicate_count > 0:
            output = (f"Successfully imported {result.inserted_count} new transactions.\n"
                      f"{result.duplicate_count} duplicate transactions were skipped.")
        else:
            output = f"Successfully imported {result.inserted_count} transactions"
        if result.match_result is not None:
            output += "\n" + format_match_result(result.match_result)
        return output

    if args.command == 'match':
        entries = load_ledger_entries(args.entries, args.account)
        result = run_auto_match(store, args.account, entries, settings=settings)
        return format_match_result(result)

    if args.command == 'confirm':
        line = confirm_match(store, args.line_id)
        return f"Line {line.id} is {line.reconciliation_status}"

    if args.command == 'reject':
        line = reject_match(store, args.line_id)
        return f"Line {line.id} is {line.reconciliation_status}"

    if args.command == 'record':
        line = record_entry(store, args.line_id, args.entry_id)
        return f"Line {line.id} is {line.reconciliation_status}"

    lines = store.query(args.account, args.start, args.end)

    if args.command == 'summary':
        return format_summary(summarize(lines))

    df = lines_to_frame(filter_by_status(lines, args.status))
    if args.output:
        output_path = ensure_output_file(args.output, 'statement_lines.csv')
        df.to_csv(output_path, index=False)
        return f"Wrote {len(df)} lines to {output_path}"
    if df.empty:
        return "No statement lines found"
    return df.to_string(index=False)

def main(argv=None):
    """Main execution function."""
    args = build_parser().parse_args(argv)
    data_dir = resolve_data_dir(args.data_dir)
    setup_logging(debug=args.debug, log_level=args.log_level, log_dir=data_dir / 'logs')

    try:
        store = CsvStatementStore(data_dir)
        output = run_command(args, store)
        print(output)
        return 0
    except Exception as e:
        logger.error(f"Error during {args.command}: {str(e)}")
        raise

if __name__ == '__main__':
    sys.exit(main())
