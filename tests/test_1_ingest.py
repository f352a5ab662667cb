import pytest
import pandas as pd
import numpy as np
from datetime import date, datetime

from bankrecon.ingest import (
    compute_transaction_hash,
    import_statement,
    load_ledger_entries,
    parse_amount,
    parse_statement_date,
    parse_statement_rows,
    read_statement_rows,
    resolve_columns
)
from bankrecon.models import UNMATCHED
from tests.conftest import ACCOUNT_ID, indonesian_statement_rows

def create_test_date_data():
    """Create statement date cells in the shapes bank exports use.

    Returns:
        dict: Date cells keyed by their shape
    """
    return {
        'iso': '2024-03-01',
        'iso_with_time': '2024-03-01 10:15:00',
        'dmy_slash': '01/03/2024',
        'dmy_short': '1/3/2024',
        'dmy_dash': '01-03-2024',
        'dmy_dot': '01.03.2024',
        'serial_int': 45352,
        'serial_float': 45352.75,
        'datetime': datetime(2024, 3, 1, 9, 30),
        'timestamp': pd.Timestamp('2024-03-01'),
        'date': date(2024, 3, 1),
    }

@pytest.mark.dependency()
class TestColumnResolution:
    """Test suite for header based column resolution."""

    @pytest.mark.dependency()
    def test_english_headers(self):
        columns = resolve_columns(['Date', 'Description', 'Debit', 'Credit', 'Balance'])
        assert columns == {
            'date': 0,
            'description': 1,
            'debit': 2,
            'credit': 3,
            'balance': 4,
            'reference': None,
        }

    def test_indonesian_headers(self):
        columns = resolve_columns(indonesian_statement_rows[0])
        assert columns['date'] == 0
        assert columns['description'] == 1
        assert columns['reference'] == 2
        assert columns['debit'] == 3
        assert columns['credit'] == 4
        assert columns['balance'] == 5

    def test_case_insensitive_substring(self):
        columns = resolve_columns(['TANGGAL TRANSAKSI', 'Uraian Transaksi', 'Mutasi Debit', 'Mutasi Kredit', 'Saldo Akhir'])
        assert (columns['date'], columns['description'], columns['debit'], columns['credit'], columns['balance']) == (0, 1, 2, 3, 4)

    def test_last_matching_header_wins(self):
        columns = resolve_columns(['Posting Date', 'Value Date', 'Description', 'Debit', 'Credit', 'Balance'])
        assert columns['date'] == 1

    @pytest.mark.dependency(depends=["TestColumnResolution::test_english_headers"])
    def test_positional_defaults(self):
        """Unrecognised headers fall back to date, description, debit, credit, balance."""
        columns = resolve_columns(['A', 'B', 'C', 'D', 'E'])
        assert columns == {
            'date': 0,
            'description': 1,
            'debit': 2,
            'credit': 3,
            'balance': 4,
            'reference': None,
        }
        assert resolve_columns([]) == columns
        assert resolve_columns([None, np.nan]) == columns

class TestDateParsing:
    """Test suite for statement date parsing.

    Verifies:
    - Delimited strings in Y-M-D and D-M-Y order
    - Spreadsheet serial numbers
    - Date objects from workbook cells
    - Rejection of unusable values
    """

    @pytest.mark.parametrize('key', list(create_test_date_data().keys()))
    def test_supported_shapes(self, key):
        assert parse_statement_date(create_test_date_data()[key]) == '2024-03-01'

    def test_zero_padding(self):
        assert parse_statement_date('2024-3-9') == '2024-03-09'
        assert parse_statement_date('9/3/2024') == '2024-03-09'

    def test_serial_epoch(self):
        # Serial 25569 is the Unix epoch
        assert parse_statement_date(25569) == '1970-01-01'

    @pytest.mark.parametrize('value', [
        None, '', '   ', 'bad-date', 'Saldo Akhir', '31/02/2024', '2024-13-01',
        '01/03', '01/03/2024/5', 'ab/cd/efgh', np.nan, True, 10 ** 12,
        '12', '2024', '45352', '""',
    ])
    def test_invalid_dates(self, value):
        assert parse_statement_date(value) is None

class TestAmountParsing:
    """Test suite for amount parsing."""

    def test_numeric_strings(self):
        assert parse_amount('500000') == 500000.0
        assert parse_amount('1,500,000') == 1500000.0
        assert parse_amount('Rp 250000.50') == 250000.5
        assert parse_amount('-250.5') == -250.5

    def test_numbers(self):
        assert parse_amount(12) == 12.0
        assert parse_amount(12.5) == 12.5
        assert parse_amount(np.int64(7)) == 7.0

    @pytest.mark.parametrize('value', [None, '', 'abc', '1.2.3', np.nan, '-'])
    def test_unreadable_amounts_default_to_zero(self, value):
        assert parse_amount(value) == 0.0

class TestTransactionHash:
    def test_hash_is_stable(self):
        first = compute_transaction_hash(ACCOUNT_ID, '2024-03-01', 'Payment ABC', '', 0, 500000)
        second = compute_transaction_hash(ACCOUNT_ID, '2024-03-01', '  Payment ABC ', None, 0.0, 500000.0)
        assert first == second
        assert len(first) == 64

    def test_hash_depends_on_content(self):
        base = compute_transaction_hash(ACCOUNT_ID, '2024-03-01', 'Payment ABC', '', 0, 500000)
        assert base != compute_transaction_hash('MANDIRI-9', '2024-03-01', 'Payment ABC', '', 0, 500000)
        assert base != compute_transaction_hash(ACCOUNT_ID, '2024-03-02', 'Payment ABC', '', 0, 500000)
        assert base != compute_transaction_hash(ACCOUNT_ID, '2024-03-01', 'Payment ABC', 'TRF-1', 0, 500000)
        assert base != compute_transaction_hash(ACCOUNT_ID, '2024-03-01', 'Payment ABC', '', 500000, 0)

class TestRowParsing:
    def test_statement_scenario(self, statement_csv):
        """Three data rows, the last undated: two lines, one skipped."""
        lines, skipped = parse_statement_rows(read_statement_rows(statement_csv), ACCOUNT_ID)

        assert len(lines) == 2
        assert skipped == 1
        assert all(line.reconciliation_status == UNMATCHED for line in lines)
        assert all(line.matched_entry_id is None for line in lines)

        payment, fee = lines
        assert payment.transaction_date == '2024-03-01'
        assert payment.description == 'Payment ABC'
        assert payment.credit_amount == 500000.0
        assert payment.debit_amount == 0.0
        assert payment.running_balance == 1500000.0
        assert fee.transaction_date == '2024-03-02'
        assert fee.debit_amount == 10000.0
        assert fee.credit_amount == 0.0

    def test_indonesian_rows(self):
        lines, skipped = parse_statement_rows(indonesian_statement_rows, ACCOUNT_ID)

        assert skipped == 1
        assert [line.reference for line in lines] == ['TRF-881', '']
        assert lines[0].credit_amount == 500.0  # thousands dots read as a decimal point
        assert lines[1].description == 'Biaya Admin'
        assert lines[1].debit_amount == 10000.0

    def test_blank_rows_are_ignored(self):
        rows = [['Date', 'Description'], [], [None, None], ['01/03/2024', 'Transfer', '', '100']]
        lines, skipped = parse_statement_rows(rows, ACCOUNT_ID)
        assert len(lines) == 1
        assert skipped == 0
        assert lines[0].credit_amount == 100.0

    def test_short_rows(self):
        lines, _ = parse_statement_rows([['Date', 'Description'], ['01/03/2024']], ACCOUNT_ID)
        assert lines[0].description == ''
        assert lines[0].debit_amount == 0.0

    def test_header_only(self):
        assert parse_statement_rows([['Date', 'Description']], ACCOUNT_ID) == ([], 0)
        assert parse_statement_rows([], ACCOUNT_ID) == ([], 0)

class TestFileReading:
    def test_excel_first_sheet(self, tmp_path):
        path = tmp_path / 'statement.xlsx'
        rows = pd.DataFrame([
            ['Tanggal', 'Keterangan', 'Keluar', 'Masuk', 'Saldo'],
            [45352, 'Payment ABC', None, 500000, 1500000],
            [datetime(2024, 3, 2), 'Fee', 10000, None, 1490000],
        ])
        with pd.ExcelWriter(path, engine='openpyxl') as writer:
            rows.to_excel(writer, sheet_name='Mutasi', header=False, index=False)
            pd.DataFrame([['ignored']]).to_excel(writer, sheet_name='Other', header=False, index=False)

        lines, skipped = parse_statement_rows(read_statement_rows(path), ACCOUNT_ID)

        assert skipped == 0
        assert [line.transaction_date for line in lines] == ['2024-03-01', '2024-03-02']
        assert lines[0].credit_amount == 500000.0
        assert lines[1].debit_amount == 10000.0

    def test_row_wider_than_header(self, tmp_path, store):
        """An unquoted comma in a description must not abort the import."""
        path = tmp_path / 'statement.csv'
        path.write_text(
            "Date,Description,Debit,Credit,Balance\n"
            "01/03/2024,Payment ABC,,500000,1500000\n"
            "02/03/2024,Fee, admin,10000,,1490000\n"
        )

        rows = read_statement_rows(path)
        assert len(rows) == 3
        assert rows[0][5] is None
        assert rows[2] == ['02/03/2024', 'Fee', 'admin', '10000', '', '1490000']

        result = import_statement(path, ACCOUNT_ID, store)
        assert result.inserted_count == 2
        assert [line.description for line in store.query(ACCOUNT_ID)] == ['Fee', 'Payment ABC']

    def test_footer_counts_are_not_dates(self, tmp_path):
        path = tmp_path / 'statement.csv'
        path.write_text(
            "Date,Description,Debit,Credit,Balance\n"
            "01/03/2024,Payment ABC,,500000,1500000\n"
            "12,Total transactions,,,\n"
            "2024,Closing year,,,\n"
        )

        lines, skipped = parse_statement_rows(read_statement_rows(path), ACCOUNT_ID)
        assert [line.description for line in lines] == ['Payment ABC']
        assert skipped == 2

    def test_blank_csv(self, tmp_path):
        path = tmp_path / 'statement.csv'
        path.write_text('\n\n')
        with pytest.raises(ValueError, match='no data'):
            read_statement_rows(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_statement_rows(tmp_path / 'missing.csv')

    def test_directory(self, tmp_path):
        with pytest.raises(ValueError, match='directory'):
            read_statement_rows(tmp_path)

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / 'statement.pdf'
        path.write_text('not a statement')
        with pytest.raises(ValueError, match='Unsupported file format'):
            read_statement_rows(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / 'statement.csv'
        path.write_text('')
        with pytest.raises(ValueError, match='empty'):
            read_statement_rows(path)

class TestImportStatement:
    def test_import_reports_counts(self, store, statement_csv):
        result = import_statement(statement_csv, ACCOUNT_ID, store)

        assert result.parsed_count == 2
        assert result.inserted_count == 2
        assert result.duplicate_count == 0
        assert result.skipped_count == 1
        assert result.match_result is None
        assert len(store.query(ACCOUNT_ID)) == 2

    def test_reimport_is_idempotent(self, store, statement_csv):
        import_statement(statement_csv, ACCOUNT_ID, store)
        second = import_statement(statement_csv, ACCOUNT_ID, store)

        assert second.inserted_count == 0
        assert second.duplicate_count == 2
        assert len(store.query(ACCOUNT_ID)) == 2

    def test_same_file_for_another_account(self, store, statement_csv):
        import_statement(statement_csv, ACCOUNT_ID, store)
        result = import_statement(statement_csv, 'MANDIRI-9', store)
        assert result.inserted_count == 2

    def test_import_with_auto_match(self, store, statement_csv, payment_entry):
        result = import_statement(statement_csv, ACCOUNT_ID, store, entries=[payment_entry], auto_match=True)

        assert result.match_result.matched_count == 1
        assert result.match_result.suggested_count == 0
        matched = [line for line in store.query(ACCOUNT_ID) if line.matched_entry_id]
        assert [line.matched_entry_id for line in matched] == ['JE-100']

    def test_no_valid_transactions(self, store, tmp_path):
        path = tmp_path / 'footer_only.csv'
        path.write_text("Date,Description,Debit,Credit,Balance\nTotal,,,,\n")
        with pytest.raises(ValueError, match='No valid transactions'):
            import_statement(path, ACCOUNT_ID, store)

class TestLedgerEntries:
    def test_load_entries(self, entries_csv):
        entries = load_ledger_entries(entries_csv)

        assert [entry.id for entry in entries] == ['JE-100', 'JE-200']
        assert entries[0].entry_date == '2024-03-02'
        assert entries[0].amount == 500000.0
        assert entries[0].direction == 'credit'
        assert entries[0].bank_account_id is None
        assert entries[1].bank_account_id == 'MANDIRI-9'

    def test_account_scope(self, entries_csv):
        entries = load_ledger_entries(entries_csv, ACCOUNT_ID)
        assert [entry.id for entry in entries] == ['JE-100']

    def test_missing_columns(self, tmp_path):
        path = tmp_path / 'entries.csv'
        path.write_text("id,amount\nJE-1,100\n")
        with pytest.raises(ValueError, match='Missing required columns'):
            load_ledger_entries(path)
