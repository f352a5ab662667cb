import pytest

from bankrecon.models import BankAccount, LedgerEntry, StatementLine
from bankrecon.ingest import compute_transaction_hash
from bankrecon.store import InMemoryStatementStore

ACCOUNT_ID = 'BCA-001'

# Statement export with English headers and a trailing junk row
statement_csv_text = (
    "Date,Description,Debit,Credit,Balance\n"
    "01/03/2024,Payment ABC,,500000,1500000\n"
    "02/03/2024,Fee,10000,,1490000\n"
    "bad-date,Junk,,,\n"
)

# Same transactions as exported with Indonesian headers and a reference column
indonesian_statement_rows = [
    ['Tanggal', 'Keterangan', 'No. Ref', 'Keluar', 'Masuk', 'Saldo'],
    ['01/03/2024', 'Payment ABC', 'TRF-881', '', '500.000', '1,500,000'],
    ['2024-03-02', 'Biaya Admin', '', '10,000', '', '1,490,000'],
    ['Saldo Akhir', '', '', '', '', '1,490,000'],
]

def make_line(transaction_date, description, credit=0.0, debit=0.0, account=ACCOUNT_ID, reference=''):
    """Helper to build an unpersisted statement line with its hash."""
    return StatementLine(
        bank_account_id=account,
        transaction_date=transaction_date,
        description=description,
        reference=reference,
        debit_amount=debit,
        credit_amount=credit,
        transaction_hash=compute_transaction_hash(account, transaction_date, description, reference, debit, credit),
    )

@pytest.fixture
def account():
    return BankAccount(id=ACCOUNT_ID, account_name='Operasional', bank_name='BCA', account_number='1234567890')

@pytest.fixture
def store(account):
    """Empty in-memory store with one registered bank account."""
    store = InMemoryStatementStore()
    store.add_bank_account(account)
    return store

@pytest.fixture
def statement_csv(tmp_path):
    path = tmp_path / 'statement.csv'
    path.write_text(statement_csv_text)
    return path

@pytest.fixture
def payment_entry():
    """Ledger entry expected to match the 'Payment ABC' statement line."""
    return LedgerEntry(
        id='JE-100',
        entry_date='2024-03-02',
        amount=500000.0,
        description='Payment ABC Invoice 123',
    )

@pytest.fixture
def entries_csv(tmp_path):
    path = tmp_path / 'entries.csv'
    path.write_text(
        "id,date,amount,description,bank_account_id,direction\n"
        "JE-100,2024-03-02,500000,Payment ABC Invoice 123,,credit\n"
        "JE-200,2024-03-20,75000,Other Account Receipt,MANDIRI-9,\n"
        "JE-300,not a date,10000,Broken,,\n"
    )
    return path

@pytest.fixture
def add_lines(store):
    """Insert statement lines into the store and return them with their ids."""
    def _add(*lines):
        return store.upsert(list(lines))
    return _add
