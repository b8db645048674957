# cineverse/repo.py
import os
import sqlite3
from contextlib import contextmanager
from typing import Dict, List, Optional

from cineverse.models import Account

# --- Exceptions ---
class RepoError(Exception):
    pass

# --- SQLite repo ---
class SqliteAccountRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path
        folder = os.path.dirname(db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        with self.conn() as c:
            c.execute("""CREATE TABLE IF NOT EXISTS accounts (
                uid TEXT PRIMARY KEY,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL)""")

    @contextmanager
    def conn(self):
        con = sqlite3.connect(self.db_path)
        con.row_factory = sqlite3.Row
        try:
            yield con
            con.commit()
        finally:
            con.close()

    @staticmethod
    def _row(r) -> Account:
        return Account(r["uid"], r["email"], r["password_hash"], r["created_at"])

    def create_account(self, a: Account) -> Account:
        try:
            with self.conn() as c:
                c.execute("INSERT INTO accounts (uid, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                          (a.uid, a.email, a.password_hash, a.created_at))
        except sqlite3.IntegrityError as e:
            raise RepoError(f"account exists: {a.email}") from e
        return a

    def get_account(self, uid: str) -> Optional[Account]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM accounts WHERE uid = ?", (uid,)).fetchone()
            return self._row(r) if r else None

    def get_account_by_email(self, email: str) -> Optional[Account]:
        with self.conn() as c:
            r = c.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
            return self._row(r) if r else None

    def list_accounts(self) -> List[Account]:
        with self.conn() as c:
            rows = c.execute("SELECT * FROM accounts ORDER BY email").fetchall()
            return [self._row(r) for r in rows]

# --- In-memory repo (simple, used for unit tests) ---
class InMemoryAccountRepo:
    def __init__(self):
        self._accounts: Dict[str, Account] = {}

    def create_account(self, a: Account) -> Account:
        if self.get_account_by_email(a.email):
            raise RepoError(f"account exists: {a.email}")
        self._accounts[a.uid] = a
        return a
    def get_account(self, uid: str): return self._accounts.get(uid)
    def get_account_by_email(self, email: str):
        return next((a for a in self._accounts.values() if a.email == email), None)
    def list_accounts(self): return sorted(self._accounts.values(), key=lambda a: a.email)
