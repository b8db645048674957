# cineverse/identity.py
"""
Email/secret identity provider.

Resolves the current identity once (from a session persisted in a local
store), lets callers subscribe to identity changes and performs sign up,
sign in and sign out. Every successful operation notifies subscribers; a
subscriber may be a plain function or a coroutine function, coroutines are
awaited before the operation returns.
"""
import inspect
import logging
import uuid
from typing import Callable, List, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from cineverse.models import Account, Identity
from cineverse.repo import RepoError

logger = logging.getLogger(__name__)

SESSION_KEY = "auth-session"
MIN_SECRET_LENGTH = 6

class AuthError(Exception):
    """Raised on invalid credentials or input. `code` mirrors the usual auth/* codes."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code

class IdentityProvider:
    def __init__(self, accounts, session_store, session_key: str = SESSION_KEY):
        self.accounts = accounts
        self.session_store = session_store
        self.session_key = session_key
        self._listeners: List[Callable] = []
        self._current: Optional[Identity] = None
        self._resolved = False

    async def current_identity(self) -> Optional[Identity]:
        """Resolve the persisted session on first call, then return the cached identity."""
        if not self._resolved:
            uid = self.session_store.get_item(self.session_key)
            account = self.accounts.get_account(uid) if uid else None
            if uid and not account:
                logger.warning("Session refers to unknown account %s, dropping it", uid)
                self.session_store.remove_item(self.session_key)
            self._current = Identity(account.uid, account.email) if account else None
            self._resolved = True
            logger.info("Resolved identity: %s", self._current.uid if self._current else None)
        return self._current

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    async def _emit(self, identity: Optional[Identity]) -> None:
        self._current = identity
        self._resolved = True
        for cb in list(self._listeners):
            result = cb(identity)
            if inspect.isawaitable(result):
                await result

    def _start_session(self, account: Account) -> Identity:
        self.session_store.set_item(self.session_key, account.uid)
        return Identity(account.uid, account.email)

    @staticmethod
    def _normalize_email(email: str) -> str:
        email = (email or "").strip().lower()
        if "@" not in email or email.startswith("@") or email.endswith("@"):
            raise AuthError("auth/invalid-email", "invalid email address")
        return email

    async def sign_up(self, email: str, secret: str) -> Identity:
        email = self._normalize_email(email)
        if not secret or len(secret) < MIN_SECRET_LENGTH:
            raise AuthError("auth/weak-password", f"password must be at least {MIN_SECRET_LENGTH} characters")
        account = Account(uid=uuid.uuid4().hex, email=email, password_hash=generate_password_hash(secret))
        try:
            self.accounts.create_account(account)
        except RepoError as e:
            logger.warning("sign_up: email already registered %s", email)
            raise AuthError("auth/email-already-in-use", "email already in use") from e
        logger.info("Created account uid=%s email=%s", account.uid, email)
        identity = self._start_session(account)
        await self._emit(identity)
        return identity

    async def sign_in(self, email: str, secret: str) -> Identity:
        email = self._normalize_email(email)
        account = self.accounts.get_account_by_email(email)
        if not account or not check_password_hash(account.password_hash, secret or ""):
            logger.warning("sign_in: invalid credentials for %s", email)
            raise AuthError("auth/invalid-credential", "invalid email or password")
        logger.info("Signed in uid=%s", account.uid)
        identity = self._start_session(account)
        await self._emit(identity)
        return identity

    async def sign_out(self) -> None:
        self.session_store.remove_item(self.session_key)
        logger.info("Signed out")
        await self._emit(None)
