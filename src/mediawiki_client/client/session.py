"""
Session state for one logical client.

Holds the cookie jar, the cached action tokens, the logged-in identity and
the assertion mode. The cookie jar and the token cache are the only state
shared between concurrent requests; each is guarded by its own lock.
"""

from __future__ import annotations
import logging
import threading
from enum import IntFlag
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field
from requests.cookies import RequestsCookieJar

from ..runtime.errors import WikiError, ErrorKind
from .requests import Request


class AssertionMode(IntFlag):
    """Conditions re-validated before writes."""
    NONE = 0
    USER = 1
    BOT = 2
    NO_MESSAGES = 4
    SYSOP = 8


class UserIdentity(BaseModel):
    """The account a session is logged in as."""
    username: str
    rights: FrozenSet[str] = Field(default_factory=frozenset)
    groups: FrozenSet[str] = Field(default_factory=frozenset)
    has_new_messages: bool = False

    model_config = {"frozen": True}

    def is_allowed_to(self, right: str) -> bool:
        """Whether the user holds ``right``."""
        return right in self.rights

    def is_a(self, group: str) -> bool:
        """Whether the user belongs to ``group``."""
        return group in self.groups


class CookieRecord(BaseModel):
    """Plain-data form of one cookie."""
    name: str
    value: Optional[str] = None
    domain: str = ""
    path: str = "/"
    secure: bool = False
    expires: Optional[int] = None


class SessionSnapshot(BaseModel):
    """Exported session state, restorable into a fresh SessionStore."""
    cookies: List[CookieRecord] = Field(default_factory=list)
    tokens: Dict[str, str] = Field(default_factory=dict)
    identity: Optional[UserIdentity] = None
    assertion_mode: int = 0


TokenFetcher = Callable[[str], str]
StatusChecker = Callable[[], Optional[UserIdentity]]


class SessionStore:
    """
    Cookies, tokens and identity of one session.

    Tokens are fetched on first use and cached until invalidated; they are
    never expired proactively.
    """

    HIGH_LIMITS_RIGHT = "apihighlimits"

    def __init__(
        self,
        assertion_mode: AssertionMode = AssertionMode.NONE,
        status_interval: int = 100,
        token_fetcher: Optional[TokenFetcher] = None,
        status_checker: Optional[StatusChecker] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize session store.

        Args:
            assertion_mode: Conditions to enforce before writes
            status_interval: Write actions between identity re-validations
            token_fetcher: Callable fetching a fresh token of a given type
            status_checker: Callable returning the current identity
            logger: Logger to use instead of the module logger
        """
        self.assertion_mode = AssertionMode(assertion_mode)
        self.status_interval = status_interval
        self.token_fetcher = token_fetcher
        self.status_checker = status_checker
        self._logger = logger or logging.getLogger(__name__)

        self._cookies = RequestsCookieJar()
        self._cookie_lock = threading.RLock()

        self._tokens: Dict[str, str] = {}
        self._identity: Optional[UserIdentity] = None
        self._state_lock = threading.RLock()
        self.actions_since_status_check = 0

    # ---- cookies ------------------------------------------------------------

    def cookies_for(self, request: Request) -> RequestsCookieJar:
        """
        Cookies to attach to ``request``.

        Returns a copy; domain and path matching is applied when the request
        is prepared.
        """
        with self._cookie_lock:
            return self._cookies.copy()

    def update_cookies(self, cookies: Optional[Any]) -> None:
        """Merge cookies received with a response."""
        if not cookies:
            return
        with self._cookie_lock:
            self._cookies.update(cookies)

    @property
    def has_cookies(self) -> bool:
        with self._cookie_lock:
            return len(self._cookies) > 0

    # ---- tokens -------------------------------------------------------------

    def token_for(self, token_type: str = "csrf") -> str:
        """
        Return a cached token, fetching it on first use.

        Args:
            token_type: Token type, e.g. ``csrf`` or ``login``

        Raises:
            WikiError: If no token fetcher is configured
        """
        with self._state_lock:
            token = self._tokens.get(token_type)
            if token is not None:
                return token
            if self.token_fetcher is None:
                raise WikiError(f"No token fetcher configured for '{token_type}' tokens",
                                ErrorKind.INVALID_ARGUMENT)
            token = self.token_fetcher(token_type)
            self._tokens[token_type] = token
            self._logger.debug(f"Fetched {token_type} token")
            return token

    def set_token(self, token_type: str, token: str) -> None:
        with self._state_lock:
            self._tokens[token_type] = token

    def invalidate_tokens(self) -> None:
        """Drop every cached token."""
        with self._state_lock:
            if self._tokens:
                self._logger.info(f"Invalidating {len(self._tokens)} cached token(s)")
            self._tokens.clear()

    # ---- identity and assertions ------------------------------------------

    @property
    def identity(self) -> Optional[UserIdentity]:
        with self._state_lock:
            return self._identity

    def set_identity(self, identity: Optional[UserIdentity]) -> None:
        with self._state_lock:
            self._identity = identity

    @property
    def is_privileged(self) -> bool:
        """Whether the identity may use high API limits."""
        identity = self.identity
        return identity is not None and identity.is_allowed_to(self.HIGH_LIMITS_RIGHT)

    def batch_cap(self, capacity: Any) -> int:
        """Batch cap of ``capacity`` appropriate to this session."""
        return capacity.batch_cap(self.is_privileged)

    def assert_params(self) -> Dict[str, str]:
        """Server-side ``assert`` parameter for write requests."""
        if self.assertion_mode & AssertionMode.BOT:
            return {"assert": "bot"}
        if self.assertion_mode & AssertionMode.USER:
            return {"assert": "user"}
        return {}

    def check_assertions(self, identity: Optional[UserIdentity] = None) -> None:
        """
        Verify the assertion mode against an identity.

        Args:
            identity: Identity to check; defaults to the current one

        Raises:
            WikiError: ``ASSERTION_FAILED`` if any enabled condition is false
        """
        if identity is None:
            identity = self.identity
        mode = self.assertion_mode
        failure = None
        if mode & (AssertionMode.USER | AssertionMode.BOT | AssertionMode.SYSOP) and identity is None:
            failure = "Not logged in"
        elif mode & AssertionMode.BOT and not (identity.is_a("bot") or identity.is_allowed_to("bot")):
            failure = f"User {identity.username} is not a bot"
        elif mode & AssertionMode.SYSOP and not identity.is_a("sysop"):
            failure = f"User {identity.username} is not a sysop"
        elif mode & AssertionMode.NO_MESSAGES and identity is not None and identity.has_new_messages:
            failure = "User has new messages"
        if failure is not None:
            self._logger.error(f"Assertion failed: {failure}")
            self.invalidate_tokens()
            raise WikiError(failure, ErrorKind.ASSERTION_FAILED)

    def record_write(self) -> None:
        """Count one completed write action."""
        with self._state_lock:
            self.actions_since_status_check += 1

    def periodic_status_check(self) -> bool:
        """
        Re-validate identity after every ``status_interval`` writes.

        Returns:
            True if a check was performed

        Raises:
            WikiError: ``ASSERTION_FAILED`` if the refreshed identity fails
        """
        with self._state_lock:
            if self.actions_since_status_check < self.status_interval:
                return False
            self.actions_since_status_check = 0
            if self.status_checker is None:
                return False
            self._logger.info("Performing periodic status check")
            identity = self.status_checker()
            self._identity = identity
        self.check_assertions(identity)
        return True

    # ---- lifecycle ------------------------------------------------------------

    def clear(self) -> None:
        """Forget cookies, tokens and identity."""
        with self._cookie_lock:
            self._cookies.clear()
        with self._state_lock:
            self._tokens.clear()
            self._identity = None
            self.actions_since_status_check = 0

    def snapshot(self) -> SessionSnapshot:
        """Export cookies, tokens and identity as plain data."""
        with self._cookie_lock:
            cookies = [
                CookieRecord(
                    name=cookie.name,
                    value=cookie.value,
                    domain=cookie.domain,
                    path=cookie.path,
                    secure=cookie.secure,
                    expires=cookie.expires,
                )
                for cookie in self._cookies
            ]
        with self._state_lock:
            return SessionSnapshot(
                cookies=cookies,
                tokens=dict(self._tokens),
                identity=self._identity,
                assertion_mode=int(self.assertion_mode),
            )

    @classmethod
    def restore(cls, snapshot: SessionSnapshot, **kwargs: Any) -> "SessionStore":
        """
        Build a fresh session from a snapshot.

        Args:
            snapshot: Previously exported state
            **kwargs: Extra constructor arguments (fetchers, logger, interval)
        """
        kwargs.setdefault("assertion_mode", AssertionMode(snapshot.assertion_mode))
        store = cls(**kwargs)
        for record in snapshot.cookies:
            store._cookies.set(
                record.name,
                record.value,
                domain=record.domain,
                path=record.path,
                secure=record.secure,
                expires=record.expires,
            )
        store._tokens.update(snapshot.tokens)
        store._identity = snapshot.identity
        return store


__all__ = [
    "AssertionMode",
    "UserIdentity",
    "CookieRecord",
    "SessionSnapshot",
    "SessionStore",
]
