"""
Authentication gate for the server.

Credentials travel in the Cookie header (`username=<u>; password=<p>`) on
every HTTP request and on the WebSocket handshake; there is no separate
login step. Both values are repaired from their Latin-1 transport view back
to UTF-8, the password is digested, and the pair must match a directory
entry exactly.

When session tokens are enabled a signed JWT in the `authToken` cookie is
accepted instead of the pair. The HTTP surface issues one after a
successful credential check.
"""

import asyncio
import base64
import hashlib
import logging
import time
from typing import Dict, Optional

import jwt

from HearthChat.config import config
from HearthChat.core.server.directory import User, UserDirectory
from HearthChat.core.server.interfaces import AuthResult

logger = logging.getLogger(__name__)

USERNAME_COOKIE = "username"
PASSWORD_COOKIE = "password"
TOKEN_COOKIE = "authToken"


def parse_cookies(header: Optional[str]) -> Dict[str, str]:
    """
    Split a Cookie header into a dict.

    Keys are trimmed; values are kept as sent, everything after the first
    `=` of each pair.
    """
    cookies: Dict[str, str] = {}
    if not header:
        return cookies
    for pair in header.split(";"):
        key, sep, value = pair.partition("=")
        if not sep:
            continue
        cookies[key.strip()] = value
    return cookies


def repair_encoding(value: str) -> str:
    """
    Reinterpret a Latin-1 view of header bytes as UTF-8.

    Header values reach us decoded one byte per character, so a UTF-8
    username arrives as mojibake. Taking each character's low byte and
    decoding the result as UTF-8 restores it.
    """
    return bytes(ord(ch) & 0xFF for ch in value).decode("utf-8", "replace")


def latin1_view(value: str) -> str:
    """
    Normalize a header value to the one-char-per-byte Latin-1 view that
    HTTP servers hand out.

    websockets 17 already decodes header values as ISO-8859-1, which is
    returned unchanged; values decoded with ascii/surrogateescape are
    mapped back to their bytes.
    """
    try:
        return value.encode("ascii", "surrogateescape").decode("latin-1")
    except UnicodeEncodeError:
        return value


def header_value(text: str) -> str:
    """
    The Latin-1 view of `text`'s UTF-8 bytes.

    Header values are serialized as ISO-8859-1, so passing this view puts
    the UTF-8 bytes on the wire, as a browser sends them.
    """
    return text.encode("utf-8").decode("latin-1")


def hash_password(password: str) -> str:
    """base64-encoded SHA-256 digest of the UTF-8 password."""
    return base64.b64encode(hashlib.sha256(password.encode("utf-8")).digest()).decode("ascii")


class SessionTokenIssuer:
    """Issues and verifies signed session tokens (JWT, `sub` = username)."""

    def __init__(
        self,
        secret: str = None,
        algorithm: str = None,
        expire_minutes: int = None
    ):
        self._secret = secret or config.JWT_SECRET
        self._algorithm = algorithm or config.JWT_ALGORITHM
        self._expire_minutes = expire_minutes or config.JWT_EXPIRE_MINUTES

    def issue(self, user: User) -> str:
        now = int(time.time())
        payload = {
            "sub": user.username,
            "iat": now,
            "exp": now + self._expire_minutes * 60,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Optional[str]:
        """Return the username carried by a valid token, else None."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.ExpiredSignatureError:
            logger.info("Session token expired")
            return None
        except jwt.InvalidTokenError as e:
            logger.warning("Invalid session token: %s", e)
            return None
        username = payload.get("sub")
        return username if isinstance(username, str) else None


class CredentialAuthenticator:
    """
    Resolves a raw Cookie header into a User.

    Used identically by the HTTP middleware and the WebSocket handshake.
    """

    def __init__(
        self,
        directory: UserDirectory,
        token_issuer: Optional[SessionTokenIssuer] = None
    ):
        """
        Args:
            directory: Snapshot of registered users
            token_issuer: Enables session tokens when given
        """
        self._directory = directory
        self._token_issuer = token_issuer

    @property
    def directory(self) -> UserDirectory:
        return self._directory

    @property
    def token_issuer(self) -> Optional[SessionTokenIssuer]:
        return self._token_issuer

    def resolve(self, raw_header: Optional[str]) -> Optional[User]:
        """Return the user the header authenticates, or None."""
        return self._resolve(parse_cookies(raw_header))

    def _resolve(self, cookies: Dict[str, str]) -> Optional[User]:
        username = cookies.get(USERNAME_COOKIE)
        password = cookies.get(PASSWORD_COOKIE)

        if username is not None and password is not None:
            user = self._directory.find(repair_encoding(username))
            if user is None:
                return None
            if user.password_digest != hash_password(repair_encoding(password)):
                return None
            return user

        token = cookies.get(TOKEN_COOKIE)
        if token and self._token_issuer is not None:
            token_username = self._token_issuer.verify(token.strip())
            if token_username is not None:
                return self._directory.find(token_username)
        return None

    async def authenticate(self, raw_header: Optional[str]) -> AuthResult:
        """
        Resolve the header and log the outcome.

        Only the parsed username is logged, never the header or password.
        """
        await asyncio.sleep(0)
        cookies = parse_cookies(raw_header)
        user = self._resolve(cookies)
        if user is not None:
            return AuthResult(success=True, user=user, username=user.username)

        raw_username = cookies.get(USERNAME_COOKIE)
        if raw_username is None or PASSWORD_COOKIE not in cookies:
            if TOKEN_COOKIE in cookies:
                logger.info("Authentication rejected: invalid session token")
                return AuthResult(success=False, error_code="INVALID_TOKEN")
            logger.info("Authentication rejected: no credentials")
            return AuthResult(success=False, error_code="NO_CREDENTIALS")

        username = repair_encoding(raw_username)
        logger.info("Authentication rejected for user %r", username)
        return AuthResult(success=False, username=username, error_code="INVALID_CREDENTIALS")


def create_authenticator(directory: UserDirectory, session_tokens: bool = None) -> CredentialAuthenticator:
    """Build the authenticator, with session tokens when configured."""
    if session_tokens is None:
        session_tokens = config.SESSION_TOKENS
    return CredentialAuthenticator(directory, SessionTokenIssuer() if session_tokens else None)


__all__ = [
    'USERNAME_COOKIE',
    'PASSWORD_COOKIE',
    'TOKEN_COOKIE',
    'parse_cookies',
    'repair_encoding',
    'latin1_view',
    'header_value',
    'hash_password',
    'SessionTokenIssuer',
    'CredentialAuthenticator',
    'create_authenticator',
]
