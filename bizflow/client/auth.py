"""
Session / Auth State Machine

States:
    AuthInitial, AuthLoading          bootstrapped=False
    AuthAuthenticated(user)           bootstrapped=True
    AuthUnauthenticated               bootstrapped=True
    AuthError(message)                bootstrapped=True

Events:
    AuthCheckRequested                once, at process start
    LoginRequested(email, password, tenant_id=None)
    LogoutRequested
    TokenRefreshRequested             background refresh

CRITICAL: The check handler always ends in Authenticated or
Unauthenticated. It never leaves Loading behind, and it never emits
Authenticated followed by a contradicting Unauthenticated.

NOTE: Login does not emit Loading. Loading is not bootstrapped, and the
route guard would bounce an already-routed user back to splash.
"""
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from jose import JWTError, jwt
from pydantic import ValidationError

from bizflow.client.exceptions import AuthorizationError, ClientError, NetworkError
from bizflow.client.machine import StateMachine
from bizflow.client.storage import StoredTokens, TenantStore, TokenStore
from bizflow.client.tracking import Tracker
from bizflow.schemas.auth import SessionUser
from bizflow.utils.logging import get_logger

logger = get_logger(__name__)


# ----------------------------------------------------------------------
# States
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AuthInitial:
    bootstrapped: bool = False


@dataclass(frozen=True)
class AuthLoading:
    bootstrapped: bool = False


@dataclass(frozen=True)
class AuthAuthenticated:
    user: SessionUser
    bootstrapped: bool = True


@dataclass(frozen=True)
class AuthUnauthenticated:
    bootstrapped: bool = True


@dataclass(frozen=True)
class AuthError:
    message: str
    bootstrapped: bool = True


AuthState = Union[AuthInitial, AuthLoading, AuthAuthenticated, AuthUnauthenticated, AuthError]


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class AuthCheckRequested:
    pass


@dataclass(frozen=True)
class LoginRequested:
    email: str
    password: str
    tenant_id: Optional[str] = None


@dataclass(frozen=True)
class LogoutRequested:
    pass


@dataclass(frozen=True)
class TokenRefreshRequested:
    pass


# ----------------------------------------------------------------------
# Token decoding
# ----------------------------------------------------------------------

class _TokenClaims:
    """Unverified claims of an access token. The server verifies signatures."""

    def __init__(self, user: SessionUser, expires_at: Optional[float]):
        self.user = user
        self.expires_at = expires_at

    def is_expired(self, now: float, skew_seconds: float) -> bool:
        if self.expires_at is None:
            return True
        return self.expires_at - skew_seconds <= now


def decode_access_token(token: str) -> Optional[_TokenClaims]:
    """Decode without verifying. Malformed tokens return None."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None

    try:
        user = SessionUser(
            id=claims["sub"],
            email=claims.get("email") or "",
            name=claims.get("name"),
            role=claims.get("role") or "customer",
            tenant_id=claims.get("tenant_id"),
        )
    except (KeyError, ValidationError):
        return None

    exp = claims.get("exp")
    return _TokenClaims(user, float(exp) if isinstance(exp, (int, float)) else None)


# ----------------------------------------------------------------------
# Machine
# ----------------------------------------------------------------------

class AuthMachine(StateMachine[AuthState]):
    def __init__(
        self,
        api,
        token_store: TokenStore,
        tenant_store: TenantStore,
        tracker: Tracker,
        expiry_skew_seconds: float = 30,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(AuthInitial(), tracker)
        self._api = api
        self._tokens = token_store
        self._tenants = tenant_store
        self._skew = expiry_skew_seconds
        self._clock = clock
        self.handlers = {
            AuthCheckRequested: self._on_check,
            LoginRequested: self._on_login,
            LogoutRequested: self._on_logout,
            TokenRefreshRequested: self._on_token_refresh,
        }

    @property
    def user(self) -> Optional[SessionUser]:
        state = self.state
        return state.user if isinstance(state, AuthAuthenticated) else None

    def _clear_session(self) -> None:
        self._tokens.clear()
        self._tenants.clear()

    async def _refresh(self, tokens: StoredTokens) -> SessionUser:
        """
        Exchange the refresh token and store the new pair.

        The user always comes from the NEW access token.
        """
        pair = await self._api.refresh(tokens.refresh_token)
        claims = decode_access_token(pair.access_token)
        if claims is None:
            raise ClientError("Refreshed access token could not be decoded")
        self._tokens.save(pair.access_token, pair.refresh_token or tokens.refresh_token)
        return claims.user

    async def _on_check(self, event: AuthCheckRequested) -> None:
        self.emit(AuthLoading())
        try:
            state = await self._check()
        except Exception as e:
            logger.exception("Unexpected failure during session check")
            self._tracker.track_error(e, {"operation": "auth_check"})
            self._clear_session()
            state = AuthUnauthenticated()
        self.emit(state)

    async def _check(self) -> AuthState:
        tokens = self._tokens.read()
        if tokens is None:
            return AuthUnauthenticated()

        claims = decode_access_token(tokens.access_token)
        if claims is not None and not claims.is_expired(self._clock(), self._skew):
            self._tracker.track_event("session_restored", {"user_id": claims.user.id})
            return AuthAuthenticated(claims.user)

        if not tokens.refresh_token:
            self._clear_session()
            return AuthUnauthenticated()

        try:
            user = await self._refresh(tokens)
        except ClientError as e:
            logger.info(f"Boot-time token refresh failed: {e}")
            self._tracker.track_error(e, {"operation": "auth_check_refresh"})
            self._clear_session()
            return AuthUnauthenticated()

        self._tracker.track_event("session_refreshed", {"user_id": user.id})
        return AuthAuthenticated(user)

    async def _on_login(self, event: LoginRequested) -> None:
        try:
            response = await self._api.login(event.email, event.password, event.tenant_id)
            self._tokens.save(response.access_token, response.refresh_token)
        except AuthorizationError as e:
            self._tracker.track_event("login_failed", {"code": e.code})
            self.emit(AuthError(e.message))
            return
        except NetworkError as e:
            self._tracker.track_error(e, {"operation": "login"})
            self.emit(AuthError("Unable to reach the server. Check your connection."))
            return
        except Exception as e:
            logger.exception("Unexpected login failure")
            self._tracker.track_error(e, {"operation": "login"})
            self.emit(AuthError("Login failed. Please try again."))
            return

        self._tracker.track_event("login_success", {"user_id": response.user.id})
        self.emit(AuthAuthenticated(response.user))

    async def _on_logout(self, event: LogoutRequested) -> None:
        tokens = self._tokens.read()
        if tokens is not None:
            try:
                await self._api.logout(tokens.refresh_token)
            except Exception as e:
                # Best-effort: the local session ends regardless
                logger.info(f"Logout call failed: {type(e).__name__}")
        self._clear_session()
        self._tracker.track_event("logout", None)
        self.emit(AuthUnauthenticated())

    async def _on_token_refresh(self, event: TokenRefreshRequested) -> None:
        tokens = self._tokens.read()
        if tokens is None or not tokens.refresh_token:
            self._clear_session()
            self.emit(AuthUnauthenticated())
            return

        try:
            user = await self._refresh(tokens)
        except Exception as e:
            logger.info(f"Background token refresh failed: {type(e).__name__}")
            self._tracker.track_error(e, {"operation": "token_refresh"})
            self._clear_session()
            self.emit(AuthUnauthenticated())
            return

        self.emit(AuthAuthenticated(user))
