"""Authorization flow orchestration.

Drives one complete authorization code + PKCE attempt: builds the
authorization URL, runs the loopback listener, opens the browser, validates
the callback, and exchanges the code for tokens.
"""

from __future__ import annotations

import asyncio
import logging
from functools import partial

from latchkey.auth.models.codes import ErrorCode
from latchkey.auth.models.errors import (
    AuthorizationInProgressError,
    OperationCancelledError,
    TokenError,
)
from latchkey.auth.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    CallbackResult,
)
from latchkey.auth.models.outcome import AuthOutcome
from latchkey.auth.models.security import PKCEParameters
from latchkey.auth.models.tokens import TokenRequest
from latchkey.auth.primitives.cancellation import run_cancellable
from latchkey.auth.primitives.pkce import PKCEManager
from latchkey.auth.services.browser import BrowserLauncher, SystemBrowserLauncher
from latchkey.auth.services.listener import LoopbackListener
from latchkey.auth.services.security import validate_state
from latchkey.auth.services.store import TokenStore
from latchkey.auth.services.tokens import OAuth2TokenManager
from latchkey.config import OAuthSettings

logger = logging.getLogger(__name__)


class OAuth2FlowManager:
    """Orchestrates interactive authorization code flows.

    Handles the complete authorization flow:
    - PKCE parameter and state generation, fresh per attempt
    - Authorization URL construction
    - Loopback listener lifecycle and browser launch
    - Callback validation (state first, then provider error, then code)
    - Authorization code exchange and token persistence

    One attempt may be in flight per instance.
    """

    def __init__(
        self,
        settings: OAuthSettings,
        token_manager: OAuth2TokenManager,
        store: TokenStore,
        browser_launcher: BrowserLauncher | None = None,
        pkce_manager: PKCEManager | None = None,
    ):
        self._settings = settings
        self._token_manager = token_manager
        self._store = store
        self._browser_launcher = browser_launcher or SystemBrowserLauncher()
        self._pkce_manager = pkce_manager or PKCEManager()
        self._in_progress = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    def build_authorization_request(
        self, pkce_params: PKCEParameters, state: str
    ) -> AuthorizationRequest:
        return AuthorizationRequest(
            authorization_endpoint=self._settings.authorization_endpoint,
            client_id=self._settings.client_id,
            redirect_uri=self._settings.redirect_uri,
            code_challenge=pkce_params.code_challenge,
            code_challenge_method=pkce_params.code_challenge_method,
            state=state,
            scope=self._settings.scope,
        )

    async def authenticate(
        self, cancel_event: asyncio.Event | None = None
    ) -> AuthOutcome:
        """Run one interactive authorization attempt.

        Failures are returned as a failed AuthOutcome, never raised. If the
        calling task itself is cancelled, the listener is torn down and the
        cancellation propagates.

        Args:
            cancel_event: Setting this event aborts the attempt with a
                ``cancelled`` outcome

        Returns:
            AuthOutcome: Succeeded once tokens are stored, otherwise Failed

        Raises:
            AuthorizationInProgressError: If another attempt is still running
        """
        if self.in_progress:
            raise AuthorizationInProgressError(
                "An authorization attempt is already in progress"
            )

        self._in_progress = True
        try:
            return await self._run_attempt(cancel_event)
        finally:
            self._in_progress = False

    async def _run_attempt(self, cancel_event: asyncio.Event | None) -> AuthOutcome:
        logger.info("Starting OAuth authorization code flow")

        listener: LoopbackListener | None = None
        try:
            pkce_params = self._pkce_manager.generate_parameters()
            state = self._pkce_manager.generate_state()
            authorization_url = self.build_authorization_request(
                pkce_params, state
            ).build_authorization_url()

            listener = LoopbackListener(
                self._settings.redirect_uri,
                partial(self.evaluate_callback, expected_state=state),
            )
            await listener.start()
            self._open_browser(authorization_url)

            logger.info("Waiting for the authorization callback...")
            callback = await run_cancellable(
                listener.wait_for_callback(),
                cancel_event,
                timeout=self._settings.callback_timeout_seconds,
            )

            # The browser already has its page; nothing else may arrive
            await listener.stop()

            if callback.outcome is not None:
                return callback.outcome

            exchanged = await run_cancellable(
                self.exchange_code(callback.code, pkce_params.code_verifier),
                cancel_event,
            )
            if exchanged:
                logger.info("OAuth authorization completed")
                return AuthOutcome.succeeded()
            return AuthOutcome.failed(
                ErrorCode.TOKEN_EXCHANGE_FAILED,
                "Could not obtain access tokens for the authorization code",
            )

        except OperationCancelledError:
            logger.warning("OAuth authorization cancelled")
            return AuthOutcome.failed(
                ErrorCode.CANCELLED, "Authorization was cancelled by the user"
            )
        except asyncio.TimeoutError:
            logger.warning(
                "OAuth authorization timed out after "
                f"{self._settings.callback_timeout_seconds}s"
            )
            return AuthOutcome.failed(
                ErrorCode.TIMEOUT, "Timed out waiting for the authorization callback"
            )
        except Exception as e:
            logger.error(f"Error during OAuth authorization: {e}")
            return AuthOutcome.failed(ErrorCode.UNKNOWN, str(e))
        finally:
            if listener is not None:
                await listener.stop()

    def evaluate_callback(
        self, callback_url: str, expected_state: str
    ) -> CallbackResult:
        """Decide what one callback means for the attempt.

        State is validated before anything else so a forged or stale
        redirect is rejected outright. A provider ``error`` wins over any
        ``code`` sent alongside it.

        Args:
            callback_url: Full URL the browser was redirected to
            expected_state: State nonce issued for this attempt

        Returns:
            CallbackResult: The code to exchange, or the terminal failure
        """
        response = AuthorizationResponse.from_callback_url(callback_url)

        if not validate_state(expected_state, response.state):
            logger.error("OAuth state parameter mismatch - possible CSRF or stale redirect")
            return CallbackResult.rejected(
                AuthOutcome.failed(
                    ErrorCode.STATE_MISMATCH,
                    "The state returned by the provider does not match the request",
                )
            )

        if response.is_error():
            error_code = ErrorCode.parse(response.error)
            logger.error(
                f"Authorization callback contained error: {response.error} - "
                f"{response.error_description}"
            )
            return CallbackResult.rejected(
                AuthOutcome.failed(
                    error_code,
                    response.error_description or response.error,
                    provider_error=(
                        response.error if error_code is ErrorCode.UNKNOWN else None
                    ),
                )
            )

        if not response.code:
            logger.error("Authorization callback missing both code and error")
            return CallbackResult.rejected(
                AuthOutcome.failed(
                    ErrorCode.NO_CODE, "No authorization code received from the provider"
                )
            )

        logger.info("Authorization callback successful - received authorization code")
        return CallbackResult.accepted(response.code)

    async def exchange_code(self, code: str, code_verifier: str) -> bool:
        """Exchange an authorization code and store the resulting tokens.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier generated for the same attempt

        Returns:
            True once tokens are stored; False on any failure, with the
            token record left untouched
        """
        token_request = TokenRequest(
            token_endpoint=self._settings.token_endpoint,
            code=code,
            redirect_uri=self._settings.redirect_uri,
            client_id=self._settings.client_id,
            client_secret=self._settings.client_secret,
            code_verifier=code_verifier,
        )

        try:
            token_response = await self._token_manager.exchange_code_for_token(
                token_request
            )
        except TokenError as e:
            logger.error(f"Error exchanging authorization code for tokens: {e}")
            return False

        if not token_response.is_success():
            logger.error(
                f"Token exchange failed with {token_response.status_code}: "
                f"{token_response.error} - {token_response.error_description}"
            )
            return False

        await self._store.save_response(token_response)
        logger.info("Access tokens obtained")
        return True

    def _open_browser(self, authorization_url: str) -> None:
        logger.info(f"Opening browser for authorization: {authorization_url}")
        try:
            self._browser_launcher.open(authorization_url)
        except Exception as e:
            logger.warning(
                f"Failed to open browser: {e}. Open the URL above manually."
            )
