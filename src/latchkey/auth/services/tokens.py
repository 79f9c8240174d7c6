"""Token endpoint client.

Implements the RFC 6749 token endpoint interactions: authorization code
exchange with the PKCE verifier (RFC 7636) and refresh token grants.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from latchkey.auth.models.errors import TokenError, TokenResponseError
from latchkey.auth.models.tokens import (
    RefreshTokenRequest,
    TokenRequest,
    TokenResponse,
)

logger = logging.getLogger(__name__)


class OAuth2TokenManager:
    """Performs the wire exchanges against the provider's token endpoint.

    Handles:
    - Authorization code to access token exchange (RFC 6749 Section 4.1.3)
    - Access token refresh (RFC 6749 Section 6)

    Uses application/x-www-form-urlencoded encoding as the RFC requires. No
    token state is touched here; callers decide what to do with the result.
    """

    def __init__(self, timeout: float = 30.0):
        """Initialize the token endpoint client.

        Args:
            timeout: HTTP request timeout in seconds
        """
        self.timeout = timeout
        self._http_client = httpx.AsyncClient(timeout=timeout)

    async def exchange_code_for_token(
        self, token_request: TokenRequest
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Args:
            token_request: Token exchange request parameters

        Returns:
            TokenResponse: Success, or the provider's error with its status

        Raises:
            TokenError: On network failure
            TokenResponseError: On a success status with a malformed body
        """
        logger.debug(f"Exchanging authorization code at {token_request.token_endpoint}")
        form_data = token_request.to_form_data()
        logger.debug(
            f"Token request: grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}, "
            f"redirect_uri={form_data['redirect_uri']}"
        )
        return await self._post(token_request.token_endpoint, form_data, "token exchange")

    async def refresh_access_token(
        self, refresh_request: RefreshTokenRequest
    ) -> TokenResponse:
        """Refresh an access token using a refresh token.

        Args:
            refresh_request: Refresh token request parameters

        Returns:
            TokenResponse: Success, or the provider's error with its status

        Raises:
            TokenError: On network failure
            TokenResponseError: On a success status with a malformed body
        """
        logger.debug(f"Refreshing access token at {refresh_request.token_endpoint}")
        form_data = refresh_request.to_form_data()
        logger.debug(f"Refresh request: client_id={form_data['client_id']}")
        return await self._post(refresh_request.token_endpoint, form_data, "token refresh")

    async def _post(
        self, token_endpoint: str, form_data: dict[str, str], operation: str
    ) -> TokenResponse:
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

        try:
            response = await self._http_client.post(
                token_endpoint,
                data=form_data,
                headers=headers,
            )
        except httpx.HTTPError as e:
            raise TokenError(f"HTTP error during {operation}: {e}") from e

        try:
            return self._parse_token_response(response)
        except TokenError:
            raise
        except Exception as e:
            raise TokenError(f"Unexpected error during {operation}: {e}") from e

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Parse a token endpoint response into a TokenResponse.

        Non-2xx statuses become error TokenResponses (RFC 6749 Section 5.2)
        even when the body is not JSON. A 2xx body that cannot be parsed, or
        lacks ``access_token`` or ``expires_in``, is an error, not a success.

        Raises:
            TokenResponseError: If a success response is malformed
        """
        status_code = response.status_code
        is_success_status = 200 <= status_code < 300

        try:
            response_data: Any = response.json()
        except ValueError as e:
            if is_success_status:
                raise TokenResponseError(
                    f"Token endpoint returned an unparsable body: {response.text}"
                ) from e
            response_data = {}

        if not isinstance(response_data, dict):
            if is_success_status:
                raise TokenResponseError(
                    f"Token endpoint returned a non-object body: {response.text}"
                )
            response_data = {}

        if not is_success_status:
            # Error response (RFC 6749 Section 5.2)
            logger.error(f"Token endpoint returned {status_code}: {response.text}")
            return TokenResponse(
                status_code=status_code,
                error=str(response_data.get("error") or "unknown_error"),
                error_description=response_data.get("error_description"),
                error_uri=response_data.get("error_uri"),
            )

        # Successful token response (RFC 6749 Section 5.1)
        if not response_data.get("access_token"):
            logger.error(f"Token response missing access_token: {response.text}")
            raise TokenResponseError("Token response missing required access_token")
        if response_data.get("expires_in") is None:
            logger.error(f"Token response missing expires_in: {response.text}")
            raise TokenResponseError("Token response missing required expires_in")

        try:
            token_response = TokenResponse.model_validate(
                {**response_data, "status_code": status_code}
            )
        except ValidationError as e:
            raise TokenResponseError(f"Invalid token response format: {e}") from e

        logger.info("Token endpoint request successful")
        return token_response

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
