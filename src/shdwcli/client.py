"""Sign-in client for the Shadow Drive platform.

Exchanges an Ed25519 signature over a fixed message for a bearer token
scoped to one account, in two mandatory steps.
"""

import json as jsonlib
import logging
from typing import Optional

import httpx

from .config import AuthMode, AutoSignIn, LiteralToken, ServiceConfig
from .signing import Signer, encode_signature
from .types import (
    AccountIdError,
    HandshakeError,
    ShadowDriveUser,
    SignInChallenge,
    SignInResponse,
    TokenResponse,
)

_logger = logging.getLogger(__name__)


class SignInClient:
    """Client for the two-step sign-in handshake.

    Usage:
        async with SignInClient() as client:
            token = await client.sign_in(signer, account_id)
    """

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the sign-in client.

        Args:
            config: Service endpoints (default: ServiceConfig())
            http_client: Shared httpx client; one without timeouts is
                created and owned otherwise
        """
        self.config = config or ServiceConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=None)

    # -------------------------------------------------------------------------
    # Handshake
    # -------------------------------------------------------------------------

    def build_challenge(self, signer: Signer) -> SignInChallenge:
        """Sign the fixed sign-in message and build the step-1 body."""
        signature = signer.sign_message(self.config.signin_message.encode())
        return SignInChallenge(
            message=encode_signature(signature),
            signer=str(signer.pubkey()),
        )

    async def request_intermediate_token(self, signer: Signer) -> SignInResponse:
        """Step 1: submit the signed challenge for an intermediate token."""
        challenge = self.build_challenge(signer)
        data = await self._request(self.config.signin_url, json=challenge.to_json())
        try:
            user = data["user"]
            return SignInResponse(
                token=_require_str(data, "token"),
                user=ShadowDriveUser(
                    id=int(user["id"]),
                    public_key=_require_str(user, "publicKey"),
                    created_at=_require_str(user, "createdAt"),
                    updated_at=_require_str(user, "updatedAt"),
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise HandshakeError(
                f"Unexpected sign-in response shape: {exc}",
                endpoint=self.config.signin_url,
            ) from exc

    async def request_token(self, intermediate: SignInResponse, account_id: str) -> TokenResponse:
        """Step 2: trade the intermediate token for an account bearer token."""
        url = self.config.premium_token_url + "/" + account_id
        data = await self._request(url, bearer=intermediate.token)
        try:
            return TokenResponse(token=_require_str(data, "token"))
        except (KeyError, TypeError, ValueError) as exc:
            raise HandshakeError(
                f"Unexpected token response shape: {exc}",
                endpoint=url,
            ) from exc

    async def sign_in(self, signer: Signer, account_id: str) -> str:
        """Run the full handshake.

        Args:
            signer: Key holder proving ownership
            account_id: Routing id from parse_account_id_from_url()

        Returns:
            Bearer token for authenticated storage calls.

        Raises:
            HandshakeError: If either step fails. No token is returned
                on partial success.
        """
        _logger.debug("Signing in as %s", signer.pubkey())
        intermediate = await self.request_intermediate_token(signer)
        _logger.debug("Intermediate token issued for user %s", intermediate.user.id)
        final = await self.request_token(intermediate, account_id)
        _logger.debug("Bearer token issued for account %s", account_id)
        return final.token

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    async def _request(
        self,
        url: str,
        json: Optional[dict] = None,
        bearer: Optional[str] = None,
    ) -> dict:
        """POST JSON to a sign-in endpoint and decode the JSON reply."""
        headers = {"Content-Type": "application/json"}
        if bearer is not None:
            headers["Authorization"] = f"Bearer {bearer}"
        body = jsonlib.dumps(json).encode() if json is not None else None

        _logger.debug("POST %s", url)
        try:
            response = await self._client.post(url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise HandshakeError(f"Request to {url} failed: {exc}", endpoint=url) from exc

        if not response.is_success:
            self._handle_error(response, url)

        try:
            data = response.json()
        except ValueError as exc:
            raise HandshakeError(
                f"Invalid JSON from {url}: {response.text[:200]}",
                status_code=response.status_code,
                endpoint=url,
            ) from exc

        if not isinstance(data, dict):
            raise HandshakeError(
                f"Expected a JSON object from {url}",
                status_code=response.status_code,
                endpoint=url,
            )
        return data

    def _handle_error(self, response: httpx.Response, url: str) -> None:
        """Raise a HandshakeError for a non-2xx response."""
        try:
            data = response.json()
            detail = data.get("message") or data.get("error") or str(data)
        except Exception:
            detail = response.text

        messages = {
            400: "Bad request",
            401: "Signature rejected",
            403: "Account not accessible",
            404: "Not found",
            429: "Rate limit exceeded",
        }
        message = messages.get(response.status_code, f"HTTP {response.status_code}")
        raise HandshakeError(
            f"Sign-in failed at {url}: {message}",
            status_code=response.status_code,
            endpoint=url,
            detail=detail,
        )

    async def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _require_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str):
        raise TypeError(f"'{key}' must be a string")
    return value


async def sign_in(
    signer: Signer,
    account_id: str,
    config: Optional[ServiceConfig] = None,
) -> str:
    """Run the sign-in handshake with a one-shot client."""
    async with SignInClient(config) as client:
        return await client.sign_in(signer, account_id)


def parse_account_id_from_url(url: str, config: Optional[ServiceConfig] = None) -> str:
    """Derive the account id from a service RPC URL.

    The id is the last non-empty ``/``-separated segment, so a trailing
    slash is ignored.

    Raises:
        AccountIdError: If the URL does not belong to the service or has
            no segment to use.
    """
    config = config or ServiceConfig()
    if config.domain_marker not in url:
        raise AccountIdError(
            f"Not a {config.domain_marker} URL, cannot infer Account ID: {url}"
        )
    segments = [piece for piece in url.split("/") if piece]
    if not segments:
        raise AccountIdError(f"Could not parse {config.domain_marker} URL: {url}")
    return segments[-1]


async def resolve_auth_token(
    auth_mode: Optional[AuthMode],
    signer: Signer,
    rpc_url: str,
    config: Optional[ServiceConfig] = None,
) -> Optional[str]:
    """Turn an auth mode into the bearer token passed to storage calls."""
    if auth_mode is None:
        return None
    if isinstance(auth_mode, LiteralToken):
        return auth_mode.token
    if isinstance(auth_mode, AutoSignIn):
        account_id = parse_account_id_from_url(rpc_url, config)
        return await sign_in(signer, account_id, config)
    raise TypeError(f"Unknown auth mode: {auth_mode!r}")
