"""
Keycloak identity provider adapter - Implements IdentityProvider protocol.

Talks to a Keycloak-compatible OpenID Connect server over HTTP using a
shared httpx.Client. Token operations use the realm's OIDC endpoints;
identity management uses the admin REST API with a client-credentials
admin token.

Status mapping:
- create: 201 -> CREATED, 409 -> CONFLICT, anything else -> error
- delete: 2xx -> DELETED, 404 -> NOT_FOUND, anything else -> error
- token:  400/401 -> AuthenticationRejected, other non-2xx -> error

Every httpx transport error (connect failure, timeout) is converted into
IdentityProviderError so callers only ever see domain exceptions.
"""

import logging
from typing import Any

import httpx

from src.domain.exceptions import AuthenticationRejected, IdentityProviderError
from src.domain.models import IdentityRecord, TokenIntrospection, TokenSet
from src.domain.ports import IdentityCreation, IdentityDeletion

logger = logging.getLogger(__name__)


class KeycloakIdentityProvider:
    """
    Implements IdentityProvider protocol via the Keycloak REST API.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Holds no credential between calls; every admin operation receives
    the credential it should use.
    """

    def __init__(
        self,
        client: httpx.Client,
        realm: str,
        client_id: str,
        client_secret: str,
    ) -> None:
        """
        Initialize adapter.

        Args:
            client: httpx.Client whose base_url points at the Keycloak server
                and whose timeout bounds every call
            realm: Realm holding the gateway's users
            client_id: Confidential client used for token grants
            client_secret: Secret of that client
        """
        self._client = client
        self._realm = realm
        self._client_id = client_id
        self._client_secret = client_secret

    @property
    def _oidc_path(self) -> str:
        return f"/realms/{self._realm}/protocol/openid-connect"

    @property
    def _users_path(self) -> str:
        return f"/admin/realms/{self._realm}/users"

    def fetch_admin_credential(self) -> TokenSet:
        """Obtain an admin token with the client-credentials grant."""
        try:
            return self._token_request({"grant_type": "client_credentials"})
        except AuthenticationRejected as exc:
            # Rejected client credentials are a gateway misconfiguration
            raise IdentityProviderError(
                f"admin credential rejected: {exc.detail}", exc.status_code
            ) from exc

    def create_identity(self, credential: TokenSet, identity: IdentityRecord) -> IdentityCreation:
        response = self._send(
            "POST",
            self._users_path,
            json=_identity_payload(identity),
            headers={"Authorization": credential.authorization_header},
        )
        if response.status_code == httpx.codes.CREATED:
            logger.info("Identity created provider-side: %s", identity.username)
            return IdentityCreation.CREATED
        if response.status_code == httpx.codes.CONFLICT:
            return IdentityCreation.CONFLICT
        raise _unexpected(response, "create identity")

    def delete_identity(self, credential: TokenSet, provider_id: str) -> IdentityDeletion:
        response = self._send(
            "DELETE",
            f"{self._users_path}/{provider_id}",
            headers={"Authorization": credential.authorization_header},
        )
        if response.is_success:
            return IdentityDeletion.DELETED
        if response.status_code == httpx.codes.NOT_FOUND:
            return IdentityDeletion.NOT_FOUND
        raise _unexpected(response, "delete identity")

    def find_identity_by_username(self, credential: TokenSet, username: str) -> str | None:
        """
        Resolve an identity id with an exact username search.

        Keycloak stores usernames lowercased, so the comparison on the
        returned entries is case-insensitive.
        """
        response = self._send(
            "GET",
            self._users_path,
            params={"username": username, "exact": "true"},
            headers={"Authorization": credential.authorization_header},
        )
        if not response.is_success:
            raise _unexpected(response, "find identity")
        for entry in _json(response):
            if str(entry.get("username", "")).lower() == username.lower():
                return entry.get("id")
        return None

    def issue_user_token(self, username: str, password: str) -> TokenSet:
        return self._token_request(
            {"grant_type": "password", "username": username, "password": password}
        )

    def refresh_user_token(self, refresh_token: str) -> TokenSet:
        return self._token_request({"grant_type": "refresh_token", "refresh_token": refresh_token})

    def introspect_token(self, token: str) -> TokenIntrospection:
        response = self._send(
            "POST",
            f"{self._oidc_path}/token/introspect",
            data={"token": token, **self._client_form()},
        )
        if not response.is_success:
            raise _unexpected(response, "introspect token")
        claims = _json(response)
        return TokenIntrospection(
            active=bool(claims.get("active", False)),
            subject=claims.get("sub"),
            username=claims.get("preferred_username") or claims.get("username"),
            claims=claims,
        )

    def revoke_refresh_token(self, refresh_token: str) -> None:
        response = self._send(
            "POST",
            f"{self._oidc_path}/logout",
            data={"refresh_token": refresh_token, **self._client_form()},
        )
        if not response.is_success:
            raise _unexpected(response, "logout")

    def _token_request(self, form: dict[str, str]) -> TokenSet:
        response = self._send(
            "POST",
            f"{self._oidc_path}/token",
            data={**form, **self._client_form()},
        )
        if response.status_code in (httpx.codes.BAD_REQUEST, httpx.codes.UNAUTHORIZED):
            raise AuthenticationRejected(
                f"token request rejected ({form['grant_type']})", response.status_code
            )
        if not response.is_success:
            raise _unexpected(response, "token request")
        body = _json(response)
        if not body.get("access_token"):
            raise IdentityProviderError("token response without access_token", response.status_code)
        return TokenSet(
            access_token=body["access_token"],
            token_type=body.get("token_type", "Bearer"),
            expires_in=body.get("expires_in"),
            refresh_token=body.get("refresh_token"),
            refresh_expires_in=body.get("refresh_expires_in"),
            scope=body.get("scope"),
        )

    def _client_form(self) -> dict[str, str]:
        return {"client_id": self._client_id, "client_secret": self._client_secret}

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Identity provider timed out: %s %s", method, url)
            raise IdentityProviderError(f"identity provider timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.error("Identity provider unreachable: %s %s", method, url)
            raise IdentityProviderError(f"identity provider unreachable: {exc}") from exc


def _identity_payload(identity: IdentityRecord) -> dict[str, Any]:
    """Keycloak UserRepresentation for a new identity."""
    return {
        "username": identity.username,
        "email": identity.email,
        "firstName": identity.first_name,
        "lastName": identity.last_name,
        "enabled": identity.enabled,
        "emailVerified": identity.email_verified,
        "credentials": [
            {"type": c.type, "value": c.value, "temporary": c.temporary}
            for c in identity.credentials
        ],
    }


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise IdentityProviderError("identity provider returned invalid JSON", response.status_code) from exc


def _unexpected(response: httpx.Response, operation: str) -> IdentityProviderError:
    logger.error("Identity provider %s failed with status %s", operation, response.status_code)
    return IdentityProviderError(
        f"{operation} failed with status {response.status_code}", response.status_code
    )
