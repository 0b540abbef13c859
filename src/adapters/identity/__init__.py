"""Identity provider adapters - Keycloak implementation."""

from .keycloak import KeycloakIdentityProvider

__all__ = ["KeycloakIdentityProvider"]
