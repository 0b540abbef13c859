"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory domain ports (see tests/fakes.py)
- A canonical registration request
"""

import pytest

from src.domain.models import RegistrationRequest
from tests.fakes import FakeIdentityProvider, InMemoryUserStore, RecordingEmailSender


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    return InMemoryUserStore()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture
def alice() -> RegistrationRequest:
    """The registration used in most scenarios."""
    return RegistrationRequest(
        username="alice",
        email="alice@x.com",
        password="Secret123",
        first_name="Alice",
        last_name="Liddell",
        country="RS",
    )
