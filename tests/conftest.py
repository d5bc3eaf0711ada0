"""Shared fixtures: stub Google API clients and a credential store around them."""

from unittest.mock import MagicMock, Mock

import pytest
from googleapiclient.errors import HttpError


def make_http_error(status: int = 404, message: str = "File not found") -> HttpError:
    """Build the HttpError googleapiclient raises for a failed request."""
    resp = Mock(status=status, reason="Error")
    content = ('{"error": {"code": %d, "message": "%s"}}' % (status, message)).encode("utf-8")
    return HttpError(resp, content)


@pytest.fixture
def clients():
    """Stub for GoogleClients; set return values on its drive/sheets chains."""
    return MagicMock(name="GoogleClients")


@pytest.fixture
def client_factory(clients):
    """Client factory recording every token it is asked to bind."""
    return MagicMock(name="client_factory", return_value=clients)


@pytest.fixture
def credentials(client_factory):
    from gdrive_server.credentials import CredentialStore

    return CredentialStore(client_factory=client_factory)


@pytest.fixture
def http_error():
    """Factory fixture for googleapiclient HttpError instances."""
    return make_http_error
