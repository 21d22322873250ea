"""Transport to the Human Pages backend."""

from humanpages.client.credentials import Credential
from humanpages.client.http import BackendClient

__all__ = ["BackendClient", "Credential"]
