"""Google Drive backend: token lifecycle, authorized requests, file operations."""

from .client import CloudFileClient, RemoteError, RemoteFileReference, parse_identifier, view_link
from .executor import AuthorizedRequestExecutor, DriveRequest, NetworkError, ResponseTooLarge, read_body
from .tokens import AccessToken, AuthError, ProviderUnavailable, TokenGrant, TokenManager

__all__ = [
    "AccessToken",
    "AuthError",
    "AuthorizedRequestExecutor",
    "CloudFileClient",
    "DriveRequest",
    "NetworkError",
    "ProviderUnavailable",
    "RemoteError",
    "RemoteFileReference",
    "ResponseTooLarge",
    "TokenGrant",
    "TokenManager",
    "parse_identifier",
    "read_body",
    "view_link",
]
