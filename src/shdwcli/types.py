"""Type definitions for shdw-cli."""

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


@dataclass
class ShadowDriveUser:
    """User record embedded in the first sign-in response."""

    id: int
    public_key: str
    created_at: str
    updated_at: str


@dataclass
class SignInChallenge:
    """Body of the first sign-in request.

    ``message`` is the base-58 signature over the fixed sign-in message,
    ``signer`` the address that produced it.
    """

    message: str
    signer: str

    def to_json(self) -> dict:
        return {"message": self.message, "signer": self.signer}


@dataclass
class SignInResponse:
    """Intermediate token returned by the first sign-in step."""

    token: str
    user: ShadowDriveUser


@dataclass
class TokenResponse:
    """Final bearer token returned by the second sign-in step."""

    token: str


@dataclass(frozen=True)
class ShadowFile:
    """A local file to upload under a remote name."""

    name: str
    path: str


class ShdwError(Exception):
    """Base exception for all shdw-cli errors."""


class ConfigError(ShdwError):
    """Invalid or unreadable configuration."""


class SignerResolutionError(ShdwError):
    """A usable signer could not be obtained from local configuration."""


class SigningError(ShdwError):
    """The signer failed to produce a signature."""


class HandshakeError(ShdwError):
    """Sign-in handshake failed (network, non-2xx, invalid JSON)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: str = "",
        detail: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.endpoint = endpoint
        self.detail = detail
        super().__init__(message)


class AccountIdError(ShdwError):
    """Account ID could not be derived from the RPC URL."""


class ApiServerError(ShdwError):
    """Storage service reported an error with a human-readable message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ApiOtherError(ShdwError):
    """Any other storage client failure, carrying its full representation."""

    def __init__(self, representation: str):
        self.representation = representation
        super().__init__(representation)


class ValidationError(ShdwError):
    """A remote resource did not have the expected shape."""


class DriveRequestError(ShdwError):
    """HTTP failure while reading a file from the drive."""


class BasenameError(ShdwError):
    """A file path has no usable final component."""


class ConfirmationAborted(ShdwError):
    """The user declined to continue at the confirmation prompt."""


class BatchUploadError(ShdwError):
    """One or more upload chunks failed when collecting errors.

    ``failures`` holds ``(chunk_index, error)`` pairs; ``results`` the
    payloads of the chunks that succeeded.
    """

    def __init__(
        self,
        failures: List[Tuple[int, ShdwError]],
        results: Optional[List[Any]] = None,
    ):
        self.failures = failures
        self.results = results or []
        indices = ", ".join(str(index) for index, _ in failures)
        super().__init__(f"{len(failures)} upload chunk(s) failed: {indices}")
