"""shdw-cli - Shadow Drive storage account and upload tool.

Signs in with an Ed25519 keypair and runs storage commands behind a
confirmation gate.
"""

__version__ = "0.1.0"

from .client import SignInClient, parse_account_id_from_url, resolve_auth_token, sign_in
from .commands import ChunkFailurePolicy, Dispatcher, chunked, wait_for_user_confirmation
from .config import AutoSignIn, LiteralToken, ServiceConfig, SolanaCliConfig, parse_auth_mode
from .drive import acquire_basename, drive_url, get_text, is_text_response, parse_filesize
from .signing import (
    KeypairSigner,
    Pubkey,
    Signer,
    generate_keypair,
    load_keypair,
    signer_from_path,
)
from .storage import (
    ShadowDriveServerError,
    StorageAccountVersion,
    StorageClient,
    StorageClientError,
    process_api_response,
)
from .types import (
    AccountIdError,
    ApiOtherError,
    ApiServerError,
    BasenameError,
    BatchUploadError,
    ConfigError,
    ConfirmationAborted,
    HandshakeError,
    ShadowFile,
    ShdwError,
    SignerResolutionError,
    SigningError,
    ValidationError,
)

__all__ = [
    # Sign-in
    "SignInClient",
    "sign_in",
    "parse_account_id_from_url",
    "resolve_auth_token",
    # Dispatch
    "Dispatcher",
    "ChunkFailurePolicy",
    "chunked",
    "wait_for_user_confirmation",
    # Configuration
    "ServiceConfig",
    "SolanaCliConfig",
    "AutoSignIn",
    "LiteralToken",
    "parse_auth_mode",
    # Drive helpers
    "acquire_basename",
    "drive_url",
    "get_text",
    "is_text_response",
    "parse_filesize",
    # Signing
    "Signer",
    "KeypairSigner",
    "Pubkey",
    "generate_keypair",
    "load_keypair",
    "signer_from_path",
    # Storage client
    "StorageClient",
    "StorageClientError",
    "ShadowDriveServerError",
    "StorageAccountVersion",
    "process_api_response",
    # Errors
    "ShdwError",
    "ConfigError",
    "SignerResolutionError",
    "SigningError",
    "HandshakeError",
    "AccountIdError",
    "ApiServerError",
    "ApiOtherError",
    "ValidationError",
    "BasenameError",
    "ConfirmationAborted",
    "BatchUploadError",
    "ShadowFile",
]
