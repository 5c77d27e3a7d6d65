"""Storage client interface and response normalization.

The storage client itself lives outside this package; shdw-cli only
consumes the operations listed in :class:`StorageClient`.
"""

import enum
import importlib
import logging
from typing import Any, Awaitable, Callable, List, Optional, Protocol, TypeVar

import click
import httpx

from .signing import Pubkey, Signer
from .types import ApiOtherError, ApiServerError, ConfigError, ShadowFile

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageAccountVersion(enum.Enum):
    V1 = "v1"
    V2 = "v2"


class StorageClientError(Exception):
    """Base class for errors raised by storage client implementations."""


class ShadowDriveServerError(StorageClientError):
    """The storage service answered with an error message."""

    def __init__(self, message: str, status: Optional[int] = None):
        self.message = message
        self.status = status
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ShadowDriveServerError(status={self.status!r}, message={self.message!r})"


class StorageClient(Protocol):
    """Async operations consumed from the storage client library."""

    async def create_storage_account(
        self, name: str, size: str, version: StorageAccountVersion
    ) -> Any: ...

    async def delete_storage_account(self, storage_account: Pubkey) -> Any: ...

    async def cancel_delete_storage_account(self, storage_account: Pubkey) -> Any: ...

    async def claim_stake(self, storage_account: Pubkey) -> Any: ...

    async def reduce_storage(self, storage_account: Pubkey, size: str) -> Any: ...

    async def add_storage(self, storage_account: Pubkey, size: str) -> Any: ...

    async def add_immutable_storage(self, storage_account: Pubkey, size: str) -> Any: ...

    async def make_storage_immutable(self, storage_account: Pubkey) -> Any: ...

    async def get_storage_account(self, storage_account: Pubkey) -> Any: ...

    async def get_storage_accounts(self, owner: Pubkey) -> Any: ...

    async def list_objects(self, storage_account: Pubkey) -> Any: ...

    async def delete_file(self, storage_account: Pubkey, url: str) -> Any: ...

    async def edit_file(self, storage_account: Pubkey, file: ShadowFile) -> Any: ...

    async def get_object_data(self, url: str) -> Any: ...

    async def store_files(self, storage_account: Pubkey, files: List[ShadowFile]) -> Any: ...


StorageClientFactory = Callable[[Signer, str, Optional[str]], StorageClient]


def load_client_factory(spec: str) -> StorageClientFactory:
    """Import a storage client factory from ``"package.module:attribute"``.

    The factory is called as ``factory(signer, rpc_url, auth_token)``.

    Raises:
        ConfigError: If the spec is malformed or cannot be imported.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(f"Storage client must look like 'module:factory', got {spec!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"Could not import storage client module {module_name!r}: {exc}") from exc
    try:
        factory = getattr(module, attr)
    except AttributeError:
        raise ConfigError(f"Module {module_name!r} has no attribute {attr!r}")
    if not callable(factory):
        raise ConfigError(f"Storage client factory {spec!r} is not callable")
    return factory


async def process_api_response(call: Awaitable[T]) -> T:
    """Await a storage call and normalize its failure.

    Server-reported errors are printed and re-raised as ApiServerError
    with exactly the server's message. Any other client failure is printed
    in full and re-raised as ApiOtherError.
    """
    try:
        return await call
    except ShadowDriveServerError as err:
        click.echo(err.message)
        raise ApiServerError(err.message) from err
    except (StorageClientError, httpx.HTTPError) as err:
        representation = repr(err)
        click.echo(representation)
        _logger.debug("Storage call failed", exc_info=True)
        raise ApiOtherError(representation) from err
