"""Commands and the dispatcher that runs them.

Irreversible commands pass through a confirmation gate first. File uploads
are split into ordered chunks, uploaded one after another.
"""

import abc
import dataclasses
import enum
import logging
import sys
from pprint import pformat
from typing import Any, Callable, ClassVar, Iterator, List, Optional, Sequence, Tuple, TypeVar

import click
import httpx

from .config import ServiceConfig
from .drive import acquire_basename, drive_url, get_text, last_modified
from .signing import Pubkey, Signer
from .storage import StorageAccountVersion, StorageClient, process_api_response
from .types import (
    ApiOtherError,
    ApiServerError,
    BatchUploadError,
    ConfirmationAborted,
    ShadowFile,
    ShdwError,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")

UPLOAD_WARNING = (
    "WARNING: This CLI does not add any encryption on its own. "
    "The files in their current state become public as soon as they're uploaded."
)


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------


@dataclasses.dataclass(frozen=True)
class Command(abc.ABC):
    """One user-requested operation."""

    requires_confirmation: ClassVar[bool] = True

    @abc.abstractmethod
    def describe(self) -> str:
        """One-line summary shown before the command runs."""


@dataclasses.dataclass(frozen=True)
class CreateStorageAccount(Command):
    name: str
    size: str
    version: StorageAccountVersion = StorageAccountVersion.V2

    def describe(self) -> str:
        return f"Create Storage Account {self.name}: {self.size}"


@dataclasses.dataclass(frozen=True)
class DeleteStorageAccount(Command):
    storage_account: Pubkey

    def describe(self) -> str:
        return f"Delete Storage Account {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class CancelDeleteStorageAccount(Command):
    storage_account: Pubkey

    def describe(self) -> str:
        return f"Cancellation of Delete Storage Account {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class ClaimStake(Command):
    storage_account: Pubkey

    def describe(self) -> str:
        return f"Claim Stake on Storage Account {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class ReduceStorage(Command):
    storage_account: Pubkey
    size: str

    def describe(self) -> str:
        return f"Reduce Storage Capacity {self.storage_account}: {self.size}"


@dataclasses.dataclass(frozen=True)
class AddStorage(Command):
    storage_account: Pubkey
    size: str

    def describe(self) -> str:
        return f"Increase Storage {self.storage_account}: {self.size}"


@dataclasses.dataclass(frozen=True)
class AddImmutableStorage(Command):
    storage_account: Pubkey
    size: str

    def describe(self) -> str:
        return f"Increase Immutable Storage {self.storage_account}: {self.size}"


@dataclasses.dataclass(frozen=True)
class MakeStorageImmutable(Command):
    storage_account: Pubkey

    def describe(self) -> str:
        return f"Make Storage Immutable {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class GetStorageAccount(Command):
    requires_confirmation: ClassVar[bool] = False

    storage_account: Pubkey

    def describe(self) -> str:
        return f"Get Storage Account {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class GetStorageAccounts(Command):
    """List accounts owned by ``owner``, or by the signer when unset."""

    requires_confirmation: ClassVar[bool] = False

    owner: Optional[Pubkey] = None

    def describe(self) -> str:
        return "Get Storage Accounts"


@dataclasses.dataclass(frozen=True)
class ListFiles(Command):
    requires_confirmation: ClassVar[bool] = False

    storage_account: Pubkey

    def describe(self) -> str:
        return f"List Files for Storage Account {self.storage_account}"


@dataclasses.dataclass(frozen=True)
class GetText(Command):
    requires_confirmation: ClassVar[bool] = False

    storage_account: Pubkey
    file: str

    def describe(self) -> str:
        return f"Get Text {self.storage_account} {self.file}"


@dataclasses.dataclass(frozen=True)
class DeleteFile(Command):
    storage_account: Pubkey
    file: str

    def describe(self) -> str:
        return f"Delete file {self.storage_account} {self.file}"


@dataclasses.dataclass(frozen=True)
class EditFile(Command):
    """Replace the remote file named after ``file``'s basename."""

    storage_account: Pubkey
    file: str

    def describe(self) -> str:
        return f"Edit file {self.storage_account} {self.file}"


@dataclasses.dataclass(frozen=True)
class GetObjectData(Command):
    requires_confirmation: ClassVar[bool] = False

    storage_account: Pubkey
    file: str

    def describe(self) -> str:
        return f"Get object data {self.storage_account} {self.file}"


@dataclasses.dataclass(frozen=True)
class StoreFiles(Command):
    """Upload local files, ``batch_size`` per request."""

    storage_account: Pubkey
    files: Tuple[str, ...]
    batch_size: Optional[int] = None

    def describe(self) -> str:
        return f"Store Files {self.storage_account} {pformat(list(self.files))}"


# -----------------------------------------------------------------------------
# Batching and confirmation
# -----------------------------------------------------------------------------


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Split ``items`` into consecutive lists of at most ``size``, in order."""
    if size < 1:
        raise ValueError(f"chunk size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def wait_for_user_confirmation(skip: bool) -> None:
    """Block until the user presses Enter.

    Any line proceeds, including an empty one. End of input or Ctrl-C
    aborts.

    Raises:
        ConfirmationAborted: If the user aborts.
    """
    if skip:
        return
    click.echo("Press Enter to continue, Ctrl-C to abort.")
    try:
        line = sys.stdin.readline()
    except KeyboardInterrupt:
        raise ConfirmationAborted("Aborted by user")
    if not line:
        raise ConfirmationAborted("Aborted: no confirmation received")


class ChunkFailurePolicy(enum.Enum):
    """What an upload does when one chunk fails.

    Chunks already uploaded are never rolled back.
    """

    ABORT_REMAINING = "abort"
    CONTINUE_AND_COLLECT = "continue"


class DispatchState(enum.Enum):
    IDLE = "idle"
    CONFIRM_GATE = "confirm_gate"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# Dispatcher
# -----------------------------------------------------------------------------


class Dispatcher:
    """Runs one command against the storage client.

    Usage:
        dispatcher = Dispatcher(signer, client, skip_confirm=False)
        await dispatcher.run(ListFiles(storage_account))
    """

    def __init__(
        self,
        signer: Signer,
        client: StorageClient,
        skip_confirm: bool = False,
        config: Optional[ServiceConfig] = None,
        confirm: Callable[[bool], None] = wait_for_user_confirmation,
        chunk_policy: ChunkFailurePolicy = ChunkFailurePolicy.ABORT_REMAINING,
        http_client: Optional[httpx.AsyncClient] = None,
        rpc_url: Optional[str] = None,
    ):
        """Initialize the dispatcher.

        Args:
            signer: Signer the storage client was built with
            client: Storage client to issue calls on
            skip_confirm: Bypass the confirmation gate
            config: Service endpoints and upload batch size
            confirm: Confirmation gate, called with ``skip_confirm``
            chunk_policy: Behaviour when an upload chunk fails
            http_client: httpx client used for drive reads
            rpc_url: RPC endpoint, only echoed to the user
        """
        self.signer = signer
        self.client = client
        self.skip_confirm = skip_confirm
        self.config = config or ServiceConfig()
        self.chunk_policy = chunk_policy
        self.rpc_url = rpc_url
        self.state = DispatchState.IDLE
        self._confirm = confirm
        self._http = http_client

        self._handlers = {
            CreateStorageAccount: self._create_storage_account,
            DeleteStorageAccount: self._delete_storage_account,
            CancelDeleteStorageAccount: self._cancel_delete_storage_account,
            ClaimStake: self._claim_stake,
            ReduceStorage: self._reduce_storage,
            AddStorage: self._add_storage,
            AddImmutableStorage: self._add_immutable_storage,
            MakeStorageImmutable: self._make_storage_immutable,
            GetStorageAccount: self._get_storage_account,
            GetStorageAccounts: self._get_storage_accounts,
            ListFiles: self._list_files,
            GetText: self._get_text,
            DeleteFile: self._delete_file,
            EditFile: self._edit_file,
            GetObjectData: self._get_object_data,
            StoreFiles: self._store_files,
        }

    async def run(self, command: Command) -> List[Any]:
        """Execute ``command`` and return the payload of every successful call.

        Raises:
            ShdwError: On abort at the confirmation gate or any failed call.
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported command: {command!r}")

        click.echo(f"Signing with {self.signer.pubkey()}")
        if self.rpc_url:
            click.echo(f"Sending RPC requests to {self.rpc_url}")
        click.echo(command.describe())

        try:
            if isinstance(command, DeleteFile):
                click.echo(f"Delete file {drive_url(command.storage_account, command.file, self.config)}")
            if isinstance(command, StoreFiles):
                click.echo(UPLOAD_WARNING)
            if command.requires_confirmation:
                self._transition(DispatchState.CONFIRM_GATE)
                self._confirm(self.skip_confirm)
            self._transition(DispatchState.EXECUTING)
            results = await handler(command)
        except Exception:
            self._transition(DispatchState.FAILED)
            raise
        self._transition(DispatchState.DONE)
        return results

    def _transition(self, state: DispatchState) -> None:
        _logger.debug("Dispatcher %s -> %s", self.state.value, state.value)
        self.state = state

    async def _call(self, call) -> List[Any]:
        result = await process_api_response(call)
        self._report(result)
        return [result]

    def _report(self, result: Any) -> None:
        self._transition(DispatchState.REPORTING)
        click.echo(pformat(result))
        self._transition(DispatchState.EXECUTING)

    # -------------------------------------------------------------------------
    # Account commands
    # -------------------------------------------------------------------------

    async def _create_storage_account(self, command: CreateStorageAccount) -> List[Any]:
        return await self._call(
            self.client.create_storage_account(command.name, command.size, command.version)
        )

    async def _delete_storage_account(self, command: DeleteStorageAccount) -> List[Any]:
        return await self._call(self.client.delete_storage_account(command.storage_account))

    async def _cancel_delete_storage_account(self, command: CancelDeleteStorageAccount) -> List[Any]:
        return await self._call(
            self.client.cancel_delete_storage_account(command.storage_account)
        )

    async def _claim_stake(self, command: ClaimStake) -> List[Any]:
        return await self._call(self.client.claim_stake(command.storage_account))

    async def _reduce_storage(self, command: ReduceStorage) -> List[Any]:
        return await self._call(self.client.reduce_storage(command.storage_account, command.size))

    async def _add_storage(self, command: AddStorage) -> List[Any]:
        return await self._call(self.client.add_storage(command.storage_account, command.size))

    async def _add_immutable_storage(self, command: AddImmutableStorage) -> List[Any]:
        return await self._call(
            self.client.add_immutable_storage(command.storage_account, command.size)
        )

    async def _make_storage_immutable(self, command: MakeStorageImmutable) -> List[Any]:
        return await self._call(self.client.make_storage_immutable(command.storage_account))

    async def _get_storage_account(self, command: GetStorageAccount) -> List[Any]:
        return await self._call(self.client.get_storage_account(command.storage_account))

    async def _get_storage_accounts(self, command: GetStorageAccounts) -> List[Any]:
        owner = command.owner or self.signer.pubkey()
        click.echo(f"Owned By {owner}")
        return await self._call(self.client.get_storage_accounts(owner))

    # -------------------------------------------------------------------------
    # File commands
    # -------------------------------------------------------------------------

    async def _list_files(self, command: ListFiles) -> List[Any]:
        return await self._call(self.client.list_objects(command.storage_account))

    async def _get_text(self, command: GetText) -> List[Any]:
        location = drive_url(command.storage_account, command.file, self.config)
        response = await get_text(location, self._http)
        modified = last_modified(response.headers)
        self._transition(DispatchState.REPORTING)
        click.echo(f"Get Text at {location}")
        click.echo(f"Last Modified: {modified}")
        click.echo("")
        click.echo(response.text)
        return [response.text]

    async def _delete_file(self, command: DeleteFile) -> List[Any]:
        location = drive_url(command.storage_account, command.file, self.config)
        return await self._call(self.client.delete_file(command.storage_account, location))

    async def _edit_file(self, command: EditFile) -> List[Any]:
        shdw_file = ShadowFile(name=acquire_basename(command.file), path=command.file)
        return await self._call(self.client.edit_file(command.storage_account, shdw_file))

    async def _get_object_data(self, command: GetObjectData) -> List[Any]:
        location = drive_url(command.storage_account, command.file, self.config)
        return await self._call(self.client.get_object_data(location))

    async def _store_files(self, command: StoreFiles) -> List[Any]:
        batch_size = command.batch_size or self.config.upload_batch_size
        chunks = list(chunked(command.files, batch_size))
        results: List[Any] = []
        failures: List[Tuple[int, ShdwError]] = []

        for index, chunk in enumerate(chunks):
            files = [ShadowFile(name=acquire_basename(path), path=path) for path in chunk]
            _logger.debug("Uploading chunk %d/%d (%d files)", index + 1, len(chunks), len(files))
            try:
                result = await process_api_response(
                    self.client.store_files(command.storage_account, files)
                )
            except (ApiServerError, ApiOtherError) as err:
                if self.chunk_policy is ChunkFailurePolicy.ABORT_REMAINING:
                    _logger.debug("Chunk %d failed, skipping %d remaining", index, len(chunks) - index - 1)
                    raise
                failures.append((index, err))
                continue
            self._report(result)
            results.append(result)

        if failures:
            raise BatchUploadError(failures, results)
        return results
