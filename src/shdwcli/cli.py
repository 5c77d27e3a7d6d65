"""Command-line interface for shdw-cli."""

import asyncio
import dataclasses
import logging
from typing import Optional

import click
import httpx

from . import __version__
from .client import resolve_auth_token
from .commands import (
    AddImmutableStorage,
    AddStorage,
    CancelDeleteStorageAccount,
    ChunkFailurePolicy,
    ClaimStake,
    Command,
    CreateStorageAccount,
    DeleteFile,
    DeleteStorageAccount,
    Dispatcher,
    EditFile,
    GetObjectData,
    GetStorageAccount,
    GetStorageAccounts,
    GetText,
    ListFiles,
    MakeStorageImmutable,
    ReduceStorage,
    StoreFiles,
)
from .config import AuthMode, ServiceConfig, SolanaCliConfig, parse_auth_mode
from .drive import parse_filesize
from .signing import Pubkey, signer_from_path
from .storage import StorageClientFactory, load_client_factory
from .types import ConfigError, ShdwError

_logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class PubkeyParamType(click.ParamType):
    name = "pubkey"

    def convert(self, value, param, ctx):
        if isinstance(value, Pubkey):
            return value
        try:
            return Pubkey.from_string(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


class FilesizeParamType(click.ParamType):
    name = "size"

    def convert(self, value, param, ctx):
        try:
            return parse_filesize(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


PUBKEY = PubkeyParamType()
FILESIZE = FilesizeParamType()


@dataclasses.dataclass
class CliState:
    """Options shared by every sub-command.

    ``client_factory`` may be preset (e.g. in tests) instead of naming one
    with ``--storage-client``.
    """

    keypair: Optional[str] = None
    url: Optional[str] = None
    auth_mode: Optional[AuthMode] = None
    skip_confirm: bool = False
    storage_client: Optional[str] = None
    solana_config: Optional[str] = None
    chunk_policy: ChunkFailurePolicy = ChunkFailurePolicy.ABORT_REMAINING
    client_factory: Optional[StorageClientFactory] = None


async def process(state: CliState, command: Command) -> None:
    """Resolve credentials and run ``command`` once."""
    solana = SolanaCliConfig.load(state.solana_config)
    service = ServiceConfig.from_env()

    factory = state.client_factory
    if factory is None:
        if not state.storage_client:
            raise ConfigError(
                "No storage client configured. Pass --storage-client module:factory "
                "or set SHDW_STORAGE_CLIENT."
            )
        factory = load_client_factory(state.storage_client)

    signer = signer_from_path(state.keypair or solana.keypair_path)
    url = state.url or solana.json_rpc_url

    token = await resolve_auth_token(state.auth_mode, signer, url, service)
    client = factory(signer, url, token)

    async with httpx.AsyncClient(timeout=None) as http:
        dispatcher = Dispatcher(
            signer,
            client,
            skip_confirm=state.skip_confirm,
            config=service,
            chunk_policy=state.chunk_policy,
            http_client=http,
            rpc_url=url,
        )
        await dispatcher.run(command)


def _execute(ctx: click.Context, command: Command) -> None:
    try:
        asyncio.run(process(ctx.obj, command))
    except ShdwError as e:
        _logger.debug("Command failed", exc_info=True)
        raise click.ClickException(str(e))


@click.group()
@click.version_option(__version__, prog_name="shdw-cli")
@click.option("-k", "--keypair", envvar="SHDW_KEYPAIR", help="Keypair file (default: from Solana CLI config)")
@click.option("-u", "--url", envvar="SHDW_URL", help="RPC URL (default: from Solana CLI config)")
@click.option(
    "--auth",
    envvar="SHDW_AUTH",
    help="Bearer token for authenticated RPC, or 'genesysgo' to sign in automatically",
)
@click.option("-y", "--skip-confirm", is_flag=True, help="Do not ask before irreversible actions")
@click.option(
    "--storage-client",
    envvar="SHDW_STORAGE_CLIENT",
    help="Storage client factory as 'module:callable'",
)
@click.option(
    "--solana-config",
    type=click.Path(dir_okay=False),
    help="Solana CLI config file (default: ~/.config/solana/cli/config.yml)",
)
@click.option(
    "--continue-on-error",
    is_flag=True,
    help="Keep uploading the remaining chunks when one fails",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    keypair: Optional[str],
    url: Optional[str],
    auth: Optional[str],
    skip_confirm: bool,
    storage_client: Optional[str],
    solana_config: Optional[str],
    continue_on_error: bool,
    verbose: bool,
) -> None:
    """Manage Shadow Drive storage accounts and upload files."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)

    state = ctx.ensure_object(CliState)
    state.keypair = keypair
    state.url = url
    state.auth_mode = parse_auth_mode(auth)
    state.skip_confirm = skip_confirm
    state.storage_client = storage_client
    state.solana_config = solana_config
    if continue_on_error:
        state.chunk_policy = ChunkFailurePolicy.CONTINUE_AND_COLLECT


@cli.command("create-storage-account")
@click.argument("name")
@click.argument("size", type=FILESIZE)
@click.pass_context
def create_storage_account(ctx: click.Context, name: str, size: str) -> None:
    """Create a storage account of SIZE (e.g. 1MB)."""
    _execute(ctx, CreateStorageAccount(name=name, size=size))


@cli.command("delete-storage-account")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def delete_storage_account(ctx: click.Context, storage_account: Pubkey) -> None:
    """Queue a storage account for deletion."""
    _execute(ctx, DeleteStorageAccount(storage_account=storage_account))


@cli.command("cancel-delete-storage-account")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def cancel_delete_storage_account(ctx: click.Context, storage_account: Pubkey) -> None:
    """Cancel a pending storage account deletion."""
    _execute(ctx, CancelDeleteStorageAccount(storage_account=storage_account))


@cli.command("claim-stake")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def claim_stake(ctx: click.Context, storage_account: Pubkey) -> None:
    """Claim stake released by reducing storage."""
    _execute(ctx, ClaimStake(storage_account=storage_account))


@cli.command("reduce-storage")
@click.argument("storage_account", type=PUBKEY)
@click.argument("size", type=FILESIZE)
@click.pass_context
def reduce_storage(ctx: click.Context, storage_account: Pubkey, size: str) -> None:
    """Reduce a storage account's capacity by SIZE."""
    _execute(ctx, ReduceStorage(storage_account=storage_account, size=size))


@cli.command("add-storage")
@click.argument("storage_account", type=PUBKEY)
@click.argument("size", type=FILESIZE)
@click.pass_context
def add_storage(ctx: click.Context, storage_account: Pubkey, size: str) -> None:
    """Increase a storage account's capacity by SIZE."""
    _execute(ctx, AddStorage(storage_account=storage_account, size=size))


@cli.command("add-immutable-storage")
@click.argument("storage_account", type=PUBKEY)
@click.argument("size", type=FILESIZE)
@click.pass_context
def add_immutable_storage(ctx: click.Context, storage_account: Pubkey, size: str) -> None:
    """Increase an immutable storage account's capacity by SIZE."""
    _execute(ctx, AddImmutableStorage(storage_account=storage_account, size=size))


@cli.command("make-storage-immutable")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def make_storage_immutable(ctx: click.Context, storage_account: Pubkey) -> None:
    """Make a storage account immutable. This cannot be undone."""
    _execute(ctx, MakeStorageImmutable(storage_account=storage_account))


@cli.command("get-storage-account")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def get_storage_account(ctx: click.Context, storage_account: Pubkey) -> None:
    """Show a storage account."""
    _execute(ctx, GetStorageAccount(storage_account=storage_account))


@cli.command("get-storage-accounts")
@click.option("--owner", type=PUBKEY, default=None, help="Owner address (default: the signer)")
@click.pass_context
def get_storage_accounts(ctx: click.Context, owner: Optional[Pubkey]) -> None:
    """List storage accounts owned by an address."""
    _execute(ctx, GetStorageAccounts(owner=owner))


@cli.command("list-files")
@click.argument("storage_account", type=PUBKEY)
@click.pass_context
def list_files(ctx: click.Context, storage_account: Pubkey) -> None:
    """List files in a storage account."""
    _execute(ctx, ListFiles(storage_account=storage_account))


@cli.command("get-text")
@click.argument("storage_account", type=PUBKEY)
@click.argument("file")
@click.pass_context
def get_text(ctx: click.Context, storage_account: Pubkey, file: str) -> None:
    """Print a text/plain file from a storage account."""
    _execute(ctx, GetText(storage_account=storage_account, file=file))


@cli.command("delete-file")
@click.argument("storage_account", type=PUBKEY)
@click.argument("file")
@click.pass_context
def delete_file(ctx: click.Context, storage_account: Pubkey, file: str) -> None:
    """Delete a file from a storage account."""
    _execute(ctx, DeleteFile(storage_account=storage_account, file=file))


@cli.command("edit-file")
@click.argument("storage_account", type=PUBKEY)
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def edit_file(ctx: click.Context, storage_account: Pubkey, file: str) -> None:
    """Replace a remote file with the local FILE of the same name."""
    _execute(ctx, EditFile(storage_account=storage_account, file=file))


@cli.command("get-object-data")
@click.argument("storage_account", type=PUBKEY)
@click.argument("file")
@click.pass_context
def get_object_data(ctx: click.Context, storage_account: Pubkey, file: str) -> None:
    """Show metadata of a remote file."""
    _execute(ctx, GetObjectData(storage_account=storage_account, file=file))


@cli.command("store-files")
@click.argument("storage_account", type=PUBKEY)
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--batch-size",
    type=click.IntRange(min=1),
    default=None,
    help="Files per upload request (default: 100)",
)
@click.pass_context
def store_files(
    ctx: click.Context,
    storage_account: Pubkey,
    files: tuple,
    batch_size: Optional[int],
) -> None:
    """Upload FILES to a storage account. Uploads are public."""
    _execute(ctx, StoreFiles(storage_account=storage_account, files=tuple(files), batch_size=batch_size))


def main() -> None:
    cli(prog_name="shdw-cli")


if __name__ == "__main__":
    main()
