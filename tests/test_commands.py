"""Tests for the command dispatcher, confirmation gate and upload batching."""

import io

import pytest
import respx
from httpx import Response

from shdwcli import (
    ApiOtherError,
    ApiServerError,
    BasenameError,
    BatchUploadError,
    ChunkFailurePolicy,
    ConfirmationAborted,
    Dispatcher,
    chunked,
    wait_for_user_confirmation,
)
from shdwcli.commands import (
    Command,
    CreateStorageAccount,
    DeleteFile,
    DeleteStorageAccount,
    DispatchState,
    EditFile,
    GetObjectData,
    GetStorageAccounts,
    GetText,
    ListFiles,
    MakeStorageImmutable,
    StoreFiles,
)
from shdwcli.config import ServiceConfig
from shdwcli.signing import Pubkey
from shdwcli.storage import StorageAccountVersion
from shdwcli.types import ShadowFile

from conftest import STORAGE_ACCOUNT, FakeStorageClient


class RecordingGate:
    def __init__(self, client=None):
        self.calls = []
        self.client = client

    def __call__(self, skip):
        # Record how many remote calls had happened when the gate was reached
        self.calls.append((skip, len(self.client.calls) if self.client else None))


def test_chunked_preserves_order():
    files = [f"f{i}" for i in range(12)]
    chunks = list(chunked(files, 5))

    assert [len(c) for c in chunks] == [5, 5, 2]
    assert [f for chunk in chunks for f in chunk] == files


def test_chunked_exact_and_empty():
    assert list(chunked([1, 2, 3, 4], 2)) == [[1, 2], [3, 4]]
    assert list(chunked([], 3)) == []


def test_chunked_rejects_zero():
    with pytest.raises(ValueError):
        list(chunked([1], 0))


def test_confirmation_skipped(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    wait_for_user_confirmation(True)


def test_confirmation_accepts_empty_line(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("\n"))
    wait_for_user_confirmation(False)


def test_confirmation_aborts_on_eof(monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO(""))
    with pytest.raises(ConfirmationAborted):
        wait_for_user_confirmation(False)


@pytest.mark.asyncio
async def test_list_files_makes_one_call_without_gate(signer, storage_client, never_confirm):
    dispatcher = Dispatcher(signer, storage_client, confirm=never_confirm)

    results = await dispatcher.run(ListFiles(storage_account=STORAGE_ACCOUNT))

    assert storage_client.calls == [("list_objects", (STORAGE_ACCOUNT,))]
    assert results == [{"op": "list_objects", "txid": "tx-1"}]
    assert dispatcher.state is DispatchState.DONE


@pytest.mark.asyncio
async def test_delete_gates_before_remote_call(signer, storage_client):
    gate = RecordingGate(storage_client)
    dispatcher = Dispatcher(signer, storage_client, confirm=gate)

    await dispatcher.run(DeleteStorageAccount(storage_account=STORAGE_ACCOUNT))

    assert gate.calls == [(False, 0)]
    assert storage_client.calls == [("delete_storage_account", (STORAGE_ACCOUNT,))]


@pytest.mark.asyncio
async def test_aborted_gate_makes_no_call(signer, storage_client):
    def abort(skip):
        raise ConfirmationAborted("Aborted by user")

    dispatcher = Dispatcher(signer, storage_client, confirm=abort)

    with pytest.raises(ConfirmationAborted):
        await dispatcher.run(MakeStorageImmutable(storage_account=STORAGE_ACCOUNT))

    assert storage_client.calls == []
    assert dispatcher.state is DispatchState.FAILED


@pytest.mark.asyncio
async def test_skip_confirm_is_passed_to_gate(signer, storage_client):
    gate = RecordingGate()
    dispatcher = Dispatcher(signer, storage_client, skip_confirm=True, confirm=gate)

    await dispatcher.run(CreateStorageAccount(name="photos", size="1MB"))

    assert gate.calls == [(True, None)]
    assert storage_client.calls == [
        ("create_storage_account", ("photos", "1MB", StorageAccountVersion.V2))
    ]


@pytest.mark.asyncio
async def test_get_storage_accounts_defaults_to_signer(signer, storage_client, never_confirm):
    dispatcher = Dispatcher(signer, storage_client, confirm=never_confirm)
    await dispatcher.run(GetStorageAccounts())

    owner = Pubkey(bytes([9] * 32))
    await dispatcher.run(GetStorageAccounts(owner=owner))

    assert storage_client.calls == [
        ("get_storage_accounts", (signer.pubkey(),)),
        ("get_storage_accounts", (owner,)),
    ]


@pytest.mark.asyncio
async def test_file_commands_use_drive_url(signer, storage_client, never_confirm):
    location = f"https://shdw-drive.genesysgo.net/{STORAGE_ACCOUNT}/a.txt"

    await Dispatcher(signer, storage_client, confirm=never_confirm).run(
        GetObjectData(storage_account=STORAGE_ACCOUNT, file="a.txt")
    )
    await Dispatcher(signer, storage_client, skip_confirm=True).run(
        DeleteFile(storage_account=STORAGE_ACCOUNT, file="a.txt")
    )

    assert storage_client.calls == [
        ("get_object_data", (location,)),
        ("delete_file", (STORAGE_ACCOUNT, location)),
    ]


@pytest.mark.asyncio
async def test_edit_file_uses_basename(signer, storage_client):
    dispatcher = Dispatcher(signer, storage_client, skip_confirm=True)

    await dispatcher.run(EditFile(storage_account=STORAGE_ACCOUNT, file="/tmp/docs/a.txt"))

    assert storage_client.calls == [
        ("edit_file", (STORAGE_ACCOUNT, ShadowFile(name="a.txt", path="/tmp/docs/a.txt")))
    ]


@pytest.mark.asyncio
async def test_server_error_is_normalized(signer):
    client = FakeStorageClient(server_error="Storage account not found")
    dispatcher = Dispatcher(signer, client, skip_confirm=True)

    with pytest.raises(ApiServerError, match="^Storage account not found$"):
        await dispatcher.run(DeleteStorageAccount(storage_account=STORAGE_ACCOUNT))

    assert dispatcher.state is DispatchState.FAILED


@pytest.mark.asyncio
async def test_store_files_batches_sequentially(signer, storage_client):
    files = tuple(f"/data/file{i}.bin" for i in range(12))
    dispatcher = Dispatcher(signer, storage_client, skip_confirm=True)

    results = await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=files, batch_size=5))

    sizes = [len(args[1]) for name, args in storage_client.calls]
    assert sizes == [5, 5, 2]
    uploaded = [f.path for _, args in storage_client.calls for f in args[1]]
    assert uploaded == list(files)
    assert storage_client.calls[0][1][1][0] == ShadowFile(name="file0.bin", path="/data/file0.bin")
    assert len(results) == 3


@pytest.mark.asyncio
async def test_store_files_uses_configured_batch_size(signer, storage_client):
    files = tuple(f"f{i}" for i in range(7))
    dispatcher = Dispatcher(
        signer, storage_client, skip_confirm=True, config=ServiceConfig(upload_batch_size=3)
    )

    await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=files))

    assert [len(args[1]) for _, args in storage_client.calls] == [3, 3, 1]


@pytest.mark.asyncio
async def test_store_files_fail_fast(signer):
    client = FakeStorageClient(fail_chunks={1})
    files = tuple(f"f{i}" for i in range(12))
    dispatcher = Dispatcher(signer, client, skip_confirm=True)

    with pytest.raises(ApiOtherError, match="chunk 1 rejected"):
        await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=files, batch_size=5))

    # The first chunk stays uploaded, the third is never attempted
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_store_files_continue_and_collect(signer):
    client = FakeStorageClient(fail_chunks={1})
    files = tuple(f"f{i}" for i in range(12))
    dispatcher = Dispatcher(
        signer,
        client,
        skip_confirm=True,
        chunk_policy=ChunkFailurePolicy.CONTINUE_AND_COLLECT,
    )

    with pytest.raises(BatchUploadError) as exc_info:
        await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=files, batch_size=5))

    assert len(client.calls) == 3
    assert [index for index, _ in exc_info.value.failures] == [1]
    assert len(exc_info.value.results) == 2


@pytest.mark.asyncio
async def test_store_files_bad_basename_aborts(signer, storage_client):
    files = ("a.txt", "b.txt", "/")
    dispatcher = Dispatcher(signer, storage_client, skip_confirm=True)

    with pytest.raises(BasenameError):
        await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=files, batch_size=2))

    assert len(storage_client.calls) == 1


@pytest.mark.asyncio
async def test_store_files_prints_warning_before_gate(signer, storage_client, capsys):
    def gate(skip):
        assert "WARNING" in capsys.readouterr().out

    dispatcher = Dispatcher(signer, storage_client, confirm=gate)
    await dispatcher.run(StoreFiles(storage_account=STORAGE_ACCOUNT, files=("a.txt",)))


@pytest.mark.asyncio
@respx.mock
async def test_get_text_prints_file(signer, storage_client, never_confirm, capsys):
    url = f"https://shdw-drive.genesysgo.net/{STORAGE_ACCOUNT}/notes.txt"
    headers = {"Content-Type": "text/plain", "Last-Modified": "Wed, 01 Jun 2022 00:00:00 GMT"}
    respx.head(url).mock(return_value=Response(200, headers=headers))
    respx.get(url).mock(return_value=Response(200, text="hello world", headers=headers))

    dispatcher = Dispatcher(signer, storage_client, confirm=never_confirm)
    results = await dispatcher.run(GetText(storage_account=STORAGE_ACCOUNT, file="notes.txt"))

    out = capsys.readouterr().out
    assert results == ["hello world"]
    assert "Last Modified: Wed, 01 Jun 2022 00:00:00 GMT" in out
    assert storage_client.calls == []


def test_command_base_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Command()


@pytest.mark.asyncio
async def test_delete_file_shows_location_before_gate(signer, storage_client, capsys):
    location = f"https://shdw-drive.genesysgo.net/{STORAGE_ACCOUNT}/a.txt"

    def gate(skip):
        assert f"Delete file {location}" in capsys.readouterr().out
        assert storage_client.calls == []

    dispatcher = Dispatcher(signer, storage_client, confirm=gate)
    await dispatcher.run(DeleteFile(storage_account=STORAGE_ACCOUNT, file="a.txt"))

    assert storage_client.calls == [("delete_file", (STORAGE_ACCOUNT, location))]
