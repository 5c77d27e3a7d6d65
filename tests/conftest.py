"""Shared fixtures: a deterministic signer and a recording storage client."""

from typing import Any, List, Optional, Set, Tuple

import pytest

from shdwcli.signing import KeypairSigner, Pubkey
from shdwcli.storage import ShadowDriveServerError, StorageClientError

SEED = bytes(range(32))
STORAGE_ACCOUNT = Pubkey(bytes([7] * 32))


class FakeStorageClient:
    """Records every call; ``fail_chunks`` makes those store_files calls fail."""

    def __init__(
        self,
        fail_chunks: Optional[Set[int]] = None,
        server_error: Optional[str] = None,
        other_error: Optional[Exception] = None,
    ):
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.fail_chunks = fail_chunks or set()
        self.server_error = server_error
        self.other_error = other_error
        self._store_calls = 0

    async def _record(self, name: str, *args: Any) -> Any:
        self.calls.append((name, args))
        if self.server_error is not None:
            raise ShadowDriveServerError(self.server_error, status=400)
        if self.other_error is not None:
            raise self.other_error
        return {"op": name, "txid": f"tx-{len(self.calls)}"}

    async def create_storage_account(self, name, size, version):
        return await self._record("create_storage_account", name, size, version)

    async def delete_storage_account(self, storage_account):
        return await self._record("delete_storage_account", storage_account)

    async def cancel_delete_storage_account(self, storage_account):
        return await self._record("cancel_delete_storage_account", storage_account)

    async def claim_stake(self, storage_account):
        return await self._record("claim_stake", storage_account)

    async def reduce_storage(self, storage_account, size):
        return await self._record("reduce_storage", storage_account, size)

    async def add_storage(self, storage_account, size):
        return await self._record("add_storage", storage_account, size)

    async def add_immutable_storage(self, storage_account, size):
        return await self._record("add_immutable_storage", storage_account, size)

    async def make_storage_immutable(self, storage_account):
        return await self._record("make_storage_immutable", storage_account)

    async def get_storage_account(self, storage_account):
        return await self._record("get_storage_account", storage_account)

    async def get_storage_accounts(self, owner):
        return await self._record("get_storage_accounts", owner)

    async def list_objects(self, storage_account):
        return await self._record("list_objects", storage_account)

    async def delete_file(self, storage_account, url):
        return await self._record("delete_file", storage_account, url)

    async def edit_file(self, storage_account, file):
        return await self._record("edit_file", storage_account, file)

    async def get_object_data(self, url):
        return await self._record("get_object_data", url)

    async def store_files(self, storage_account, files):
        index = self._store_calls
        self._store_calls += 1
        self.calls.append(("store_files", (storage_account, list(files))))
        if index in self.fail_chunks:
            raise StorageClientError(f"chunk {index} rejected")
        return {"uploaded": [f.name for f in files]}


@pytest.fixture
def signer() -> KeypairSigner:
    return KeypairSigner.from_seed(SEED)


@pytest.fixture
def storage_client() -> FakeStorageClient:
    return FakeStorageClient()


@pytest.fixture
def never_confirm():
    """A confirmation gate that fails the test if it is reached."""

    def gate(skip: bool) -> None:
        raise AssertionError("confirmation gate should not be reached")

    return gate
