"""Tests for the storage response normalizer and client factory loading."""

import pytest

from shdwcli import ApiOtherError, ApiServerError, ConfigError, ShadowDriveServerError, process_api_response
from shdwcli.storage import StorageClientError, load_client_factory


async def _ok():
    return {"txid": "abc"}


async def _raise(exc):
    raise exc


@pytest.mark.asyncio
async def test_success_payload_is_returned():
    assert await process_api_response(_ok()) == {"txid": "abc"}


@pytest.mark.asyncio
async def test_server_error_keeps_message_only(capsys):
    with pytest.raises(ApiServerError) as exc_info:
        await process_api_response(_raise(ShadowDriveServerError("Storage account is immutable", status=400)))

    assert str(exc_info.value) == "Storage account is immutable"
    assert exc_info.value.message == "Storage account is immutable"
    assert "Storage account is immutable" in capsys.readouterr().out


@pytest.mark.asyncio
async def test_other_error_carries_representation(capsys):
    error = StorageClientError("invalid transaction")

    with pytest.raises(ApiOtherError) as exc_info:
        await process_api_response(_raise(error))

    assert exc_info.value.representation == repr(error)
    assert repr(error) in capsys.readouterr().out
    assert exc_info.value.__cause__ is error


@pytest.mark.asyncio
async def test_unrelated_exceptions_propagate_unchanged():
    with pytest.raises(KeyError):
        await process_api_response(_raise(KeyError("boom")))


def test_load_client_factory():
    factory = load_client_factory("conftest:FakeStorageClient")
    assert callable(factory)


@pytest.mark.parametrize(
    "spec",
    ["no_colon", "conftest:", "missing_module_xyz:factory", "conftest:NoSuchFactory", "conftest:STORAGE_ACCOUNT"],
)
def test_load_client_factory_errors(spec):
    with pytest.raises(ConfigError):
        load_client_factory(spec)
