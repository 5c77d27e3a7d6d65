"""Tests for the signer capability and keypair files."""

import json

import base58
import pytest

from shdwcli import (
    KeypairSigner,
    Pubkey,
    SignerResolutionError,
    SigningError,
    generate_keypair,
    load_keypair,
    signer_from_path,
)
from shdwcli.signing import Signer, encode_signature, verify_signature, write_keypair


def test_sign_and_verify_round_trip(signer):
    message = b"Sign in to GenesysGo Shadow Platform."
    signature = signer.sign_message(message)

    assert len(signature) == 64
    assert verify_signature(signer.pubkey(), signature, message)
    assert not verify_signature(signer.pubkey(), signature, b"tampered")


def test_signatures_are_deterministic(signer):
    assert signer.sign_message(b"hello") == signer.sign_message(b"hello")


def test_keypair_signer_is_not_interactive(signer):
    assert signer.is_interactive() is False


def test_pubkey_string_is_base58(signer):
    address = str(signer.pubkey())
    assert base58.b58decode(address) == bytes(signer.pubkey())
    assert Pubkey.from_string(address) == signer.pubkey()


def test_pubkey_rejects_bad_input():
    with pytest.raises(ValueError):
        Pubkey.from_string("not-base58-0OIl")
    with pytest.raises(ValueError):
        Pubkey.from_string(base58.b58encode(b"short").decode())


def test_encode_signature():
    assert encode_signature(b"\x00\x01") == base58.b58encode(b"\x00\x01").decode()


def test_keypair_file_round_trip(tmp_path):
    original = generate_keypair()
    path = tmp_path / "id.json"
    write_keypair(path, original)

    data = json.loads(path.read_text())
    assert len(data) == 64

    loaded = load_keypair(path)
    assert loaded.pubkey() == original.pubkey()


def test_load_keypair_rejects_mismatched_public_half(tmp_path, signer):
    raw = list(signer.to_bytes())
    raw[-1] ^= 0xFF
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(raw))

    with pytest.raises(SignerResolutionError, match="mismatched public key"):
        load_keypair(path)


def test_load_keypair_rejects_wrong_length(tmp_path):
    path = tmp_path / "short.json"
    path.write_text(json.dumps([1, 2, 3]))

    with pytest.raises(SignerResolutionError, match="64 integers"):
        load_keypair(path)


def test_load_keypair_missing_file(tmp_path):
    with pytest.raises(SignerResolutionError, match="Could not read"):
        load_keypair(tmp_path / "missing.json")


def test_signer_from_path_rejects_hardware_wallet():
    with pytest.raises(SignerResolutionError, match="Hardware wallets"):
        signer_from_path("usb://ledger")


def test_signer_from_path_loads_file(tmp_path, signer):
    path = tmp_path / "id.json"
    write_keypair(path, signer)
    assert signer_from_path(str(path)).pubkey() == signer.pubkey()


def test_sign_message_propagates_signing_failure():
    class BrokenSigner(Signer):
        def pubkey(self):
            return Pubkey(bytes(32))

        def try_sign_message(self, message):
            raise SigningError("device unplugged")

        def is_interactive(self):
            return True

    with pytest.raises(SigningError, match="device unplugged"):
        BrokenSigner().sign_message(b"hello")
