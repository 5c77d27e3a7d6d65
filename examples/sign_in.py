"""Example: Sign in with a Solana keypair and list a storage account's files.

The storage client is not part of shdw-cli; pass a factory the same way as
``--storage-client``:

    python sign_in.py <storage-account> my_client:make_client
"""

import asyncio
import sys

from shdwcli import Dispatcher, SignInClient, load_keypair, parse_account_id_from_url
from shdwcli.commands import ListFiles
from shdwcli.signing import Pubkey
from shdwcli.storage import load_client_factory


async def main(storage_account, storage_client_factory):
    signer = load_keypair("~/.config/solana/id.json")
    rpc_url = "https://ssc-dao.genesysgo.net/YOUR_ACCOUNT_ID"

    # Two-step sign-in: signed message -> intermediate token -> bearer token
    async with SignInClient() as auth:
        token = await auth.sign_in(signer, parse_account_id_from_url(rpc_url))
    print(f"Signed in as {signer.pubkey()}")

    client = storage_client_factory(signer, rpc_url, token)
    dispatcher = Dispatcher(signer, client, rpc_url=rpc_url)
    await dispatcher.run(ListFiles(storage_account=storage_account))


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python sign_in.py <storage-account> <module:factory>")
        sys.exit(1)

    asyncio.run(main(Pubkey.from_string(sys.argv[1]), load_client_factory(sys.argv[2])))
