"""Configuration for shdw-cli.

Service endpoints live in :class:`ServiceConfig` so they can be swapped in
tests; the Solana CLI config file supplies the default keypair and RPC URL.
"""

import dataclasses
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .types import ConfigError

GENESYSGO_AUTH_KEYWORD = "genesysgo"

SOLANA_CONFIG_FILE = Path.home() / ".config" / "solana" / "cli" / "config.yml"
SOLANA_DEFAULT_RPC = "https://api.mainnet-beta.solana.com"
SOLANA_DEFAULT_KEYPAIR = Path.home() / ".config" / "solana" / "id.json"


@dataclasses.dataclass(frozen=True)
class ServiceConfig:
    """Endpoints and limits of the storage service.

    Attributes:
        signin_message: Exact message signed in the first sign-in step
        signin_url: First sign-in endpoint
        premium_token_url: Base of the second sign-in endpoint
        domain_marker: Substring every service RPC URL contains
        rpc_url: Default RPC endpoint of the service
        drive_url: Base URL files are served from
        upload_batch_size: Maximum files per upload call
    """

    signin_message: str = "Sign in to GenesysGo Shadow Platform."
    signin_url: str = "https://portal.genesysgo.net/api/signin"
    premium_token_url: str = "https://portal.genesysgo.net/api/premium/token"
    domain_marker: str = "genesysgo"
    rpc_url: str = "https://ssc-dao.genesysgo.net"
    drive_url: str = "https://shdw-drive.genesysgo.net"
    upload_batch_size: int = 100

    @classmethod
    def from_env(cls, **overrides: Any) -> "ServiceConfig":
        """Create configuration from ``SHDW_*`` environment variables.

        Explicit keyword arguments take precedence over the environment.
        """
        env = os.environ
        env_map = {
            "SHDW_SIGNIN_URL": "signin_url",
            "SHDW_PREMIUM_TOKEN_URL": "premium_token_url",
            "SHDW_DOMAIN_MARKER": "domain_marker",
            "SHDW_RPC_URL": "rpc_url",
            "SHDW_DRIVE_URL": "drive_url",
        }
        kwargs: dict = {}
        for env_key, field_name in env_map.items():
            val = env.get(env_key)
            if val is not None:
                kwargs[field_name] = val.rstrip("/")

        batch_env = env.get("SHDW_UPLOAD_BATCH_SIZE")
        if batch_env is not None:
            try:
                kwargs["upload_batch_size"] = int(batch_env)
            except ValueError:
                raise ConfigError(f"SHDW_UPLOAD_BATCH_SIZE must be an integer, got {batch_env!r}")

        kwargs.update(overrides)
        config = cls(**kwargs)
        if config.upload_batch_size < 1:
            raise ConfigError("upload_batch_size must be at least 1")
        return config


@dataclasses.dataclass(frozen=True)
class LiteralToken:
    """A bearer token supplied directly by the user."""

    token: str


@dataclasses.dataclass(frozen=True)
class AutoSignIn:
    """Obtain a bearer token through the sign-in handshake."""


AuthMode = Union[LiteralToken, AutoSignIn]


def parse_auth_mode(value: Optional[str]) -> Optional[AuthMode]:
    """Turn the ``--auth`` option into an auth mode, once.

    ``genesysgo`` selects automatic sign-in; any other value is used as a
    literal token. ``None`` or an empty string means no auth.
    """
    if not value:
        return None
    if value == GENESYSGO_AUTH_KEYWORD:
        return AutoSignIn()
    return LiteralToken(value)


@dataclasses.dataclass(frozen=True)
class SolanaCliConfig:
    """The subset of the Solana CLI config shdw-cli reads."""

    json_rpc_url: str = SOLANA_DEFAULT_RPC
    keypair_path: str = str(SOLANA_DEFAULT_KEYPAIR)

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "SolanaCliConfig":
        """Load the Solana CLI config file.

        Args:
            path: Config file to read (defaults to ~/.config/solana/cli/config.yml)

        Returns:
            Parsed config, or defaults if the file does not exist.

        Raises:
            ConfigError: If the file is not valid YAML or not a mapping.
        """
        config_path = Path(path).expanduser() if path else SOLANA_CONFIG_FILE
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a mapping in {config_path}")

        return cls(
            json_rpc_url=data.get("json_rpc_url") or SOLANA_DEFAULT_RPC,
            keypair_path=data.get("keypair_path") or str(SOLANA_DEFAULT_KEYPAIR),
        )
