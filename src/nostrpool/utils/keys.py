"""Nostr key loading for signing publishes and NIP-42 authentication.

Provides a function and a Pydantic model for loading Nostr keys from an
environment variable. Both nsec1 (bech32) and hex-encoded private keys are
accepted.

Warning:
    Private keys must **never** be stored in configuration files or logged.
    The CLI reads them from the environment only.

Examples:
    ```python
    import os

    os.environ["PRIVATE_KEY"] = "nsec1..."  # pragma: allowlist secret
    keys = load_keys_from_env("PRIVATE_KEY")
    signer = make_signer(keys)
    await relay.authenticate(signer)
    ```
"""

from __future__ import annotations

import os
from typing import Any

from nostr_sdk import Keys
from pydantic import BaseModel, Field, model_validator


ENV_PRIVATE_KEY = "PRIVATE_KEY"  # pragma: allowlist secret


def load_keys_from_env(env_var: str = ENV_PRIVATE_KEY) -> Keys:
    """Load Nostr keys from an environment variable.

    Args:
        env_var: Name of the environment variable holding the private key.

    Returns:
        A ``nostr_sdk.Keys`` instance ready for signing.

    Raises:
        ValueError: If the variable is unset or empty.
        nostr_sdk.NostrSdkError: If the key value is malformed.
    """
    value = os.getenv(env_var)
    if not value:
        raise ValueError(
            f"{env_var} environment variable is required to sign events. "
            "Generate one with: openssl rand -hex 32"
        )
    return Keys.parse(value)


class KeysConfig(BaseModel):
    """Pydantic model that loads signing keys from the environment on validation.

    Attributes:
        keys_env: Environment variable name for the private key.
        keys: Loaded ``nostr_sdk.Keys``; populated from ``keys_env`` when
            not given explicitly.

    Warning:
        ``keys`` holds a live private key. Do not serialize this model.
    """

    model_config = {"arbitrary_types_allowed": True}

    keys_env: str = Field(
        default=ENV_PRIVATE_KEY,
        min_length=1,
        description="Environment variable name for private key",
    )
    keys: Keys = Field(description="Keys loaded from keys_env")

    @model_validator(mode="before")
    @classmethod
    def _load_keys_from_env(cls, data: Any) -> Any:
        if isinstance(data, dict) and "keys" not in data:
            data = {**data, "keys": load_keys_from_env(data.get("keys_env", ENV_PRIVATE_KEY))}
        return data
