"""Errors raised while reading stakeledger settings from the environment."""

from __future__ import annotations

from stakeledger.errors import StakeLedgerError


class ConfigurationError(StakeLedgerError):
    """An environment variable holds a non-numeric, negative or otherwise unusable value."""


class MissingConfigurationError(ConfigurationError):
    """A setting the pipeline cannot run without is empty, such as ``RPC_PROVIDERS``."""
