"""Delegation ledger domain: events, quorum, ledger, derived views and health."""
