"""File vault process entrypoint package."""

from packages.vault_core.main import create_vault_app, main

__all__ = ["create_vault_app", "main"]
