"""Credential storage for provider OAuth tokens."""

from .store import BaseCredentialStore, CredentialStore, MemoryCredentialStore

__all__ = ["BaseCredentialStore", "CredentialStore", "MemoryCredentialStore"]
