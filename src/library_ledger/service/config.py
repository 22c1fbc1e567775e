"""Configuration primitives for the library service."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from ..persistence.catalog import DEFAULT_BOOK_PRICE


@dataclass(slots=True)
class LibraryConfig:
    """Runtime configuration for the library service.

    Configuration Sources (priority order):
    1. Direct constructor arguments
    2. Environment variables (LIBRARY_*)
    3. Default values

    Attributes:
        api_key: Key clients send in X-API-Key (REQUIRED)
        port: Service port (default: 8080)
        storage_dir: Directory holding books.json, users.json, purchases.json
        default_book_price: Price given to books added without one
        extra_api_keys: Additional accepted keys
    """

    api_key: str
    port: int = 8080
    storage_dir: str = "storage"
    default_book_price: float = DEFAULT_BOOK_PRICE
    extra_api_keys: list[str] = field(default_factory=list)
    cors_origins: list[str] = field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
    )

    @classmethod
    def from_env(cls) -> LibraryConfig:
        """Create configuration from environment variables.

        Required:
            LIBRARY_API_KEY: API key required on /api routes

        Optional:
            LIBRARY_PORT: Service port (default: 8080)
            LIBRARY_STORAGE_DIR: Storage directory (default: storage)
            LIBRARY_DEFAULT_BOOK_PRICE: Default book price (default: 100)
            LIBRARY_API_KEYS: Comma-separated list of additional keys
        """
        api_key = os.environ.get("LIBRARY_API_KEY")
        if not api_key:
            raise ValueError("LIBRARY_API_KEY environment variable is required")

        config = cls(
            api_key=api_key,
            port=int(os.environ.get("LIBRARY_PORT", "8080")),
            storage_dir=os.environ.get("LIBRARY_STORAGE_DIR", "storage"),
            default_book_price=float(
                os.environ.get("LIBRARY_DEFAULT_BOOK_PRICE", str(DEFAULT_BOOK_PRICE))
            ),
        )

        keys_str = os.environ.get("LIBRARY_API_KEYS", "")
        if keys_str:
            config.with_api_keys(keys_str.split(","))

        return config

    def with_api_keys(self, keys: Iterable[str]) -> LibraryConfig:
        """Add accepted API keys, skipping blanks."""
        for key in keys:
            key = key.strip()
            if key and key not in self.extra_api_keys:
                self.extra_api_keys.append(key)
        return self

    @property
    def accepted_keys(self) -> frozenset[str]:
        return frozenset([self.api_key, *self.extra_api_keys])

    @property
    def books_path(self) -> Path:
        return Path(self.storage_dir) / "books.json"

    @property
    def users_path(self) -> Path:
        return Path(self.storage_dir) / "users.json"

    @property
    def ledger_path(self) -> Path:
        return Path(self.storage_dir) / "purchases.json"
