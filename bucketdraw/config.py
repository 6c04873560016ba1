from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class OracleRequestConfig:
    """Parameters sent with every randomness request."""

    key_hash: str = ""
    subscription_id: int = 0
    request_confirmations: int = 3
    callback_gas_limit: int = 100_000

    def to_payload(self, num_words: int) -> dict:
        return {
            "key_hash": self.key_hash,
            "subscription_id": self.subscription_id,
            "request_confirmations": self.request_confirmations,
            "callback_gas_limit": self.callback_gas_limit,
            "num_words": num_words,
        }


@dataclass(frozen=True)
class Settings:
    admin: Optional[str]
    lock_pending_ranges: bool
    oracle_base_fqdn: Optional[str]
    oracle: OracleRequestConfig

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv()

        admin = os.getenv("BUCKETDRAW_ADMIN", "").strip() or None
        lock = os.getenv("BUCKETDRAW_LOCK_PENDING_RANGES", "").strip().lower() in _TRUTHY

        try:
            oracle = OracleRequestConfig(
                key_hash=os.getenv("ORACLE_KEY_HASH", "").strip(),
                subscription_id=int(os.getenv("ORACLE_SUBSCRIPTION_ID", "0")),
                request_confirmations=int(os.getenv("ORACLE_REQUEST_CONFIRMATIONS", "3")),
                callback_gas_limit=int(os.getenv("ORACLE_CALLBACK_GAS_LIMIT", "100000")),
            )
        except ValueError as exc:
            raise RuntimeError(f"Invalid numeric oracle setting: {exc}") from exc

        return Settings(
            admin=admin,
            lock_pending_ranges=lock,
            oracle_base_fqdn=os.getenv("ORACLE_BASE_FQDN", "").strip() or None,
            oracle=oracle,
        )
