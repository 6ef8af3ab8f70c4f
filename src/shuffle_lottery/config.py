from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    state_file: str
    owner: str | None
    oracle_id: str
    rpc_url: str | None

    @staticmethod
    def from_env(
        state_file_override: str | None = None,
        rpc_url_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        state_file = state_file_override or os.getenv("LOTTERY_STATE_FILE", "").strip()
        owner = os.getenv("LOTTERY_OWNER", "").strip()
        oracle_id = os.getenv("LOTTERY_ORACLE_ID", "").strip()

        return Settings(
            state_file=state_file or "lottery_state.json",
            owner=owner or None,
            oracle_id=oracle_id or "local",
            rpc_url=rpc_url_override or _rpc_url_from_env(),
        )

    def require_owner(self) -> str:
        if not self.owner:
            raise RuntimeError("Missing LOTTERY_OWNER. Put it in .env or export it.")
        return self.owner

    def require_rpc_url(self) -> str:
        if not self.rpc_url:
            raise RuntimeError(
                "Missing HELIUS_API_KEY (or RPC_URL). Put it in .env or export it."
            )
        return self.rpc_url


def _rpc_url_from_env() -> str | None:
    env_rpc = os.getenv("RPC_URL", "").strip()
    if env_rpc:
        return env_rpc

    # Only the blockhash oracle talks to RPC, so a missing key is not fatal here.
    helius_key = os.getenv("HELIUS_API_KEY", "").strip()
    if not helius_key:
        return None
    return f"https://mainnet.helius-rpc.com/?api-key={helius_key}"
