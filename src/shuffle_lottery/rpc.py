from __future__ import annotations

import itertools
import json
from typing import Any, Dict, List, Optional

import httpx


class RpcClient:
    """Minimal Solana JSON-RPC client; only the calls the blockhash oracle needs."""

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.Client(timeout=timeout_s, transport=transport)
        self._ids = itertools.count(1)

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _call(self, method: str, params: List[Any]) -> Any:
        payload: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        resp = self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if "error" in data:
            raise RuntimeError(f"RPC error from {method}: {data['error']}")
        return data.get("result")

    def get_slot(self, commitment: str = "finalized") -> int:
        return int(self._call("getSlot", [{"commitment": commitment}]))

    def get_blockhash_for_slot(self, slot: int) -> str:
        result = self._call(
            "getBlock",
            [
                slot,
                {"encoding": "json", "transactionDetails": "none", "rewards": False},
            ],
        )
        if not result or "blockhash" not in result:
            raise RuntimeError(f"Slot {slot}: getBlock returned no blockhash.")
        return result["blockhash"]


def load_blockhash_from_feed_file(path: str, slot_hint: Optional[int] = None) -> str:
    """
    Offline source for a blockhash. Accepts:
    1) a raw blockhash string
    2) {"blockhash": "..."} optionally with "slot" (checked against slot_hint)
    3) {"result": {"blockhash": "..."}} (a saved getBlock response)
    4) {"blocks": {"<slot>": {"blockhash": "..."}}} (needs slot_hint)
    """
    with open(path, "r", encoding="utf-8") as f:
        raw = f.read().strip()

    if raw and raw[0] != "{":
        return raw

    try:
        j = json.loads(raw)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"Block feed file is not valid JSON or raw string: {e}")

    if isinstance(j, dict):
        if isinstance(j.get("blockhash"), str):
            if slot_hint is not None and "slot" in j and int(j["slot"]) != int(slot_hint):
                raise RuntimeError(
                    f"Block feed slot mismatch: file slot={j['slot']} vs expected slot={slot_hint}"
                )
            return j["blockhash"]

        result = j.get("result")
        if isinstance(result, dict) and isinstance(result.get("blockhash"), str):
            return result["blockhash"]

        blocks = j.get("blocks")
        if slot_hint is not None and isinstance(blocks, dict):
            block_obj = blocks.get(str(int(slot_hint)))
            if isinstance(block_obj, dict) and isinstance(block_obj.get("blockhash"), str):
                return block_obj["blockhash"]

    raise RuntimeError(
        "Could not find a blockhash in block feed file. "
        "Expected raw string or JSON with blockhash/result.blockhash/(blocks[slot].blockhash)."
    )
