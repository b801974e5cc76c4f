"""JSON-RPC binding for the remote pool/ledger service.

Every method returns the raw decoded payload; unit conversion and shape
validation happen in the components above this layer.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Optional

from .errors import RemoteCallError
from .http_client import HttpClient
from .models import Asset


def account_of(owner: str) -> Dict[str, Any]:
    return {"owner": owner, "subaccount": []}


def unwrap_result(method: str, result: Any) -> Any:
    """Unwrap ``{"ok": value}`` / ``{"err": message}`` result variants."""
    if isinstance(result, dict):
        if "err" in result:
            raise RemoteCallError(method, str(result["err"]))
        if "ok" in result:
            return result["ok"]
    return result


class PoolServiceClient:
    def __init__(self, http: HttpClient, base_url: str) -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")
        self._ids = itertools.count(1)

    async def _call(self, method: str, *params: Any) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params),
        }
        response = await self.http.post_json(self.base_url, payload)
        if not isinstance(response, dict):
            raise RemoteCallError(method, "response is not a JSON-RPC envelope")
        if response.get("error") is not None:
            error = response["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise RemoteCallError(method, str(message))
        return response.get("result")

    # Pricing and swaps

    async def quote_live(self, token_in: Asset, token_out: Asset, dx_e6: int) -> Any:
        return await self._call("quote_live", token_in.variant(), token_out.variant(), dx_e6)

    async def swap_live(self, owner: str, token_in: Asset, token_out: Asset, dx_e6: int, min_dy_e6: int) -> Any:
        args = {
            "account": account_of(owner),
            "token_in": token_in.variant(),
            "token_out": token_out.variant(),
            "dx_e6": dx_e6,
            "min_dy_e6": min_dy_e6,
        }
        return unwrap_result("swap_live", await self._call("swap_live", args))

    # Available balance

    async def refresh_available_for(self, user: str) -> Any:
        return unwrap_result("refresh_available_for", await self._call("refresh_available_for", user))

    async def get_available_balances_live_for(self, user: str) -> Any:
        return await self._call("get_available_balances_live_for", user)

    # Activity

    async def get_events(self, cursor: int, limit: int) -> List[Any]:
        result = await self._call("get_events", cursor, limit)
        return result if isinstance(result, list) else []

    async def get_events_latest(self, limit: int) -> List[Any]:
        result = await self._call("get_events_latest", limit)
        return result if isinstance(result, list) else []

    # Metadata and pool state

    async def get_token_meta(self) -> Optional[Dict[str, Any]]:
        raw = await self._call("get_token_meta")
        # optional values arrive as [], [value] or the bare value
        if isinstance(raw, list):
            raw = raw[0] if raw else None
        return raw if isinstance(raw, dict) else None

    async def get_pool_info(self) -> Any:
        return await self._call("get_pool_info")

    async def get_pool_reserves_live(self) -> Any:
        return await self._call("get_pool_reserves_live")

    async def get_stats_snapshot(self) -> Any:
        return await self._call("get_stats_snapshot")

    # Positions

    async def get_user_position(self, owner: str) -> Any:
        return await self._call("get_user_position", account_of(owner))

    async def get_unclaimed_fee(self, owner: str) -> Any:
        return await self._call("get_unclaimed_fee", account_of(owner))

    # Liquidity

    async def add_liquidity(self, owner: str, usdc_e6: int, usdt_e6: int) -> Any:
        return unwrap_result("add_liquidity", await self._call("add_liquidity", account_of(owner), usdc_e6, usdt_e6))

    async def remove_liquidity(self, owner: str, shares_e6: int) -> Any:
        return unwrap_result("remove_liquidity", await self._call("remove_liquidity", account_of(owner), shares_e6))

    async def claim_fee(self, owner: str) -> Any:
        return unwrap_result("claim_fee", await self._call("claim_fee", account_of(owner)))
