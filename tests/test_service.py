import unittest

import httpx

from stablepair.errors import RemoteCallError, TransportFailure
from stablepair.http_client import HttpClient
from stablepair.models import Asset
from stablepair.service import PoolServiceClient


class _FakeHttp:
    def __init__(self, responses):
        self.responses = responses
        self.payloads = []

    async def post_json(self, url, payload):
        self.payloads.append(payload)
        return self.responses[len(self.payloads) - 1]


class PoolServiceClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_quote_live_encodes_variants(self) -> None:
        http = _FakeHttp([{"jsonrpc": "2.0", "id": 1, "result": {"dy_e6": 1, "fee_e6": 0, "price_e6": 1}}])
        client = PoolServiceClient(http, "https://pool.example/")

        result = await client.quote_live(Asset.USDC, Asset.USDT, 1_000_000)

        self.assertEqual(result["dy_e6"], 1)
        self.assertEqual(http.payloads[0]["method"], "quote_live")
        self.assertEqual(http.payloads[0]["params"], [{"USDC": None}, {"USDT": None}, 1_000_000])
        self.assertEqual(client.base_url, "https://pool.example")

    async def test_rpc_error_envelope_raises(self) -> None:
        http = _FakeHttp([{"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "canister trapped"}}])
        with self.assertRaises(RemoteCallError) as ctx:
            await PoolServiceClient(http, "https://pool").get_pool_info()
        self.assertEqual(ctx.exception.message, "canister trapped")

    async def test_err_variant_raises_for_mutations(self) -> None:
        http = _FakeHttp([{"result": {"err": "SlippageExceeded"}}])
        with self.assertRaises(RemoteCallError) as ctx:
            await PoolServiceClient(http, "https://pool").swap_live("alice", Asset.USDC, Asset.USDT, 10, 9)
        self.assertEqual(ctx.exception.message, "SlippageExceeded")
        args = http.payloads[0]["params"][0]
        self.assertEqual(args["account"], {"owner": "alice", "subaccount": []})
        self.assertEqual(args["min_dy_e6"], 9)

    async def test_ok_variant_is_unwrapped(self) -> None:
        http = _FakeHttp([{"result": {"ok": {"dy_e6": 99}}}])
        result = await PoolServiceClient(http, "https://pool").swap_live("alice", Asset.USDT, Asset.USDC, 100, 90)
        self.assertEqual(result, {"dy_e6": 99})

    async def test_optional_token_meta_shapes(self) -> None:
        meta = {"ckusdc": "a", "ckusdt": "b", "dec_usdc": 6, "dec_usdt": 6}
        http = _FakeHttp([{"result": []}, {"result": [meta]}, {"result": meta}])
        client = PoolServiceClient(http, "https://pool")

        self.assertIsNone(await client.get_token_meta())
        self.assertEqual(await client.get_token_meta(), meta)
        self.assertEqual(await client.get_token_meta(), meta)

    async def test_position_reads_send_account(self) -> None:
        http = _FakeHttp([{"result": {"shares": 5}}, {"result": {"usdc": 1, "usdt": 2}}, {"result": [1, 2]}])
        client = PoolServiceClient(http, "https://pool")

        self.assertEqual(await client.get_user_position("alice"), {"shares": 5})
        self.assertEqual(await client.get_unclaimed_fee("alice"), {"usdc": 1, "usdt": 2})
        self.assertEqual(await client.get_stats_snapshot(), [1, 2])
        self.assertEqual(
            [payload["method"] for payload in http.payloads],
            ["get_user_position", "get_unclaimed_fee", "get_stats_snapshot"],
        )
        self.assertEqual(http.payloads[1]["params"], [{"owner": "alice", "subaccount": []}])
        self.assertEqual(http.payloads[2]["params"], [])

    async def test_event_lists_default_to_empty(self) -> None:
        http = _FakeHttp([{"result": None}])
        self.assertEqual(await PoolServiceClient(http, "https://pool").get_events(0, 20), [])


class HttpClientTests(unittest.IsolatedAsyncioTestCase):
    async def test_non_200_is_transport_failure(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(503, text="overloaded"))
        http = HttpClient(timeout=1.0, user_agent="test", transport=transport)
        try:
            with self.assertRaises(TransportFailure) as ctx:
                await http.post_json("https://pool", {"method": "x"})
        finally:
            await http.aclose()
        self.assertEqual(ctx.exception.http_status, 503)

    async def test_invalid_json_is_transport_failure(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        http = HttpClient(timeout=1.0, user_agent="test", transport=transport)
        try:
            with self.assertRaises(TransportFailure):
                await http.get_json("https://pool")
        finally:
            await http.aclose()

    async def test_connection_errors_are_wrapped(self) -> None:
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        http = HttpClient(timeout=1.0, user_agent="test", transport=httpx.MockTransport(refuse))
        try:
            with self.assertRaises(TransportFailure) as ctx:
                await http.post_json("https://pool", {})
        finally:
            await http.aclose()
        self.assertIsInstance(ctx.exception.cause, httpx.ConnectError)

    async def test_sends_user_agent_and_decodes(self) -> None:
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["User-Agent"]
            return httpx.Response(200, json={"result": 1})

        http = HttpClient(timeout=1.0, user_agent="stablepair-test", transport=httpx.MockTransport(handler))
        try:
            body = await http.post_json("https://pool", {})
        finally:
            await http.aclose()
        self.assertEqual(body, {"result": 1})
        self.assertEqual(seen["ua"], "stablepair-test")


if __name__ == "__main__":
    unittest.main()
