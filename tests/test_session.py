import unittest
from decimal import Decimal

from stablepair.config import ClientConfig
from stablepair.errors import RemoteCallError
from stablepair.models import Asset, SwapEstimate
from stablepair.session import StablePairSession

from .fakes import FakeEventLog, FakeLedger, FakePool, RecordingSleep


class _FakeService(FakePool, FakeLedger, FakeEventLog):
    def __init__(self, reads) -> None:
        FakePool.__init__(self, rate="1", fee_bps=0)
        FakeLedger.__init__(self, reads)
        FakeEventLog.__init__(self, [])
        self.swaps = []
        self.swap_error = None
        self.pool_info = {
            "a_amp": 200,
            "fee_bps": 4,
            "reserve_usdc": 1_000_000_000,
            "reserve_usdt": 2_000_000_000,
            "total_shares": 3_000_000_000,
            "virtual_price_e6": 1_000_100,
        }
        self.reserves = {"usdc": 1_000_000_000, "usdt": 2_000_000_000}
        self.stats = {}
        self.position = {"shares": 0}

    async def swap_live(self, owner, token_in, token_out, dx_e6, min_dy_e6):
        if self.swap_error is not None:
            raise self.swap_error
        self.swaps.append((owner, token_in, token_out, dx_e6, min_dy_e6))
        return {"dy_e6": dx_e6}

    async def add_liquidity(self, owner, usdc_e6, usdt_e6):
        return {"shares": usdc_e6 + usdt_e6}

    async def remove_liquidity(self, owner, shares_e6):
        return {"usdc": shares_e6 // 2, "usdt": shares_e6 // 2}

    async def claim_fee(self, owner):
        return [1_000, 2_000]

    async def get_pool_info(self):
        return self.pool_info

    async def get_pool_reserves_live(self):
        return self.reserves

    async def get_stats_snapshot(self):
        return self.stats

    async def get_user_position(self, owner):
        return self.position

    async def get_unclaimed_fee(self, owner):
        return {"usdc": 1_250_000, "usdt": 0}


FUNDED = {"usdc": 100_000_000, "usdt": 0}
SPENT = {"usdc": 90_000_000, "usdt": 10_000_000}


class SessionSwapTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.service = _FakeService([FUNDED])
        self.session = StablePairSession(ClientConfig(), service=self.service, sleep=RecordingSleep())
        await self.session.refresh_and_observe("alice", tries=1)

    async def test_exact_output_defaults_to_available_balance(self) -> None:
        estimate = await self.session.solve_exact_output(Asset.USDC, Asset.USDT, 500)
        self.assertTrue(estimate.bound_limited)
        self.assertEqual(estimate.amount_in, Decimal(100))

    async def test_submit_swap_sends_min_out_and_refreshes(self) -> None:
        self.service.reads = [FUNDED, SPENT]
        estimate = await self.session.solve_exact_input(Asset.USDC, Asset.USDT, 10)

        received = await self.session.submit_swap("alice", estimate, slippage_pct=Decimal("1"))

        self.assertEqual(received, Decimal(10))
        owner, token_in, token_out, dx_e6, min_dy_e6 = self.service.swaps[0]
        self.assertEqual((owner, token_in, token_out), ("alice", Asset.USDC, Asset.USDT))
        self.assertEqual(dx_e6, 10_000_000)
        self.assertEqual(min_dy_e6, 9_900_000)
        self.assertEqual(self.session.balances.usdc, Decimal(90))

    async def test_submit_swap_rejects_overspend(self) -> None:
        estimate = await self.session.solve_exact_input(Asset.USDC, Asset.USDT, 150)
        with self.assertRaises(ValueError):
            await self.session.submit_swap("alice", estimate)
        self.assertEqual(self.service.swaps, [])

    async def test_submit_swap_rejects_empty_estimate(self) -> None:
        with self.assertRaises(ValueError):
            await self.session.submit_swap("alice", SwapEstimate.zero(Asset.USDC, Asset.USDT))

    async def test_swap_failure_propagates(self) -> None:
        self.service.swap_error = RemoteCallError("swap_live", "SlippageExceeded")
        estimate = await self.session.solve_exact_input(Asset.USDC, Asset.USDT, 10)
        with self.assertRaises(RemoteCallError):
            await self.session.submit_swap("alice", estimate)


class SessionQuoteBoundTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.service = _FakeService([{"usdc": 0, "usdt": 0}])
        self.session = StablePairSession(ClientConfig(), service=self.service, sleep=RecordingSleep())

    async def test_exact_output_unbounded_before_first_refresh(self) -> None:
        estimate = await self.session.solve_exact_output(Asset.USDC, Asset.USDT, 100)

        self.assertGreater(estimate.amount_in, 0)
        self.assertFalse(estimate.bound_limited)
        self.assertTrue(estimate.converged)
        self.assertAlmostEqual(estimate.amount_out, Decimal(100), delta=Decimal("0.0001"))
        self.assertTrue(self.service.quote_calls)

    async def test_exact_output_observed_zero_balance_is_zero_swap(self) -> None:
        await self.session.refresh_and_observe("alice", tries=1)
        estimate = await self.session.solve_exact_output(Asset.USDC, Asset.USDT, 100)

        self.assertEqual(estimate.amount_in, Decimal(0))
        self.assertEqual(estimate.amount_out, Decimal(0))
        self.assertEqual(self.service.quote_calls, [])


class SessionPoolTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.service = _FakeService([FUNDED])
        self.session = StablePairSession(ClientConfig(), service=self.service, sleep=RecordingSleep())

    async def test_pool_info_is_natural(self) -> None:
        info = await self.session.pool_info()
        self.assertEqual(info.amp, 200)
        self.assertEqual(info.reserve_usdt, Decimal(2000))
        self.assertEqual(info.virtual_price, Decimal("1.0001"))
        self.assertEqual(info.tvl, Decimal(3000))

    async def test_pool_reserves_use_metadata_decimals(self) -> None:
        self.service.meta = {"dec_usdc": 6, "dec_usdt": 9}
        reserves = await self.session.pool_reserves()
        self.assertEqual(reserves.usdc, Decimal(1000))
        self.assertEqual(reserves.usdt, Decimal(2))

    async def test_malformed_pool_payloads_raise_remote_error(self) -> None:
        self.service.pool_info = None
        with self.assertRaises(RemoteCallError):
            await self.session.pool_info()
        self.service.reserves = [1, 2]
        with self.assertRaises(RemoteCallError):
            await self.session.pool_reserves()

    async def test_stats_snapshot_from_record(self) -> None:
        self.service.stats = {
            "now_sec": 1_750_000_000,
            "fee_24h_e6": 12_500_000,
            "swaps_24h": 42,
            "vol_7d_e6": 700_000_000,
            "tvl_e6": 3_000_000_000,
            "apy_24h_bp": 325,
            "vol_24h_e6": 100_000_000,
            "fee_7d_e6": 80_000_000,
        }
        stats = await self.session.pool_stats()

        self.assertEqual(stats.tvl, Decimal(3000))
        self.assertEqual(stats.volume_24h, Decimal(100))
        self.assertEqual(stats.volume_7d, Decimal(700))
        self.assertEqual(stats.fee_24h, Decimal("12.5"))
        self.assertEqual(stats.fee_7d, Decimal(80))
        self.assertEqual(stats.swaps_24h, 42)
        self.assertEqual(stats.apy_24h_pct, Decimal("3.25"))

    async def test_stats_snapshot_from_positional_values(self) -> None:
        self.service.stats = [1_750_000_000, 3_000_000_000, 100_000_000, 700_000_000, 12_500_000, 80_000_000, 42, 325]
        stats = await self.session.pool_stats()

        self.assertEqual(stats.now_sec, 1_750_000_000)
        self.assertEqual(stats.tvl, Decimal(3000))
        self.assertEqual(stats.fee_24h, Decimal("12.5"))
        self.assertEqual(stats.apy_24h_pct, Decimal("3.25"))

    async def test_stats_snapshot_rejects_scalars(self) -> None:
        self.service.stats = None
        with self.assertRaises(RemoteCallError):
            await self.session.pool_stats()

    async def test_user_position_and_unclaimed_fee(self) -> None:
        self.service.position = {"shares": 2_500_000}
        self.assertEqual(await self.session.user_position("alice"), Decimal("2.5"))
        self.service.position = 7_000_000
        self.assertEqual(await self.session.user_position("alice"), Decimal(7))

        fees = await self.session.unclaimed_fee("alice")
        self.assertEqual(fees.usdc, Decimal("1.25"))
        self.assertEqual(fees.usdt, Decimal(0))

    async def test_liquidity_round_trip(self) -> None:
        shares = await self.session.add_liquidity("alice", 5, "5")
        amounts = await self.session.remove_liquidity("alice", shares)
        fees = await self.session.claim_fee("alice")

        self.assertEqual(shares, Decimal(10))
        self.assertEqual(amounts.usdc, Decimal(5))
        self.assertEqual(fees.usdt, Decimal("0.002"))
        self.assertEqual(len(self.service.refresh_calls), 3)

    async def test_liquidity_requires_positive_amounts(self) -> None:
        with self.assertRaises(ValueError):
            await self.session.add_liquidity("alice", 0, 0)
        with self.assertRaises(ValueError):
            await self.session.remove_liquidity("alice", -1)

    async def test_context_manager_without_transport(self) -> None:
        async with StablePairSession(service=self.service) as session:
            page = await session.load_first_page()
        self.assertEqual(page.events, [])
        self.assertFalse(page.has_more)


if __name__ == "__main__":
    unittest.main()
