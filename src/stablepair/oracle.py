from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import OracleError, RemoteCallError, TransportFailure
from .models import Asset, Quote
from .units import Number, from_e6, to_e6


class QuoteOracle:
    """Forward pricing through the service. No caching, no retries."""

    def __init__(self, service) -> None:
        self.service = service

    async def quote_forward(self, asset_in: Asset, asset_out: Asset, amount_in: Number) -> Quote:
        dx_e6 = to_e6(amount_in)
        try:
            response = await self.service.quote_live(asset_in, asset_out, dx_e6)
        except (TransportFailure, RemoteCallError) as exc:
            raise OracleError(str(exc), cause=exc) from exc
        return self.parse_quote(response, dx_e6)

    def parse_quote(self, response: Any, dx_e6: int) -> Quote:
        if not isinstance(response, dict):
            raise OracleError("quote response is not an object")
        try:
            amount_out = from_e6(int(response["dy_e6"]))
            fee = from_e6(int(response["fee_e6"]))
            price = from_e6(int(response["price_e6"]))
        except KeyError as exc:
            raise OracleError(f"quote response missing {exc.args[0]}") from None
        except (TypeError, ValueError, InvalidOperation):
            raise OracleError("quote response amounts are not integers") from None

        if fee < 0 or amount_out < 0:
            raise OracleError("quote response has negative amounts")
        if dx_e6 > 0 and price <= Decimal(0):
            raise OracleError("quote response has non-positive price")
        return Quote(amount_out=amount_out, fee=fee, price=price)
