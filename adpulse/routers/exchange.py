"""
Exchange Rates Router — display-currency conversion rates.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from adpulse.deps import get_exchange
from adpulse.services.exchange_service import ExchangeService

router = APIRouter()


@router.get("")
async def exchange_rates(base: str = "USD", exchange: ExchangeService = Depends(get_exchange)):
    return {"base": base.upper(), "rates": await exchange.get_rates(base)}


@router.get("/convert")
async def convert_amount(
    amount: float = Query(..., ge=0),
    to: str = Query(..., min_length=3, max_length=3),
    base: str = "USD",
    exchange: ExchangeService = Depends(get_exchange),
):
    """Convert a spend figure into the viewer's display currency."""
    try:
        converted = await exchange.convert(amount, to, from_currency=base)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return {"base": base.upper(), "to": to.upper(), "amount": amount, "converted": converted}
