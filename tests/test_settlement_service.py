"""
Tests for the daily profit settlement
"""
import pytest
from decimal import Decimal

from src.database.crud import get_wallet
from src.services.settlement_service import settle_daily_profits


@pytest.mark.asyncio
async def test_profits_move_into_balance(db_session, make_user):
    user = await make_user(balance="100", profits="25")

    settled = await settle_daily_profits(db_session)

    assert settled == 1
    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("125")
    assert wallet.profits == Decimal("0")


@pytest.mark.asyncio
async def test_second_settlement_changes_nothing(db_session, make_user):
    user = await make_user(balance="100", profits="25")

    await settle_daily_profits(db_session)
    assert await settle_daily_profits(db_session) == 0

    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("125")
    assert wallet.profits == Decimal("0")


@pytest.mark.asyncio
async def test_negative_profits_are_settled_too(db_session, make_user):
    user = await make_user(balance="100", profits="-40")

    await settle_daily_profits(db_session)

    wallet = await get_wallet(db_session, user.id)
    assert wallet.balance == Decimal("60")
    assert wallet.profits == Decimal("0")


@pytest.mark.asyncio
async def test_settlement_covers_every_wallet(db_session, make_user):
    first = await make_user(balance="0", profits="10")
    second = await make_user(balance="5", profits="0")
    third = await make_user(balance="1", profits="2.5")

    assert await settle_daily_profits(db_session) == 2

    assert (await get_wallet(db_session, first.id)).balance == Decimal("10")
    assert (await get_wallet(db_session, second.id)).balance == Decimal("5")
    assert (await get_wallet(db_session, third.id)).balance == Decimal("3.5")
