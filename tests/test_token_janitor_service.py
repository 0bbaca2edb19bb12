"""
Tests for admin refresh token cleanup
"""
import pytest
from datetime import timedelta

from src.database.crud import create_refresh_token, delete_refresh_token, get_refresh_token
from src.services.token_janitor_service import purge_expired_refresh_tokens
from src.utils.timeutils import as_utc, utcnow


@pytest.mark.asyncio
async def test_default_ttl_is_thirty_days(db_session):
    before = utcnow()
    record = await create_refresh_token(db_session, "fresh-token")

    expiry = as_utc(record.expiry_date)
    assert before + timedelta(days=30) <= expiry <= utcnow() + timedelta(days=30)


@pytest.mark.asyncio
async def test_purge_deletes_only_expired(db_session):
    await create_refresh_token(db_session, "live-token")
    await create_refresh_token(db_session, "stale-token", ttl_days=-1)

    deleted = await purge_expired_refresh_tokens(db_session)

    assert deleted == 1
    assert await get_refresh_token(db_session, "stale-token") is None
    assert await get_refresh_token(db_session, "live-token") is not None
    assert await purge_expired_refresh_tokens(db_session) == 0


@pytest.mark.asyncio
async def test_purge_uses_reference_time(db_session):
    await create_refresh_token(db_session, "token", ttl_days=1)

    assert await purge_expired_refresh_tokens(db_session, now=utcnow()) == 0
    assert await purge_expired_refresh_tokens(db_session, now=utcnow() + timedelta(days=2)) == 1


@pytest.mark.asyncio
async def test_logout_delete_is_delete_if_exists(db_session):
    await create_refresh_token(db_session, "session-token")

    assert await delete_refresh_token(db_session, "session-token") is True
    assert await delete_refresh_token(db_session, "session-token") is False
    assert await delete_refresh_token(db_session, "never-issued") is False
