"""Tests for the server-side session store."""

from datetime import timedelta

import pytest

from app.auth.sessions import SessionStore, UserSession


@pytest.mark.asyncio
async def test_create_and_resolve(session_factory, make_user):
    user = await make_user()
    async with session_factory() as session:
        sid = await SessionStore(session, timedelta(hours=1)).create(user.id)
    assert len(sid) >= 32
    async with session_factory() as session:
        assert await SessionStore(session, timedelta(hours=1)).resolve(sid) == user.id


@pytest.mark.asyncio
async def test_resolve_unknown_or_empty(session_factory):
    async with session_factory() as session:
        store = SessionStore(session, timedelta(hours=1))
        assert await store.resolve(None) is None
        assert await store.resolve("") is None
        assert await store.resolve("no-such-session") is None


@pytest.mark.asyncio
async def test_expired_session_resolves_to_none_and_is_removed(session_factory, make_user):
    user = await make_user()
    async with session_factory() as session:
        sid = await SessionStore(session, timedelta(seconds=-1)).create(user.id)
    async with session_factory() as session:
        store = SessionStore(session, timedelta(hours=1))
        assert await store.resolve(sid) is None
    async with session_factory() as session:
        assert await session.get(UserSession, sid) is None


@pytest.mark.asyncio
async def test_destroy(session_factory, make_user):
    user = await make_user()
    async with session_factory() as session:
        store = SessionStore(session, timedelta(hours=1))
        sid = await store.create(user.id)
        await store.destroy(sid)
        assert await store.resolve(sid) is None


@pytest.mark.asyncio
async def test_purge_expired_keeps_live_sessions(session_factory, make_user):
    user = await make_user()
    async with session_factory() as session:
        await SessionStore(session, timedelta(seconds=-1)).create(user.id)
        await SessionStore(session, timedelta(seconds=-1)).create(user.id)
        live = await SessionStore(session, timedelta(hours=1)).create(user.id)
    async with session_factory() as session:
        store = SessionStore(session, timedelta(hours=1))
        assert await store.purge_expired() == 2
        assert await store.resolve(live) == user.id
