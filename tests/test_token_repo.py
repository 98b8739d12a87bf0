"""Tests for the token repository and the transaction helper."""

import uuid
from datetime import timedelta, timezone

import pytest

from taskflow.core.clock import as_utc, utcnow
from taskflow.core.exceptions import ConflictError, ValidationError
from taskflow.core.security import digest_secret
from taskflow.database import transaction
from taskflow.models.token import AuthTokenKind
from taskflow.repositories.token_repo import TokenFilter, TokenRepository


def _future(days=1):
    return utcnow() + timedelta(days=days)


@pytest.fixture
def repo(session):
    return TokenRepository(session)


async def _store(repo, user_id, kind=AuthTokenKind.REFRESH, secret=None, expires_at=None):
    async with transaction(repo.session):
        return await repo.create_token(
            user_id=user_id,
            kind=kind,
            secret_digest=digest_secret(secret or uuid.uuid4().hex),
            expires_at=expires_at or _future(),
            user_agent="pytest",
            ip_address="127.0.0.1",
        )


@pytest.mark.asyncio
async def test_create_and_find_by_digest(repo, user):
    created = await _store(repo, user.id, secret="s3cret")

    found = await repo.find_by_digest(digest_secret("s3cret"))

    assert found is not None
    assert found.id == created.id
    assert found.user_id == user.id
    assert found.kind == AuthTokenKind.REFRESH
    assert found.user_agent == "pytest"
    assert found.ip_address == "127.0.0.1"
    assert found.created_at is not None


@pytest.mark.asyncio
async def test_find_returns_expired_rows(repo, user):
    await _store(repo, user.id, secret="old", expires_at=utcnow() - timedelta(minutes=1))

    found = await repo.find_by_digest(digest_secret("old"))

    assert found is not None
    assert found.is_expired()


@pytest.mark.asyncio
async def test_find_unknown_digest(repo):
    assert await repo.find_by_digest(digest_secret("missing")) is None


@pytest.mark.asyncio
async def test_unknown_kind_rejected(repo, user):
    with pytest.raises(ValidationError):
        await _store(repo, user.id, kind="WORKSPACE_INVITE")


@pytest.mark.asyncio
async def test_digest_collision_raises_conflict(repo, user, stored_tokens):
    await _store(repo, user.id, secret="same")

    async with transaction(repo.session):
        with pytest.raises(ConflictError):
            await repo.create_token(
                user_id=user.id,
                kind=AuthTokenKind.REFRESH,
                secret_digest=digest_secret("same"),
                expires_at=_future(),
            )
        # Savepoint rollback leaves the outer transaction usable
        await repo.create_token(
            user_id=user.id,
            kind=AuthTokenKind.REFRESH,
            secret_digest=digest_secret("different"),
            expires_at=_future(),
        )

    assert len(await stored_tokens()) == 2


@pytest.mark.asyncio
async def test_delete_by_id_is_idempotent(repo, user, stored_tokens):
    token = await _store(repo, user.id)

    async with transaction(repo.session):
        assert await repo.delete_by_id(token.id) == 1
        assert await repo.delete_by_id(token.id) == 0

    assert await stored_tokens() == []


@pytest.mark.asyncio
async def test_delete_by_filter_uses_and_semantics(repo, user, other_user, stored_tokens):
    await _store(repo, user.id, kind=AuthTokenKind.REFRESH)
    await _store(repo, user.id, kind=AuthTokenKind.REFRESH)
    await _store(repo, user.id, kind=AuthTokenKind.RESET_PASSWORD)
    await _store(repo, other_user.id, kind=AuthTokenKind.REFRESH)

    async with transaction(repo.session):
        count = await repo.delete_by_filter(TokenFilter(user_id=user.id, kind=AuthTokenKind.REFRESH))

    assert count == 2
    remaining = await stored_tokens()
    assert sorted((t.user_id == user.id, t.kind) for t in remaining) == [
        (False, AuthTokenKind.REFRESH),
        (True, AuthTokenKind.RESET_PASSWORD),
    ]


@pytest.mark.asyncio
async def test_delete_by_filter_digest(repo, user, stored_tokens):
    await _store(repo, user.id, secret="keep")
    await _store(repo, user.id, secret="drop")

    async with transaction(repo.session):
        count = await repo.delete_by_filter(TokenFilter(secret_digest=digest_secret("drop")))

    assert count == 1
    assert [t.secret_digest for t in await stored_tokens()] == [digest_secret("keep")]


@pytest.mark.asyncio
async def test_delete_by_filter_digest_respects_kind(repo, user, stored_tokens):
    await _store(repo, user.id, kind=AuthTokenKind.RESET_PASSWORD, secret="reset")

    async with transaction(repo.session):
        count = await repo.delete_by_filter(TokenFilter(
            secret_digest=digest_secret("reset"),
            kind=AuthTokenKind.REFRESH,
        ))

    assert count == 0
    assert len(await stored_tokens()) == 1


@pytest.mark.asyncio
async def test_empty_filter_rejected(repo, user, stored_tokens):
    await _store(repo, user.id)

    with pytest.raises(ValidationError):
        await repo.delete_by_filter(TokenFilter())

    assert len(await stored_tokens()) == 1


@pytest.mark.asyncio
async def test_delete_expired(repo, user, stored_tokens):
    await _store(repo, user.id, secret="live")
    await _store(repo, user.id, secret="dead", expires_at=utcnow() - timedelta(seconds=1))

    async with transaction(repo.session):
        assert await repo.delete_expired() == 1

    assert [t.secret_digest for t in await stored_tokens()] == [digest_secret("live")]


@pytest.mark.asyncio
async def test_transaction_rolls_back_on_error(repo, user, stored_tokens):
    with pytest.raises(RuntimeError):
        async with transaction(repo.session):
            await repo.create_token(
                user_id=user.id,
                kind=AuthTokenKind.REFRESH,
                secret_digest=digest_secret("doomed"),
                expires_at=_future(),
            )
            raise RuntimeError("boom")

    assert await stored_tokens() == []


@pytest.mark.asyncio
async def test_nested_transaction_joins_outer(repo, user, stored_tokens):
    with pytest.raises(RuntimeError):
        async with transaction(repo.session):
            async with transaction(repo.session):
                await repo.create_token(
                    user_id=user.id,
                    kind=AuthTokenKind.REFRESH,
                    secret_digest=digest_secret("inner"),
                    expires_at=_future(),
                )
            # Inner block finished without committing
            raise RuntimeError("outer fails")

    assert await stored_tokens() == []


@pytest.mark.asyncio
async def test_expiry_round_trips_as_utc(repo, user, stored_tokens):
    expires_at = utcnow() + timedelta(minutes=30)
    await _store(repo, user.id, secret="aware", expires_at=expires_at)

    stored = (await stored_tokens())[0]

    assert as_utc(stored.expires_at) == expires_at
    assert as_utc(stored.created_at) <= utcnow()
    assert not stored.is_expired(utcnow())
    assert not stored.is_expired(expires_at - timedelta(seconds=1))
    assert stored.is_expired(expires_at)
    # Same instant expressed in another zone
    assert stored.is_expired(expires_at.astimezone(timezone(timedelta(hours=2))))


@pytest.mark.asyncio
async def test_delete_expired_with_explicit_cutoff(repo, user, stored_tokens):
    soon = utcnow() + timedelta(minutes=5)
    await _store(repo, user.id, secret="soon", expires_at=soon)
    await _store(repo, user.id, secret="later", expires_at=utcnow() + timedelta(days=1))

    async with transaction(repo.session):
        assert await repo.delete_expired(now=soon + timedelta(seconds=1)) == 1

    assert [t.secret_digest for t in await stored_tokens()] == [digest_secret("later")]
