from unittest.mock import Mock

import pytest
from sqlalchemy import Update, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.errors import AppError, AuthErrorCode
from backend.app.db.base import utcnow
from backend.app.models.refresh_token import RefreshToken
from backend.app.security import hashing
from backend.app.services.auth import AuthService, hash_refresh_token


@pytest.fixture
def service(db, settings):
    return AuthService(db, settings)


async def active_tokens(db):
    result = await db.execute(
        select(RefreshToken)
        .where(RefreshToken.revoked_at.is_(None))
        .execution_options(populate_existing=True)
    )
    return result.scalars().all()


async def test_refresh_loses_race_to_concurrent_exchange(service, db, database, user, monkeypatch):
    tokens = await service.issue_tokens(user)
    original_execute = AsyncSession.execute
    raced = []

    async def execute(self, statement, *args, **kwargs):
        # Another request rotates the same token between our read and our UPDATE
        if isinstance(statement, Update) and not raced:
            raced.append(True)
            async with database.session() as other:
                await other.execute(
                    update(RefreshToken)
                    .where(RefreshToken.token_hash == hash_refresh_token(tokens.refresh_token))
                    .values(revoked_at=utcnow())
                )
                await other.commit()
        return await original_execute(self, statement, *args, **kwargs)

    monkeypatch.setattr(AsyncSession, "execute", execute)

    with pytest.raises(AppError) as exc_info:
        await service.refresh(tokens.refresh_token)

    assert raced
    assert exc_info.value.kind is AuthErrorCode.REFRESH_TOKEN_REUSED
    monkeypatch.undo()
    assert await active_tokens(db) == []


async def test_refresh_rotates_within_family(service, db, user):
    first = await service.issue_tokens(user)

    second = await service.refresh(first.refresh_token)

    (active,) = await active_tokens(db)
    assert active.token_hash == hash_refresh_token(second.refresh_token)


async def test_unknown_email_still_pays_for_a_password_check(service, monkeypatch):
    dummy_verify = Mock()
    monkeypatch.setattr(hashing.pwd_context, "dummy_verify", dummy_verify)

    with pytest.raises(AppError) as exc_info:
        await service.authenticate("nobody@example.com", "whatever")

    assert exc_info.value.kind is AuthErrorCode.INVALID_CREDENTIALS
    dummy_verify.assert_called_once_with()


def test_account_without_local_password_never_matches(monkeypatch):
    dummy_verify = Mock()
    monkeypatch.setattr(hashing.pwd_context, "dummy_verify", dummy_verify)

    assert hashing.verify_password("anything", None) is False
    dummy_verify.assert_called_once_with()
