import dataclasses
from datetime import datetime, timezone

import pytest

from tripwatch_storage import codec
from tripwatch_storage.errors import TokensNotFoundError
from tripwatch_storage.models import UserTokens


def make_tokens(**kwargs):
    data = dict(
        chat_id=12345,
        access_token="access-1",
        refresh_token="refresh-1",
        user_id="bbc-user-42",
    )
    data.update(kwargs)
    return UserTokens(**data)


class TestTokenRepository:

    def test_get_missing(self, db):
        with pytest.raises(TokensNotFoundError):
            db.tokens.get(12345)

    def test_store_then_get(self, db):
        stored = db.tokens.store(make_tokens(datadome="dd", app_token="app"))

        tokens = db.tokens.get(12345)
        assert tokens == stored
        assert tokens.datadome == "dd"
        assert tokens.app_token == "app"
        assert tokens.created_at is not None
        assert tokens.updated_at == tokens.created_at

    def test_blank_aux_tokens_stored_as_null(self, db, executor):
        db.tokens.store(make_tokens())

        row = executor.tables["user_tokens"][12345]
        assert row["datadome"] is None
        assert row["app_token"] is None
        assert db.tokens.get(12345).datadome == ""

    def test_store_refreshes_updated_at_only(self, db):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        stored = db.tokens.store(make_tokens(created_at=created, updated_at=created))

        assert stored.created_at == created
        assert stored.updated_at > created
        assert db.tokens.get(12345).created_at == created

    def test_store_overwrites_previous_set(self, db):
        db.tokens.store(make_tokens(datadome="old"))
        db.tokens.store(make_tokens(access_token="access-2", datadome=""))

        tokens = db.tokens.get(12345)
        assert tokens.access_token == "access-2"
        assert tokens.datadome == ""

    def test_refresh_keeps_created_at_when_carried_forward(self, db):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        db.tokens.store(make_tokens(created_at=created))

        current = db.tokens.get(12345)
        db.tokens.store(dataclasses.replace(current, access_token="access-2"))

        assert db.tokens.get(12345).created_at == created

    def test_fresh_token_set_resets_created_at(self, db):
        created = datetime(2024, 1, 1, tzinfo=timezone.utc)
        db.tokens.store(make_tokens(created_at=created))

        db.tokens.store(make_tokens(access_token="access-2"))

        tokens = db.tokens.get(12345)
        assert tokens.created_at > created
        assert tokens.created_at == tokens.updated_at

    def test_store_does_not_mutate_argument(self, db):
        tokens = make_tokens()
        db.tokens.store(tokens)
        assert tokens.created_at is None
        assert tokens.updated_at is None

    def test_delete(self, db):
        db.tokens.store(make_tokens())
        db.tokens.delete(12345)
        with pytest.raises(TokensNotFoundError):
            db.tokens.get(12345)

    def test_delete_missing_is_noop(self, db):
        db.tokens.delete(999)

    def test_updated_at_uses_store_precision(self, db):
        stored = db.tokens.store(make_tokens())
        assert stored.updated_at.microsecond == 0
        assert stored.updated_at <= codec.utcnow()
