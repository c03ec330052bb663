"""
Unit tests for the one-time access token store.
"""
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from redeem_service.services.tokens import (
    AssetMismatchError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
    TokenStore,
)


@pytest.fixture
def store(clock):
    return TokenStore(ttl_seconds=300, clock=clock)


class TestIssue:
    """Tests for token issuance."""

    def test_issue_binds_asset_and_expiry(self, store, clock):
        token = store.issue("1.jpg")

        assert token.asset_id == "1.jpg"
        assert token.used is False
        assert token.expires_at == clock.now + timedelta(seconds=300)

    def test_token_is_random_uuid4(self, store):
        token = store.issue("1.jpg")

        assert uuid.UUID(token.token).version == 4

    def test_tokens_are_unique(self, store):
        tokens = {store.issue("1.jpg").token for _ in range(500)}

        assert len(tokens) == 500
        assert len(store) == 500

    def test_ttl_override(self, store, clock):
        token = store.issue("1.jpg", ttl_seconds=3600)

        assert token.expires_at == clock.now + timedelta(hours=1)

    def test_ttl_override_of_one_second(self, store, clock):
        token = store.issue("1.jpg", ttl_seconds=1)

        assert token.expires_at == clock.now + timedelta(seconds=1)

    @pytest.mark.parametrize("ttl", [0, -1, -300])
    def test_non_positive_ttl_override_is_rejected(self, store, ttl):
        with pytest.raises(ValueError):
            store.issue("1.jpg", ttl_seconds=ttl)

        assert len(store) == 0

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_default_ttl_is_rejected(self, clock, ttl):
        with pytest.raises(ValueError):
            TokenStore(ttl_seconds=ttl, clock=clock)

    def test_returned_token_is_a_copy(self, store):
        token = store.issue("1.jpg")
        token.used = True
        token.asset_id = "other.jpg"

        # External mutation does not reach the store
        assert store.consume(token.token, "1.jpg").used is True


class TestConsume:
    """Tests for token consumption."""

    def test_consume_once(self, store):
        token = store.issue("1.jpg")

        consumed = store.consume(token.token, "1.jpg")

        assert consumed.used is True

    def test_second_consume_is_rejected(self, store):
        token = store.issue("1.jpg")
        store.consume(token.token, "1.jpg")

        with pytest.raises(TokenAlreadyUsedError):
            store.consume(token.token, "1.jpg")

    def test_unknown_token(self, store):
        with pytest.raises(TokenNotFoundError):
            store.consume(str(uuid.uuid4()), "1.jpg")

    def test_asset_mismatch(self, store):
        token = store.issue("2.png")

        with pytest.raises(AssetMismatchError):
            store.consume(token.token, "1.jpg")

        # A mismatch does not burn the token
        assert store.consume(token.token, "2.png").used is True

    def test_valid_just_before_expiry(self, store, clock):
        token = store.issue("1.jpg")
        clock.advance(seconds=299)

        assert store.consume(token.token, "1.jpg").used is True

    def test_expired_at_exact_expiry(self, store, clock):
        token = store.issue("1.jpg")
        clock.advance(seconds=300)

        with pytest.raises(TokenExpiredError):
            store.consume(token.token, "1.jpg")

    def test_expired_token_is_evicted(self, store, clock):
        token = store.issue("1.jpg")
        clock.advance(minutes=6)

        with pytest.raises(TokenExpiredError):
            store.consume(token.token, "1.jpg")

        assert len(store) == 0
        with pytest.raises(TokenNotFoundError):
            store.consume(token.token, "1.jpg")

    def test_expiry_wins_over_used_and_mismatch(self, store, clock):
        used = store.issue("1.jpg")
        store.consume(used.token, "1.jpg")
        mismatched = store.issue("1.jpg")
        clock.advance(minutes=10)

        with pytest.raises(TokenExpiredError):
            store.consume(used.token, "1.jpg")
        with pytest.raises(TokenExpiredError):
            store.consume(mismatched.token, "2.png")

    def test_concurrent_consumes_have_exactly_one_winner(self, store):
        token = store.issue("1.jpg")

        def attempt(_):
            try:
                store.consume(token.token, "1.jpg")
                return "ok"
            except TokenAlreadyUsedError:
                return "used"

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = list(pool.map(attempt, range(64)))

        assert outcomes.count("ok") == 1
        assert outcomes.count("used") == 63


class TestHousekeeping:
    """Tests for lookup and purge."""

    def test_get_returns_live_token(self, store):
        token = store.issue("1.jpg")

        assert store.get(token.token).asset_id == "1.jpg"
        assert store.get("missing") is None

    def test_get_evicts_expired_token(self, store, clock):
        token = store.issue("1.jpg")
        clock.advance(minutes=5)

        assert store.get(token.token) is None
        assert len(store) == 0

    def test_purge_expired(self, store, clock):
        store.issue("1.jpg")
        store.issue("1.jpg", ttl_seconds=60)
        clock.advance(seconds=120)
        fresh = store.issue("2.png")

        assert store.purge_expired() == 1
        assert len(store) == 2
        assert store.get(fresh.token) is not None
