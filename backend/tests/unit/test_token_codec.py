"""Unit tests for TokenCodec and TokenIssuer."""

import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import jwt
import pytest

from storefront.models.user import User
from storefront.services.auth import (
    MalformedTokenError,
    TokenExpiredError,
    TokenSigningError,
)
from storefront.services.tokens import (
    REFRESH_CLAIM,
    TokenClaims,
    TokenCodec,
    TokenIssuer,
    TokenKind,
)

SECRET = "unit-test-secret-" + "x" * 32


@pytest.fixture
def codec() -> TokenCodec:
    return TokenCodec(SECRET, "HS256", default_ttl=timedelta(minutes=15))


@pytest.fixture
def user() -> User:
    return User(
        id=uuid.uuid4(),
        name="Unit",
        email="unit@example.com",
        password_hash="unused",
        is_admin=False,
    )


@pytest.fixture
def issuer(codec) -> TokenIssuer:
    return TokenIssuer(codec, access_ttl=timedelta(minutes=15), refresh_ttl=timedelta(days=30))


class TestTokenCodec:
    """Tests for TokenCodec.issue() / decode()."""

    @pytest.mark.parametrize(
        "ttl",
        [timedelta(seconds=5), timedelta(minutes=15), timedelta(days=365)],
    )
    def test_subject_survives_round_trip(self, codec, ttl):
        subject = str(uuid.uuid4())
        claims = codec.decode(codec.issue({"sub": subject}, ttl=ttl))
        assert claims.subject == subject

    def test_non_string_subject_is_stringified(self, codec):
        claims = codec.decode(codec.issue({"sub": 42}))
        assert claims.subject == "42"

    def test_default_ttl_used_when_omitted(self, codec):
        before = datetime.now(UTC)
        claims = codec.decode(codec.issue({"sub": "1"}))
        lifetime = claims.expires_at - claims.issued_at
        assert lifetime == timedelta(minutes=15)
        assert claims.expires_at > before

    def test_explicit_ttl_applies_to_that_call_only(self, codec):
        long_claims = codec.decode(codec.issue({"sub": "1"}, ttl=timedelta(days=30)))
        default_claims = codec.decode(codec.issue({"sub": "1"}))

        assert long_claims.expires_at - long_claims.issued_at == timedelta(days=30)
        assert default_claims.expires_at - default_claims.issued_at == timedelta(minutes=15)
        assert codec.default_ttl == timedelta(minutes=15)

    def test_concurrent_issuance_keeps_each_ttl(self, codec):
        """Interleaved short and long issuance must not borrow each other's TTL."""
        short, long = timedelta(minutes=15), timedelta(days=30)

        def issue(i: int) -> tuple[timedelta, str]:
            ttl = long if i % 2 else short
            return ttl, codec.issue({"sub": str(i)}, ttl=ttl)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(issue, range(64)))

        for ttl, token in results:
            claims = codec.decode(token)
            assert claims.expires_at - claims.issued_at == ttl

    def test_every_token_has_unique_jti(self, codec):
        tokens = {codec.issue({"sub": "1"}) for _ in range(20)}
        jtis = {codec.decode(t).jti for t in tokens}
        assert len(tokens) == 20
        assert len(jtis) == 20

    def test_reserved_claims_cannot_be_overridden(self, codec):
        token = codec.issue({"sub": "1", "exp": 0, "jti": "fixed"}, ttl=timedelta(minutes=5))
        claims = codec.decode(token)
        assert claims.jti != "fixed"
        assert not claims.is_expired

    def test_extra_claims_are_preserved(self, codec):
        claims = codec.decode(codec.issue({"sub": "1", "scope": "orders"}))
        assert claims.extra == {"scope": "orders"}

    @pytest.mark.parametrize("ttl", [timedelta(0), timedelta(seconds=-1)])
    def test_non_positive_ttl_rejected(self, codec, ttl):
        with pytest.raises(ValueError):
            codec.issue({"sub": "1"}, ttl=ttl)

    def test_missing_subject_rejected(self, codec):
        with pytest.raises(ValueError):
            codec.issue({"scope": "orders"})

    def test_expired_token_raises_expired(self, codec):
        token = codec.issue({"sub": "1"}, ttl=timedelta(seconds=1))
        time.sleep(2)
        with pytest.raises(TokenExpiredError):
            codec.decode(token)

    def test_expired_token_decodes_without_expiry_check(self, codec):
        token = codec.issue({"sub": "1"}, ttl=timedelta(seconds=1))
        time.sleep(2)
        claims = codec.decode(token, verify_exp=False)
        assert claims.subject == "1"
        assert claims.is_expired

    def test_garbage_raises_malformed(self, codec):
        with pytest.raises(MalformedTokenError):
            codec.decode("invalid.token.here")

    def test_tampered_signature_raises_malformed(self, codec):
        token = codec.issue({"sub": "1"})
        header, payload, signature = token.split(".")
        tampered = f"{header}.{payload}.{signature[::-1]}"
        with pytest.raises(MalformedTokenError):
            codec.decode(tampered)

    def test_token_from_other_key_raises_malformed(self, codec):
        other = TokenCodec("another-secret-" + "y" * 32, "HS256", timedelta(minutes=5))
        with pytest.raises(MalformedTokenError):
            codec.decode(other.issue({"sub": "1"}))

    def test_token_without_jti_raises_malformed(self, codec):
        now = datetime.now(UTC)
        token = jwt.encode(
            {"sub": "1", "iat": now, "exp": now + timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            codec.decode(token)

    def test_unsupported_algorithm_raises_signing_error(self):
        broken = TokenCodec(SECRET, "NOT-AN-ALGORITHM", timedelta(minutes=5))
        with pytest.raises(TokenSigningError):
            broken.issue({"sub": "1"})


class TestTokenClaims:
    """Tests for the access/refresh discriminator."""

    def _payload(self, **extra):
        now = int(time.time())
        return {"sub": "1", "iat": now, "exp": now + 60, "jti": "abc", **extra}

    def test_refresh_marker_means_refresh(self):
        assert TokenClaims.from_payload(self._payload(**{REFRESH_CLAIM: True})).kind is (
            TokenKind.REFRESH
        )

    def test_absent_marker_means_access(self):
        assert TokenClaims.from_payload(self._payload()).kind is TokenKind.ACCESS

    @pytest.mark.parametrize("value", [False, "true", 1, None])
    def test_only_literal_true_marks_refresh(self, value):
        claims = TokenClaims.from_payload(self._payload(**{REFRESH_CLAIM: value}))
        assert claims.kind is TokenKind.ACCESS


class TestTokenIssuer:
    """Tests for TokenIssuer."""

    def test_issue_access(self, issuer, codec, user):
        issued = issuer.issue_access(user)
        claims = codec.decode(issued.token)

        assert issued.expires_in == 15 * 60
        assert claims.subject == str(user.id)
        assert claims.kind is TokenKind.ACCESS

    def test_issue_pair_marks_only_refresh_token(self, issuer, codec, user):
        pair = issuer.issue_pair(user)
        access = jwt.decode(pair.access_token, SECRET, algorithms=["HS256"])
        refresh = jwt.decode(pair.refresh_token, SECRET, algorithms=["HS256"])

        assert REFRESH_CLAIM not in access
        assert refresh[REFRESH_CLAIM] is True
        assert codec.decode(pair.refresh_token).kind is TokenKind.REFRESH

    def test_issue_pair_uses_two_lifetimes(self, issuer, codec, user):
        pair = issuer.issue_pair(user)
        access = codec.decode(pair.access_token)
        refresh = codec.decode(pair.refresh_token)

        assert pair.expires_in == 15 * 60
        assert access.expires_at - access.issued_at == timedelta(minutes=15)
        assert refresh.expires_at - refresh.issued_at == timedelta(days=30)
        assert access.subject == refresh.subject == str(user.id)
