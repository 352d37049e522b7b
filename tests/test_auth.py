import pytest
from jose import jwt

from auth import Identity, TokenService, hash_password, verify_password
from errors import InvalidToken


@pytest.fixture
def tokens():
    return TokenService("test-secret")


def test_issue_then_verify(tokens):
    token = tokens.issue("64b7f0c2a1b2c3d4e5f60718", True)
    assert tokens.verify(token) == Identity(user_id="64b7f0c2a1b2c3d4e5f60718", is_admin=True)


def test_tokens_do_not_expire(tokens):
    claims = jwt.get_unverified_claims(tokens.issue("abc", False))
    assert "exp" not in claims
    assert claims == {"_id": "abc", "isAdmin": False}


def test_verify_rejects_other_secret(tokens):
    forged = TokenService("other-secret").issue("abc", True)
    with pytest.raises(InvalidToken):
        tokens.verify(forged)


@pytest.mark.parametrize("token", [None, "", "garbage", "a.b.c"])
def test_verify_rejects_malformed(tokens, token):
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_verify_requires_user_claim(tokens):
    token = jwt.encode({"isAdmin": True}, "test-secret", algorithm="HS256")
    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_password_hash_round_trip():
    hashed = hash_password("secret")
    assert hashed != "secret"
    assert verify_password("secret", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("secret", None)
