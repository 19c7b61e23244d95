from twilsta.core.security import (
    TokenRevocationList,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)


def test_password_hashing():
    hashed = get_password_hash("Secr3t!pass")
    assert hashed != "Secr3t!pass"
    assert verify_password("Secr3t!pass", hashed)
    assert not verify_password("wrong", hashed)


def test_tokens_carry_type_and_unique_ids():
    access = decode_token(create_access_token("user-1"))
    refresh = decode_token(create_refresh_token("user-1"))

    assert access["sub"] == refresh["sub"] == "user-1"
    assert (access["type"], refresh["type"]) == ("access", "refresh")
    assert access["jti"] != refresh["jti"]
    assert decode_token("not.a.token") is None


def test_revocation_list_purges_expired_entries():
    now = [1_000.0]
    revoked = TokenRevocationList(clock=lambda: now[0])
    revoked.revoke("a", expires_at=1_010.0)
    assert revoked.is_revoked("a")
    assert not revoked.is_revoked(None)

    now[0] = 1_020.0
    revoked.revoke("b", expires_at=1_100.0)
    assert not revoked.is_revoked("a")
    assert revoked.is_revoked("b")
