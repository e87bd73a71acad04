from fts_api.auth.password import (
    PasswordHasher,
    generate_temp_password,
    validate_password_strength,
)

hasher = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


def test_hash_is_salted_and_verifies():
    first = hasher.hash("Passw0rd!")
    second = hasher.hash("Passw0rd!")

    assert first != second
    assert first.startswith("$argon2id$")
    assert hasher.verify("Passw0rd!", first)
    assert hasher.verify("Passw0rd!", second)


def test_verify_wrong_password():
    assert not hasher.verify("wrong-pass1", hasher.hash("Passw0rd!"))


def test_verify_malformed_hash_returns_false():
    assert not hasher.verify("Passw0rd!", "not-a-hash")
    assert not hasher.verify("Passw0rd!", "")


def test_needs_rehash_when_parameters_change():
    stronger = PasswordHasher(time_cost=2, memory_cost=16, parallelism=1)
    stored = hasher.hash("Passw0rd!")

    assert not hasher.needs_rehash(stored)
    assert stronger.needs_rehash(stored)


async def test_async_wrappers():
    stored = await hasher.hash_async("Passw0rd!")
    assert await hasher.verify_async("Passw0rd!", stored)
    assert not await hasher.verify_async("nope12345", stored)


def test_password_strength():
    assert validate_password_strength("Passw0rd!") == (True, [])

    ok, issues = validate_password_strength("short1")
    assert not ok
    assert any("at least 8" in i for i in issues)

    ok, issues = validate_password_strength("onlyletters")
    assert not ok
    assert issues == ["Password must contain at least one digit"]

    ok, issues = validate_password_strength("12345678")
    assert issues == ["Password must contain at least one letter"]

    ok, issues = validate_password_strength("a1" * 65)
    assert not ok


def test_temp_password_is_strong():
    for _ in range(20):
        password = generate_temp_password()
        assert len(password) == 16
        assert validate_password_strength(password) == (True, [])

    assert len(generate_temp_password(4)) == 12
