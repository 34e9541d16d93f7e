from ckb_capsule.password import Password


def test_take_returns_value():
    password = "password"
    assert Password(password).take() == "password"


def test_repr_hides_value():
    password = "secret"
    wrapped = Password(password)
    assert repr(wrapped) == "Password(..)"
    assert "secret" not in str(wrapped)
    assert "secret" not in f"{wrapped!r}"


def test_equality():
    password = "token"
    assert Password(password) == Password(password)
    assert Password(password) != Password("placeholder")