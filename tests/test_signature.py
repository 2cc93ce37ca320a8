import pytest

from cablepay.errors import Misconfiguration
from cablepay.services.signature import expected_signature, verify

SECRET = "test_razorpay_secret"
ORDER = "order_Nx1"
PAYMENT = "pay_Nx1"


def _sig(order=ORDER, payment=PAYMENT, secret=SECRET):
    return expected_signature(order, payment, secret)


def test_valid_signature_passes():
    assert verify(ORDER, PAYMENT, _sig(), SECRET) is True


def test_known_vector():
    # hmac-sha256("order_Nx1|pay_Nx1") keyed with the test secret is stable hex
    sig = _sig()
    assert len(sig) == 64
    assert sig == sig.lower()


@pytest.mark.parametrize("order,payment", [
    ("order_Nx2", PAYMENT),
    (ORDER, "pay_Nx2"),
    (PAYMENT, ORDER),
])
def test_changed_ids_fail(order, payment):
    assert verify(order, payment, _sig(), SECRET) is False


def test_wrong_secret_fails():
    assert verify(ORDER, PAYMENT, _sig(secret="other"), SECRET) is False


def test_flipped_character_fails():
    sig = _sig()
    flipped = ("0" if sig[0] != "0" else "1") + sig[1:]
    assert verify(ORDER, PAYMENT, flipped, SECRET) is False


def test_uppercase_hex_is_not_accepted():
    assert verify(ORDER, PAYMENT, _sig().upper(), SECRET) is False


@pytest.mark.parametrize("sig", [None, "", 12345, "ü" * 64])
def test_missing_or_malformed_signature_fails(sig):
    assert verify(ORDER, PAYMENT, sig, SECRET) is False


def test_missing_ids_fail():
    assert verify(None, PAYMENT, _sig(), SECRET) is False
    assert verify(ORDER, "", _sig(), SECRET) is False


def test_missing_secret_is_a_configuration_error():
    with pytest.raises(Misconfiguration):
        verify(ORDER, PAYMENT, _sig(), "")
