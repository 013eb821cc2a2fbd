import string

import pytest

from shortener.utils import ALPHABET, generate_id


def test_alphabet_is_62_alphanumerics():
    assert len(ALPHABET) == 62
    assert set(ALPHABET) == set(string.ascii_letters + string.digits)


@pytest.mark.parametrize("length", [1, 6, 10, 32])
def test_generate_id_has_requested_length(length):
    token = generate_id(length)
    assert len(token) == length
    assert all(ch in ALPHABET for ch in token)


def test_generate_id_default_length():
    assert len(generate_id()) == 6


def test_generate_id_rejects_non_positive_length():
    with pytest.raises(ValueError):
        generate_id(0)
