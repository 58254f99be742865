import pytest

from visitorpass.utils.crypto import ACCESS_CODE_ALPHABET, generate_access_code, normalize_code


def test_alphabet_excludes_ambiguous_characters():
    for ch in "0O1IL":
        assert ch not in ACCESS_CODE_ALPHABET
    assert len(set(ACCESS_CODE_ALPHABET)) == len(ACCESS_CODE_ALPHABET)


def test_default_code_shape():
    for _ in range(500):
        code = generate_access_code()
        assert len(code) == 6
        assert set(code) <= set(ACCESS_CODE_ALPHABET)


@pytest.mark.parametrize("length", [1, 4, 10])
def test_configured_length(length):
    assert len(generate_access_code(length)) == length


def test_codes_are_rerandomized():
    codes = {generate_access_code() for _ in range(50)}
    assert len(codes) > 1


def test_non_positive_length_rejected():
    with pytest.raises(ValueError):
        generate_access_code(0)


def test_normalize_code():
    assert normalize_code("  ab3k9z ") == "AB3K9Z"
    assert normalize_code(None) == ""
