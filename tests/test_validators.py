"""Tests for Brazilian identifier validators."""

import random

import pytest

from tarja.utils import validators


def _reference_check_digits(base: str) -> str:
    """Check digits via the (sum * 10) mod 11 formulation of the CPF rule."""
    numbers = [int(c) for c in base]
    first = sum(d * w for d, w in zip(numbers, range(10, 1, -1))) * 10 % 11 % 10
    numbers.append(first)
    second = sum(d * w for d, w in zip(numbers, range(11, 1, -1))) * 10 % 11 % 10
    return f"{first}{second}"


def _reference_cpf(digits: str) -> bool:
    if len(set(digits)) == 1:
        return False
    return digits[9:] == _reference_check_digits(digits[:9])


class TestCPF:
    def test_known_valid_cpf(self):
        assert validators.validate_cpf("529.982.247-25")
        assert validators.validate_cpf("52998224725")

    def test_repeated_digits_rejected(self):
        assert not validators.validate_cpf("111.111.111-11")

    def test_wrong_check_digit_rejected(self):
        assert not validators.validate_cpf("529.982.247-26")
        assert not validators.validate_cpf("529.982.247-15")

    @pytest.mark.parametrize("value", ["", "5299822472", "529982247250", "abc"])
    def test_wrong_length_rejected(self, value):
        assert not validators.validate_cpf(value)

    def test_non_string_input_is_false(self):
        assert not validators.validate_cpf(None)
        assert not validators.validate_cpf(52998224725)

    def test_matches_reference_check_digits_for_generated_numbers(self):
        rng = random.Random(20260118)
        for _ in range(5000):
            digits = "".join(rng.choice("0123456789") for _ in range(11))
            assert validators.validate_cpf(digits) == _reference_cpf(digits), digits

    def test_every_generated_base_accepts_only_its_own_check_digits(self):
        rng = random.Random(7)
        for _ in range(500):
            base = "".join(rng.choice("0123456789") for _ in range(9))
            valid = base + _reference_check_digits(base)
            if len(set(valid)) == 1:
                continue
            assert validators.validate_cpf(valid), valid
            wrong = valid[:-1] + str((int(valid[-1]) + 1) % 10)
            assert not validators.validate_cpf(wrong), wrong

    @pytest.mark.parametrize("digit", "0123456789")
    def test_all_repeated_digit_numbers_rejected(self, digit):
        assert not validators.validate_cpf(digit * 11)

    def test_unicode_digits_are_not_digits(self):
        # Arabic-Indic digits must not be read as 0-9.
        assert not validators.validate_cpf("٥٢٩٩٨٢٢٤٧٢٥")


class TestCNH:
    def test_valid_cnh(self):
        assert validators.validate_cnh("12345678900")

    def test_invalid_check_digit(self):
        assert not validators.validate_cnh("12345678901")

    def test_repeated_and_short(self):
        assert not validators.validate_cnh("00000000000")
        assert not validators.validate_cnh("1234567890")


class TestTitle:
    def test_valid_title(self):
        assert validators.validate_title("123456780124")
        assert validators.validate_title("1234 5678 0124")

    def test_state_code_out_of_range(self):
        # state code 29 is not a valid unit of the federation
        assert not validators.validate_title("123456782924")
        assert not validators.validate_title("123456780024")

    def test_wrong_check_digits(self):
        assert not validators.validate_title("123456780125")
        assert not validators.validate_title("123456780134")


class TestRG:
    def test_sao_paulo_check_digit(self):
        assert validators.validate_rg("24.678.131-9")
        assert not validators.validate_rg("24.678.131-4")

    def test_other_lengths_pass_on_structure(self):
        assert validators.validate_rg("1.234.567")
        assert validators.validate_rg("12345678")

    def test_bounds(self):
        assert not validators.validate_rg("123456")
        assert not validators.validate_rg("1234567890")
        assert not validators.validate_rg("7777777")


class TestCEPAndCards:
    def test_cep(self):
        assert validators.validate_cep("01310-100")
        assert not validators.validate_cep("00000-000")
        assert not validators.validate_cep("0131010")

    def test_luhn(self):
        assert validators.validate_luhn("4532015112830366")
        assert not validators.validate_luhn("4532015112830367")
        assert not validators.validate_luhn("")

    def test_credit_card_requires_sixteen_digits(self):
        assert validators.validate_credit_card("4532 0151 1283 0366")
        # 15-digit Amex number that passes Luhn
        assert validators.validate_luhn("378282246310005")
        assert not validators.validate_credit_card("378282246310005")


class TestEmailAndPix:
    def test_email(self):
        assert validators.validate_email("teste@exemplo.com")
        assert not validators.validate_email("teste@exemplo")
        assert not validators.validate_email("a@b@c.com")
        assert not validators.validate_email(42)

    def test_pix_random_key(self):
        assert validators.validate_pix("123e4567e89b12d3a456426614174000")

    def test_pix_cpf_key_delegates_to_cpf(self):
        assert validators.validate_pix("52998224725")
        assert not validators.validate_pix("52998224726")

    def test_pix_cnpj_key_is_structural(self):
        assert validators.validate_pix("12345678000195")

    def test_pix_email_key(self):
        assert validators.validate_pix("teste@exemplo.com")
        assert not validators.validate_pix("teste@")

    def test_pix_other_shapes_rejected(self):
        assert not validators.validate_pix("+5511999998888")
        assert not validators.validate_pix("chave")
        assert not validators.validate_pix(None)
