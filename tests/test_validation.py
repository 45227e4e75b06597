from solarquote.validation import (
    parse_bill_amount,
    validate_email,
    validate_name,
    validate_phone,
)


class TestValidateName:
    def test_valid_name(self):
        assert validate_name("Aoife Byrne") == "Aoife Byrne"

    def test_collapses_whitespace(self):
        assert validate_name("  Aoife   Byrne ") == "Aoife Byrne"

    def test_rejects_sentinel(self):
        assert validate_name("N/A") == ""
        assert validate_name("undefined") == ""

    def test_rejects_phone_as_name(self):
        assert validate_name("087 123 4567") == ""

    def test_rejects_template_variable(self):
        assert validate_name("{{customer}}") == ""

    def test_rejects_none(self):
        assert validate_name(None) == ""


class TestValidateEmail:
    def test_valid(self):
        assert validate_email(" aoife@example.com ") == "aoife@example.com"

    def test_rejects_missing_domain(self):
        assert validate_email("aoife@") == ""
        assert validate_email("aoife@example") == ""

    def test_rejects_empty(self):
        assert validate_email("") == ""


class TestValidatePhone:
    def test_irish_mobile(self):
        assert validate_phone("087 123 4567") == "087 123 4567"

    def test_international(self):
        assert validate_phone("+353 87 123 4567") == "+353 87 123 4567"

    def test_rejects_short(self):
        assert validate_phone("12345") == ""

    def test_rejects_letters(self):
        assert validate_phone("call me") == ""


class TestParseBillAmount:
    def test_int(self):
        assert parse_bill_amount(250) == 250

    def test_string_with_currency(self):
        assert parse_bill_amount("€1,200") == 1200

    def test_rejects_zero_and_negative(self):
        assert parse_bill_amount(0) is None
        assert parse_bill_amount("-50") is None

    def test_rejects_fraction(self):
        assert parse_bill_amount(99.5) is None
        assert parse_bill_amount("99.5") is None

    def test_rejects_bool_and_none(self):
        assert parse_bill_amount(True) is None
        assert parse_bill_amount(None) is None
