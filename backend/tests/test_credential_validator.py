# Overview: Pytest coverage for registration input validation.

"""
Credential Validator Tests

Every rule is checked on its own, and a form with several problems must
report all of them in one result.
"""

from datetime import timedelta

import pytest

from shopapi.errors import ValidationError
from shopapi.services.credential_validator import (
    is_valid_phone,
    normalize_email,
    unmet_password_rules,
    validate_registration,
)
from shopapi.time_utils import utcnow


def valid_form(**overrides) -> dict:
    form = {
        "email": "asha@shopmail.in",
        "password": "Str0ng!Pass",
        "phone": "+919876543210",
        "date_of_birth": "1990-04-12",
    }
    form.update(overrides)
    return form


class TestRegistrationForm:

    def test_valid_form_passes(self):
        result = validate_registration(valid_form())
        assert result.ok
        assert result.errors == []
        result.raise_if_invalid()

    def test_every_missing_field_is_reported(self):
        result = validate_registration({})
        missing = sorted(e["field"] for e in result.errors if e["code"] == "MissingField")
        assert missing == ["date_of_birth", "email", "password", "phone"]

    def test_blank_string_counts_as_missing(self):
        result = validate_registration(valid_form(phone="   "))
        assert result.codes == {"MissingField"}

    def test_multiple_problems_reported_together(self):
        result = validate_registration(valid_form(
            email="not-an-email",
            password="short",
            phone="12345",
        ))
        assert result.codes == {"InvalidFormat", "WeakPassword", "InvalidPhone"}

    def test_raise_if_invalid_carries_all_details(self):
        result = validate_registration(valid_form(email="bad", phone="123"))
        with pytest.raises(ValidationError) as exc_info:
            result.raise_if_invalid()
        assert exc_info.value.http_status == 400
        assert exc_info.value.code == "ValidationError"
        assert {d["code"] for d in exc_info.value.details} == {"InvalidFormat", "InvalidPhone"}

    def test_single_kind_of_problem_uses_its_code(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_registration(valid_form(phone="5123456789")).raise_if_invalid()
        assert exc_info.value.code == "InvalidPhone"


class TestEmail:

    @pytest.mark.parametrize("email", ["plainaddress", "@shopmail.in", "asha@", "asha@@shopmail.in", "asha shop@mail.in"])
    def test_invalid_addresses(self, email):
        result = validate_registration(valid_form(email=email))
        assert result.codes == {"InvalidFormat"}

    def test_non_string_email(self):
        result = validate_registration(valid_form(email=12345))
        assert result.codes == {"InvalidFormat"}

    def test_stored_form_is_lowercase(self):
        assert normalize_email(" Asha.Rao@ShopMail.IN ") == "asha.rao@shopmail.in"


class TestPassword:

    def test_lists_every_unmet_rule(self):
        result = validate_registration(valid_form(password="abc"))
        [error] = result.errors
        assert error["code"] == "WeakPassword"
        assert set(error["rules"]) == {"min_length", "uppercase", "digit", "special"}

    @pytest.mark.parametrize("password,rule", [
        ("Str0ngPass", "special"),
        ("str0ng!pass", "uppercase"),
        ("STR0NG!PASS", "lowercase"),
        ("Strong!Pass", "digit"),
        ("S0!a", "min_length"),
    ])
    def test_single_rule(self, password, rule):
        assert rule in unmet_password_rules(password)

    def test_strong_password(self):
        assert unmet_password_rules("Str0ng!Pass") == []

    def test_longer_than_bcrypt_input_is_rejected(self):
        result = validate_registration(valid_form(password="Aa1!" + "x" * 80))
        [error] = result.errors
        assert error["code"] == "WeakPassword"
        assert error["rules"] == ["max_length"]

    def test_length_limit_counts_bytes(self):
        # 44 characters, 84 bytes in UTF-8
        assert unmet_password_rules("Aa1!" + "\u00e9" * 40) == ["max_length"]
        assert unmet_password_rules("Aa1!" + "x" * 68) == []


class TestPhone:

    @pytest.mark.parametrize("phone", ["9876543210", "+919876543210", "919876543210", "6000000000"])
    def test_valid_indian_mobiles(self, phone):
        assert is_valid_phone(phone)

    @pytest.mark.parametrize("phone", ["5876543210", "98765", "+449876543210", "98765432100", "98765-43210"])
    def test_invalid_numbers(self, phone):
        assert not is_valid_phone(phone)
        assert validate_registration(valid_form(phone=phone)).codes == {"InvalidPhone"}


class TestDateOfBirth:

    def test_today_is_rejected(self):
        today = utcnow().date().isoformat()
        assert validate_registration(valid_form(date_of_birth=today)).codes == {"InvalidDOB"}

    def test_future_is_rejected(self):
        future = (utcnow().date() + timedelta(days=30)).isoformat()
        assert validate_registration(valid_form(date_of_birth=future)).codes == {"InvalidDOB"}

    def test_yesterday_is_accepted(self):
        yesterday = (utcnow().date() - timedelta(days=1)).isoformat()
        assert validate_registration(valid_form(date_of_birth=yesterday)).ok

    @pytest.mark.parametrize("value", ["12/04/1990", "1990-13-01", "not a date", 19900412])
    def test_unparseable(self, value):
        assert validate_registration(valid_form(date_of_birth=value)).codes == {"InvalidDOB"}


class TestNames:

    def test_names_are_optional(self):
        assert validate_registration(valid_form(first_name=None, last_name="")).ok

    @pytest.mark.parametrize("field_name,value", [
        ("first_name", 123),
        ("last_name", ["Rao"]),
        ("first_name", "A" * 65),
    ])
    def test_invalid_name(self, field_name, value):
        result = validate_registration(valid_form(**{field_name: value}))
        assert result.codes == {"InvalidFormat"}
        assert result.errors[0]["field"] == field_name
