import pytest

from utils.auth_errors import auth_error_message, pick_lang
from utils.validation import derive_username, is_valid_username, normalize_seller_identifier, validate_email, validate_password


def test_username_from_email_strips_non_pattern_characters():
    username = derive_username("Jane.Doe+test@x.com")
    assert username == "janedoetest"
    assert is_valid_username(username)


@pytest.mark.parametrize("email", ["+++@x.com", "@x.com", ""])
def test_unusable_usernames(email):
    assert not is_valid_username(derive_username(email))


@pytest.mark.parametrize(
    "identifier,expected",
    [
        ("Jane.Doe+test@x.com", "janedoetest"),
        (" JaneDoe ", "janedoe"),
        ("jane doe", "janedoe"),
        ("shop.owner", "shop.owner"),
    ],
)
def test_login_identifier_normalisation(identifier, expected):
    assert normalize_seller_identifier(identifier) == expected


def test_email_and_password_rules():
    assert validate_email("a@b.co")[0]
    assert not validate_email("not-an-email")[0]
    assert not validate_password("12345")[0]
    assert validate_password("123456")[0]


def test_auth_error_messages():
    assert auth_error_message("auth/wrong-password") == "Incorrect password."
    assert auth_error_message("auth/wrong-password", lang="ar") == "كلمة المرور غير صحيحة."
    assert auth_error_message("auth/brand-new", "Raw provider text") == "Raw provider text"
    assert auth_error_message("auth/brand-new") == "Something went wrong"
    assert pick_lang("ar-SA,ar;q=0.9") == "ar"
    assert pick_lang(None) == "en"
