from scrubshot.card_detect import detect_credit_cards, is_valid_card_number, luhn_check
from scrubshot.model import API_KEY, CREDIT_CARD, PASSWORD
from scrubshot.secret_detect import detect_secrets, has_password_context, looks_like_password


def test_luhn():
    assert luhn_check("4242424242424242")
    assert not luhn_check("4242424242424241")
    assert not is_valid_card_number("424242424242")


def test_card_formats():
    for line, end in (
        ("card 4242424242424242", 21),
        ("card 4242-4242-4242-4242", 24),
        ("card 4242 4242 4242 4242 exp 12/29", 24),
    ):
        hits = detect_credit_cards(line)
        assert len(hits) == 1
        assert hits[0].kind == CREDIT_CARD
        assert hits[0].start == 5
        assert hits[0].end == end


def test_card_bad_checksum():
    assert detect_credit_cards("card 4242424242424241") == []


def test_password_after_separator():
    line = "password: hunter2!"
    hits = detect_secrets(line)
    assert [(h.text(line), h.kind) for h in hits] == [("hunter2!", PASSWORD)]


def test_password_placeholder_ignored():
    assert detect_secrets("Password is example") == []
    assert detect_secrets("Status: enabled2") == []


def test_api_key():
    line = "api token ghp_ABCDEFGHIJKLMNOPQRSTUV123"
    hits = detect_secrets(line)
    assert any(h.kind == API_KEY and h.text(line) == "ghp_ABCDEFGHIJKLMNOPQRSTUV123" for h in hits)


def test_password_heuristics():
    assert has_password_context("Your PIN / Passcode")
    assert not has_password_context("Hello there")
    assert looks_like_password("s3cr3t!")
    assert not looks_like_password("abcdefg")
    assert not looks_like_password("null")
    assert looks_like_password("correcthorsebatterystaple")
