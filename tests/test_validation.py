import logging

import pytest

from visionpolish import validation
from visionpolish.validation import FileCandidate

from conftest import JPEG_BYTES, PNG_BYTES

TEN_MB = 10 * 1024 * 1024


@pytest.mark.parametrize("name,mime,size", [
    ("photo.gif", "image/gif", 1000),
    ("scan.pdf", "application/pdf", 1000),
    ("photo.jpg", "image/jpeg", TEN_MB + 1),
    ("photo.png", "image/png", TEN_MB * 2),
])
def test_disallowed_type_or_size_has_errors(name, mime, size):
    assert validation.validate_file(name, mime, size)


@pytest.mark.parametrize("name,mime", [
    ("photo.jpg", "image/jpeg"),
    ("photo.jpeg", "image/jpeg"),
    ("photo.png", "image/png"),
    ("photo.webp", "image/webp"),
])
def test_valid_files_have_no_errors(name, mime):
    assert validation.validate_file(name, mime, TEN_MB) == []


def test_extension_mime_mismatch_is_error_and_security_event(caplog):
    with caplog.at_level(logging.WARNING, logger="visionpolish.security"):
        errors = validation.validate_file("photo.png", "image/jpeg", 1000)

    assert "File extension does not match file type. This may be a security risk." in errors
    assert any("suspicious_file_upload" in record.getMessage() for record in caplog.records)


def test_matching_extension_has_no_mismatch_error():
    errors = validation.validate_file("photo.png", "image/png", 1000)
    assert "File extension does not match file type. This may be a security risk." not in errors


def test_unsafe_file_names_are_rejected():
    assert validation.validate_file("my photo.jpg", "image/jpeg", 1000)
    assert validation.validate_file("<script>x</script>.jpg", "image/jpeg", 1000)
    assert validation.validate_file(".hidden.jpg", "image/jpeg", 1000)


def test_content_sniffing_is_advisory(caplog):
    with caplog.at_level(logging.WARNING, logger="visionpolish.security"):
        errors = validation.validate_file("photo.jpg", "image/jpeg", len(PNG_BYTES), PNG_BYTES)

    assert errors == []
    assert any("content_type_mismatch" in record.getMessage() for record in caplog.records)


def test_batch_keeps_valid_files_when_others_fail():
    candidates = [
        FileCandidate("good.jpg", "image/jpeg", len(JPEG_BYTES), JPEG_BYTES),
        FileCandidate("bad.gif", "image/gif", 10),
        FileCandidate("good.png", "image/png", len(PNG_BYTES), PNG_BYTES),
    ]
    accepted, rejected, batch_errors = validation.validate_batch(candidates, max_files=5)

    assert [c.file_name for c in accepted] == ["good.jpg", "good.png"]
    assert [c.file_name for c in rejected] == ["bad.gif"]
    assert rejected[0].errors
    assert batch_errors == []


def test_batch_over_limit_accepts_nothing():
    candidates = [FileCandidate(f"p{i}.jpg", "image/jpeg", 10) for i in range(3)]
    accepted, rejected, batch_errors = validation.validate_batch(candidates, max_files=2)

    assert accepted == []
    assert batch_errors == ["Maximum 2 files allowed"]


def test_sanitizers():
    assert validation.sanitize_input("<b>crop</b>") == "&lt;b&gt;crop&lt;/b&gt;"
    assert validation.sanitize_search_term("portrait'; DROP TABLE services") == "portrait  TABLE services"
    assert len(validation.sanitize_search_term("x" * 300)) == 100
    assert validation.sanitize_file_name("..my file!.jpg") == "myfile.jpg"


def test_password_rules():
    assert validation.validate_password("Sunny#Harbor7Kite") is None
    assert validation.validate_password("Short#1a") is not None
    assert validation.validate_password("alllowercase#123x") is not None
    assert validation.validate_password("Password#12345") is not None


def test_price_rules():
    assert validation.validate_price("29.99") is None
    assert validation.validate_price("0") == "Price must be greater than 0"
    assert validation.validate_price("29.999") is not None
    assert validation.validate_price("") == "Price is required"
