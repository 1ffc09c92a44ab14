"""Tests for password hashing records."""

from __future__ import annotations

import pytest

from docstore_commons.security import hash_password, needs_rehash, verify_password

ITERATIONS = 1_000


class TestHashPassword:
    def test_record_format(self) -> None:
        record = hash_password("hunter2", iterations=ITERATIONS)

        algorithm, iterations, salt, digest = record.split("$")
        assert algorithm == "pbkdf2_sha256"
        assert iterations == str(ITERATIONS)
        assert salt and digest

    def test_random_salt(self) -> None:
        assert hash_password("hunter2", iterations=ITERATIONS) != hash_password(
            "hunter2", iterations=ITERATIONS
        )

    def test_rejects_non_positive_iterations(self) -> None:
        with pytest.raises(ValueError):
            hash_password("hunter2", iterations=0)


class TestVerifyPassword:
    def test_accepts_matching_password(self) -> None:
        record = hash_password("hunter2", iterations=ITERATIONS)
        assert verify_password("hunter2", record) is True

    def test_rejects_other_password(self) -> None:
        record = hash_password("hunter2", iterations=ITERATIONS)
        assert verify_password("hunter3", record) is False

    @pytest.mark.parametrize(
        "record",
        [
            "",
            "plaintext",
            "md5$1000$c2FsdA==$ZGlnZXN0",
            "pbkdf2_sha256$many$c2FsdA==$ZGlnZXN0",
            "pbkdf2_sha256$1000$***$ZGlnZXN0",
            "pbkdf2_sha256$0$c2FsdA==$ZGlnZXN0",
            "pbkdf2_sha256$1000$$ZGlnZXN0",
        ],
    )
    def test_malformed_records_verify_false(self, record: str) -> None:
        assert verify_password("hunter2", record) is False


def test_needs_rehash() -> None:
    record = hash_password("hunter2", iterations=ITERATIONS)

    assert needs_rehash(record, iterations=ITERATIONS) is False
    assert needs_rehash(record, iterations=ITERATIONS * 2) is True
    assert needs_rehash("garbage") is True
