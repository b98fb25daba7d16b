"""Unit tests for cooperative cancellation."""

import pytest

from asmbuild.cancellation import CancellationReason, CancellationToken, check_and_raise_if_cancelled
from asmbuild.errors import OperationCancelledException


def test_token_starts_uncancelled():
    token = CancellationToken()
    assert not token.is_cancelled
    assert token.reason == CancellationReason.NOT_CANCELLED
    token.raise_if_cancelled("build")


def test_first_reason_wins():
    token = CancellationToken()
    token.cancel(CancellationReason.USER_INTERRUPT)
    token.cancel(CancellationReason.REQUESTED)

    assert token.is_cancelled
    assert token.reason == CancellationReason.USER_INTERRUPT


def test_raise_if_cancelled_names_operation():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledException, match="link cancelled"):
        token.raise_if_cancelled("link")


def test_wait_returns_when_cancelled():
    token = CancellationToken()
    assert token.wait(0.01) is False
    token.cancel()
    assert token.wait(0.01) is True


def test_check_and_raise_accepts_none():
    check_and_raise_if_cancelled(None, "build")


def test_check_and_raise_if_cancelled():
    token = CancellationToken()
    token.cancel()
    with pytest.raises(OperationCancelledException):
        check_and_raise_if_cancelled(token, "build")
