import pytest
from django.db import OperationalError

from mill_core.common.exceptions import DegradedData, Unauthorized
from mill_core.common.retry import with_read_retry


def test_transient_error_is_retried_once():
    calls = []

    @with_read_retry
    def read():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError("connection reset")
        return "rows"

    assert read() == "rows"
    assert len(calls) == 2


def test_second_failure_becomes_degraded_data():
    calls = []

    @with_read_retry
    def read():
        calls.append(1)
        raise OperationalError("db gone")

    with pytest.raises(DegradedData):
        read()
    assert len(calls) == 2


def test_non_transient_errors_pass_through_without_retry():
    calls = []

    @with_read_retry
    def read():
        calls.append(1)
        raise Unauthorized()

    with pytest.raises(Unauthorized):
        read()
    assert len(calls) == 1
