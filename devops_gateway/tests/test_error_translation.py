"""Tests for the gateway error model."""

import pytest

from devops_gateway.core.error_contract import generic_message
from devops_gateway.core.exceptions import (
    BackendError,
    GatewayError,
    PreconditionRequiredError,
    RequestCancelledError,
    RoleResolutionError,
    SubmitterLookupError,
    UnclassifiedBackendError,
    translate_error,
)


class TestTranslateError:
    @pytest.mark.parametrize(
        "exc,status_code",
        [
            (BackendError(404), 404),
            (BackendError(409, "conflict"), 409),
            (UnclassifiedBackendError("timeout"), 500),
            (RoleResolutionError("alice"), 500),
            (SubmitterLookupError("no node detail"), 500),
            (PreconditionRequiredError("new credentials"), 428),
            (RequestCancelledError("gone"), 499),
        ],
    )
    def test_status_per_kind(self, exc, status_code):
        translated = translate_error(exc)
        assert translated.status_code == status_code
        assert translated.code == f"E{status_code}0"

    def test_backend_text_never_becomes_the_message(self):
        translated = translate_error(BackendError(403, "user alice lacks Job/Build on proj"))
        assert translated.message == "Forbidden"

    def test_out_of_range_status_is_500(self):
        assert translate_error(BackendError(0)).status_code == 500
        assert translate_error(BackendError(1000)).status_code == 500

    def test_unknown_kind_is_a_programming_error(self):
        class Mystery(GatewayError):
            pass

        with pytest.raises(TypeError):
            translate_error(Mystery("?"))


def test_generic_messages():
    assert generic_message(428) == "Precondition Required"
    assert generic_message(499) == "Client closed request"
    assert generic_message(599) == "Backend error"
