"""
Unit tests for caller authentication in org.matrix.uvs.verify.gate
"""

import pytest

from org.matrix.uvs.verify.exceptions import CallerUnauthorizedException
from org.matrix.uvs.verify.gate import check_caller_authorization


class TestAuthenticationDisabled:
    """Without a shared secret every caller is admitted."""

    @pytest.mark.parametrize(
        "authorization", [None, "", "Bearer token", "Basic dXNlcjpwYXNz", "garbage"]
    )
    def test_admits_any_header(self, authorization):
        check_caller_authorization(None, authorization)

    def test_empty_secret_disables_authentication(self):
        check_caller_authorization("", None)


class TestAuthenticationEnabled:
    """With a shared secret only the exact Bearer credential is admitted."""

    def test_admits_correct_token(self):
        check_caller_authorization("token", "Bearer token")

    def test_rejects_missing_header(self):
        with pytest.raises(CallerUnauthorizedException, match="error-uvs-1000"):
            check_caller_authorization("token", None)

    def test_rejects_empty_header(self):
        with pytest.raises(CallerUnauthorizedException, match="error-uvs-1000"):
            check_caller_authorization("token", "")

    def test_rejects_wrong_token(self):
        with pytest.raises(CallerUnauthorizedException, match="error-uvs-1002"):
            check_caller_authorization("token", "Bearer wrongtoken")

    @pytest.mark.parametrize(
        "authorization", ["Basic token", "bearer token", "token", "Bearer"]
    )
    def test_rejects_wrong_scheme(self, authorization):
        with pytest.raises(CallerUnauthorizedException, match="error-uvs-1001"):
            check_caller_authorization("token", authorization)

    def test_comparison_is_case_sensitive(self):
        with pytest.raises(CallerUnauthorizedException):
            check_caller_authorization("token", "Bearer TOKEN")

    def test_rejects_token_with_extra_whitespace(self):
        with pytest.raises(CallerUnauthorizedException):
            check_caller_authorization("token", "Bearer  token")

    def test_rejection_carries_forbidden_status(self):
        with pytest.raises(CallerUnauthorizedException) as excinfo:
            check_caller_authorization("token", None)
        assert excinfo.value.status == 403
