"""
Unit tests for bearer-token authentication.
"""

import pytest

from essay_grader.auth import AuthenticationError, Caller, StaticTokenAuthenticator, bearer_token
from essay_grader.config import Settings


class TestBearerToken:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer   abc  ", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("Bearer   ", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse(self, header, expected) -> None:
        assert bearer_token(header) == expected


class TestStaticTokenAuthenticator:
    """Tests for StaticTokenAuthenticator."""

    def test_from_settings(self, test_settings: Settings) -> None:
        authenticator = StaticTokenAuthenticator.from_settings(test_settings)

        assert authenticator.authenticate("Bearer test-token") == Caller("user-123456789")
        assert authenticator.authenticate("Bearer other-token") == Caller("user-2")

    @pytest.mark.parametrize("header", [None, "", "Bearer wrong", "Token test-token"])
    def test_rejected(self, test_settings: Settings, header) -> None:
        authenticator = StaticTokenAuthenticator.from_settings(test_settings)

        with pytest.raises(AuthenticationError, match="Unauthorized"):
            authenticator.authenticate(header)

    def test_no_tokens_rejects_everything(self) -> None:
        with pytest.raises(AuthenticationError):
            StaticTokenAuthenticator({}).authenticate("Bearer anything")
