"""
Push registration token format checks
"""
import re
from typing import Any, Iterable, Sequence

from momento.core.config import settings

# FCM tokens are URL-safe base64 with a ':' separating the instance id
TOKEN_ALPHABET = re.compile(r"^[A-Za-z0-9_:-]+$")

DEFAULT_TEST_PREFIXES = ("test_",)


def is_well_formed_token(
    token: Any,
    *,
    relaxed: bool = False,
    min_length: int = 140,
    max_length: int = 200,
    test_prefixes: Iterable[str] = DEFAULT_TEST_PREFIXES,
) -> bool:
    """
    Check that ``token`` looks like a provider-issued registration token.

    In relaxed mode any non-empty token starting with one of ``test_prefixes``
    is accepted; every other token must pass the strict check: allowed
    alphabet only and ``min_length <= len(token) <= max_length``.
    """
    if not isinstance(token, str) or not token:
        return False

    if relaxed and any(prefix and token.startswith(prefix) for prefix in test_prefixes):
        return True

    if not min_length <= len(token) <= max_length:
        return False

    return TOKEN_ALPHABET.match(token) is not None


class TokenValidator:
    """
    ``is_well_formed_token`` bound to one configuration
    """

    def __init__(
        self,
        min_length: int = 140,
        max_length: int = 200,
        relaxed: bool = False,
        test_prefixes: Sequence[str] = DEFAULT_TEST_PREFIXES,
    ):
        if min_length < 1 or max_length < min_length:
            raise ValueError(f"Invalid token length range: {min_length}-{max_length}")
        self.min_length = min_length
        self.max_length = max_length
        self.relaxed = relaxed
        self.test_prefixes = tuple(test_prefixes)

    @classmethod
    def from_settings(cls) -> "TokenValidator":
        return cls(
            min_length=settings.FCM_TOKEN_MIN_LENGTH,
            max_length=settings.FCM_TOKEN_MAX_LENGTH,
            relaxed=not settings.is_production,
            test_prefixes=settings.FCM_TEST_TOKEN_PREFIXES,
        )

    def is_well_formed(self, token: Any) -> bool:
        return is_well_formed_token(
            token,
            relaxed=self.relaxed,
            min_length=self.min_length,
            max_length=self.max_length,
            test_prefixes=self.test_prefixes,
        )


def mask_token(token: str) -> str:
    """Shorten a token for log output"""
    return f"{token[:10]}..." if token else "<empty>"
