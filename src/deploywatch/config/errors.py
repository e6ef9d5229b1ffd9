"""Errors raised while reading the webhook, watch and storage settings."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ConfigurationError(RuntimeError):
    """An environment variable holds a value deploywatch cannot use.

    ``names`` lists the offending variables.
    """

    def __init__(self, message: str, *, names: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.names = tuple(names)


class MissingConfigurationError(ConfigurationError):
    """Settings without a default, such as the webhook URL, are unset or blank."""

    def __init__(self, names: Iterable[str]) -> None:
        ordered = sorted(names)
        super().__init__(f"Missing configuration for: {', '.join(ordered)}", names=ordered)
