"""Envelope key scheme: model, validation and runtime replacement.

The key scheme maps each logical envelope role (success flag, message, data,
errors, error code, meta, links) to the literal field name written on the
wire. It is read on every response and replaced only on administrative
paths, so it lives in a copy-on-write ``StructureStore``: readers grab the
current immutable model without locking and writers swap in a fully
validated replacement.
"""

import threading
from collections.abc import Mapping
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, ValidationError

from src.core.exceptions import ConfigurationError

REQUIRED_KEYS: Final[tuple[str, ...]] = (
    "success_key",
    "message_key",
    "data_key",
    "errors_key",
    "error_code_key",
    "meta_key",
    "links_key",
    "include_api_version",
)


class EnvelopeStructure(BaseModel):
    """Field names used for each envelope role."""

    model_config = ConfigDict(frozen=True)

    success_key: str = "success"
    message_key: str = "message"
    data_key: str = "data"
    errors_key: str = "errors"
    error_code_key: str = "error_code"
    meta_key: str = "meta"
    links_key: str = "_links"
    include_api_version: bool = True


class StructureValidator:
    """Check that an envelope structure mapping defines every required key."""

    def validate(self, structure: Mapping[str, Any]) -> Mapping[str, Any]:
        """Validate a structure mapping.

        Args:
            structure: Candidate key scheme.

        Returns:
            Mapping[str, Any]: The same mapping, unchanged.

        Raises:
            ConfigurationError: If any required key is missing. The message
                lists every missing key in declaration order.
        """
        missing = [key for key in REQUIRED_KEYS if key not in structure]
        if missing:
            raise ConfigurationError(
                "Missing required keys in response structure configuration: "
                + ", ".join(missing),
                context={"missing_keys": missing},
            )
        return structure


class StructureStore:
    """Holds the active envelope structure and replaces it atomically."""

    def __init__(
        self,
        structure: Mapping[str, Any],
        validator: StructureValidator | None = None,
    ) -> None:
        self._validator = validator or StructureValidator()
        self._lock = threading.Lock()
        self._current = self._build(structure)

    def _build(self, structure: Mapping[str, Any]) -> EnvelopeStructure:
        validated = self._validator.validate(structure)
        try:
            return EnvelopeStructure.model_validate(
                {key: validated[key] for key in REQUIRED_KEYS}
            )
        except ValidationError as e:
            raise ConfigurationError(
                f"Invalid response structure configuration: {e.error_count()} "
                "invalid value(s)",
                context={"errors": e.errors(include_url=False)},
                cause=e,
            ) from e

    @property
    def current(self) -> EnvelopeStructure:
        """The active structure."""
        return self._current

    def update(self, changes: Mapping[str, Any]) -> EnvelopeStructure:
        """Merge ``changes`` onto the active structure and swap it in.

        Args:
            changes: Keys to override.

        Returns:
            EnvelopeStructure: The new active structure.

        Raises:
            ConfigurationError: If the merged structure is invalid. The active
                structure is left untouched.
        """
        with self._lock:
            merged = {**self._current.model_dump(), **changes}
            self._current = self._build(merged)
            return self._current
