"""Unit tests for src/api/envelope/structure.py."""

import threading

import pytest
import pytest_check

from src.api.envelope.structure import (
    REQUIRED_KEYS,
    EnvelopeStructure,
    StructureStore,
    StructureValidator,
)
from src.core.config import DEFAULT_RESPONSE_STRUCTURE
from src.core.exceptions import ConfigurationError, ErrorCode


@pytest.mark.unit
class TestStructureValidator:
    """Test required-key validation."""

    def test_complete_structure_is_returned_unchanged(self) -> None:
        """A complete mapping passes through as the same object."""
        structure = dict(DEFAULT_RESPONSE_STRUCTURE)

        assert StructureValidator().validate(structure) is structure

    def test_missing_keys_are_listed_in_declaration_order(self) -> None:
        """The error names every missing key, comma-joined, in fixed order."""
        structure = {
            key: value
            for key, value in DEFAULT_RESPONSE_STRUCTURE.items()
            if key not in ("links_key", "message_key", "meta_key")
        }

        with pytest.raises(ConfigurationError) as exc_info:
            StructureValidator().validate(structure)

        with pytest_check.check:
            assert exc_info.value.message == (
                "Missing required keys in response structure configuration: "
                "message_key, meta_key, links_key"
            )
        with pytest_check.check:
            assert exc_info.value.context["missing_keys"] == [
                "message_key",
                "meta_key",
                "links_key",
            ]
        with pytest_check.check:
            assert exc_info.value.error_code == ErrorCode.CONFIGURATION_ERROR.value

    def test_empty_structure_lists_all_keys(self) -> None:
        """An empty mapping misses all eight keys."""
        with pytest.raises(ConfigurationError) as exc_info:
            StructureValidator().validate({})

        assert exc_info.value.message.endswith(", ".join(REQUIRED_KEYS))

    def test_extra_keys_are_allowed(self) -> None:
        """Unknown keys do not fail validation."""
        structure = {**DEFAULT_RESPONSE_STRUCTURE, "custom_key": "x"}

        assert StructureValidator().validate(structure) == structure


@pytest.mark.unit
class TestStructureStore:
    """Test the copy-on-write structure store."""

    def test_initial_structure(self) -> None:
        """The store exposes the configured key scheme as a model."""
        store = StructureStore(DEFAULT_RESPONSE_STRUCTURE)

        assert store.current == EnvelopeStructure()

    def test_invalid_initial_structure_raises(self) -> None:
        """Construction validates the structure."""
        with pytest.raises(ConfigurationError, match="data_key"):
            StructureStore({"success_key": "ok"})

    def test_update_merges_onto_current(self) -> None:
        """Partial updates keep the keys they do not mention."""
        store = StructureStore(DEFAULT_RESPONSE_STRUCTURE)

        updated = store.update({"data_key": "payload", "include_api_version": False})

        with pytest_check.check:
            assert store.current is updated
        with pytest_check.check:
            assert updated.data_key == "payload"
        with pytest_check.check:
            assert updated.include_api_version is False
        with pytest_check.check:
            assert updated.success_key == "success"

    def test_invalid_update_keeps_previous_structure(self) -> None:
        """A value that fails model validation leaves the store untouched."""
        store = StructureStore(DEFAULT_RESPONSE_STRUCTURE)
        before = store.current

        with pytest.raises(ConfigurationError, match="Invalid response structure"):
            store.update({"data_key": ["not", "a", "string"]})

        assert store.current is before

    def test_structure_is_immutable(self) -> None:
        """Readers cannot mutate the shared model."""
        store = StructureStore(DEFAULT_RESPONSE_STRUCTURE)

        with pytest.raises(ValueError, match="frozen"):
            store.current.data_key = "other"  # type: ignore[misc]

    def test_concurrent_updates_never_expose_partial_state(self) -> None:
        """Readers only ever see one of the complete structures written."""
        store = StructureStore(DEFAULT_RESPONSE_STRUCTURE)
        variants = [
            {"data_key": f"data_{i}", "message_key": f"message_{i}"} for i in range(20)
        ]
        seen: list[tuple[str, str]] = []
        stop = threading.Event()

        def read() -> None:
            while not stop.is_set():
                current = store.current
                seen.append((current.data_key, current.message_key))

        reader = threading.Thread(target=read)
        reader.start()
        writers = [threading.Thread(target=store.update, args=(v,)) for v in variants]
        for writer in writers:
            writer.start()
        for writer in writers:
            writer.join()
        stop.set()
        reader.join()

        for data_key, message_key in seen:
            assert data_key.removeprefix("data") == message_key.removeprefix("message")
