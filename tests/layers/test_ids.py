"""Tests for trellis.layers.ids."""

import trellis.constants as constants
import trellis.layers.ids as ids


class TestCreateId:
    """Tests for create_id."""

    def test_length(self) -> None:
        """Ids should be exactly seven characters."""
        assert len(ids.create_id()) == constants.ID_LENGTH == 7

    def test_alphabet(self) -> None:
        """Ids should only use alphanumeric characters."""
        for _ in range(50):
            assert set(ids.create_id()) <= set(constants.ID_ALPHABET)

    def test_ids_differ(self) -> None:
        """Repeated calls should not keep returning the same id."""
        assert len({ids.create_id() for _ in range(100)}) > 90


class TestCreateUniqueId:
    """Tests for create_unique_id."""

    def test_avoids_taken_ids(self) -> None:
        """Should never return an id already in the set."""
        taken = {ids.create_id() for _ in range(20)}
        before = set(taken)
        new_id = ids.create_unique_id(taken)
        assert new_id not in before

    def test_adds_to_set(self) -> None:
        """Generated id should be recorded in the set."""
        taken: set[str] = set()
        new_id = ids.create_unique_id(taken)
        assert taken == {new_id}
