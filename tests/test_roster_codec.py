"""Tests for the roster codec."""

import pytest

from core.exceptions import MalformedRosterToken, ValidationError
from services.role_catalog import JAM_ROLES
from services.roster_codec import (
    DELIMITER,
    RoleSlot,
    decode,
    decode_all,
    encode,
    encode_all,
)


class TestEncode:

    def test_token_joins_role_and_holder(self):
        assert encode("BASS", 7) == "BASS|7"
        assert encode("ELECTRONIC SOUNDS", 12) == "ELECTRONIC SOUNDS|12"

    def test_no_catalog_role_contains_the_delimiter(self):
        assert all(DELIMITER not in role for role in JAM_ROLES)

    def test_unknown_role_rejected(self):
        with pytest.raises(MalformedRosterToken):
            encode("KAZOO", 1)

    def test_non_integer_holder_rejected(self):
        with pytest.raises(MalformedRosterToken):
            encode("BASS", "7")


class TestDecode:

    def test_round_trip_for_every_role(self):
        for user_id in (1, 42, 100000):
            for role in JAM_ROLES:
                assert decode(encode(role, user_id)) == (role, user_id)

    def test_decode_returns_role_slot(self):
        slot = decode("LEAD GUITAR|3")
        assert isinstance(slot, RoleSlot)
        assert slot.role == "LEAD GUITAR"
        assert slot.user_id == 3

    def test_missing_delimiter_rejected(self):
        with pytest.raises(MalformedRosterToken):
            decode("BASS7")

    def test_unknown_role_rejected(self):
        with pytest.raises(MalformedRosterToken):
            decode("KAZOO|7")

    def test_non_integer_holder_rejected(self):
        with pytest.raises(MalformedRosterToken):
            decode("BASS|seven")
        with pytest.raises(MalformedRosterToken):
            decode("BASS|")

    def test_malformed_token_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            decode(None)


class TestBulk:

    def test_encode_all_and_decode_all(self):
        slots = [RoleSlot("BASS", 1), RoleSlot("BASS", 2), RoleSlot("HORNS", 3)]
        tokens = encode_all(slots)
        assert tokens == ["BASS|1", "BASS|2", "HORNS|3"]
        assert decode_all(tokens) == slots
