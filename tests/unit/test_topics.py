"""
Unit tests for the topic codec.

Tests device ID derivation, its inverse, and the topic builders.
"""

import pytest
from lock_helpers import LOCK_ADDRESS, LOCK_ID

from ttlock_bridge.exceptions import InvalidAddressError, InvalidTopicError
from ttlock_bridge.structs import LockInfo
from ttlock_bridge.topics import (
    COMMAND_TOPIC_FILTER,
    address_from_topic,
    command_topic,
    device_id,
    discovery_topics,
    parse_command_topic,
    state_topic,
)


def _info(autolock: bool, sound: bool) -> LockInfo:
    return LockInfo(
        address=LOCK_ADDRESS,
        name="Front Door",
        manufacturer="TTLock",
        model="M201",
        firmware="6.0.2",
        has_autolock=autolock,
        has_lock_sound=sound,
    )


class TestDeviceId:
    """Tests for device_id"""

    def test_example_address(self):
        assert device_id(LOCK_ADDRESS) == LOCK_ID

    def test_lowercase_address(self):
        assert device_id("aa:bb:cc:dd:ee:ff") == "aabbccddeeff"

    @pytest.mark.parametrize(
        "address",
        [
            "",
            "E1:58:1B:3A:60",
            "E1:58:1B:3A:60:5C:00",
            "E1581B3A605C",
            "E1-58-1B-3A-60-5C",
            "G1:58:1B:3A:60:5C",
            "E1:58:1B:3A:60:5",
        ],
    )
    def test_invalid_address_raises(self, address):
        with pytest.raises(InvalidAddressError) as exc_info:
            _ = device_id(address)
        assert exc_info.value.address == address


class TestAddressFromTopic:
    """Tests for address_from_topic"""

    def test_example_segment(self):
        assert address_from_topic(LOCK_ID) == LOCK_ADDRESS

    def test_uppercases_result(self):
        assert address_from_topic("aabbccddeeff") == "AA:BB:CC:DD:EE:FF"

    @pytest.mark.parametrize("segment", ["", "e1581b3a605", "e1581b3a605c0", "e1581b3a605g", "e1:58:1b:3a:6"])
    def test_invalid_segment_raises(self, segment):
        with pytest.raises(InvalidTopicError):
            _ = address_from_topic(segment)

    @pytest.mark.parametrize(
        "address",
        ["E1:58:1B:3A:60:5C", "00:00:00:00:00:00", "FF:FF:FF:FF:FF:FF", "a1:b2:c3:d4:e5:f6"],
    )
    def test_round_trip(self, address):
        assert address_from_topic(device_id(address)) == address.upper()


class TestTopicBuilders:
    """Tests for state, command and discovery topics"""

    def test_state_and_command_topics(self):
        assert state_topic(LOCK_ID) == "ttlock/e1581b3a605c"
        assert command_topic(LOCK_ID) == "ttlock/e1581b3a605c/set"

    def test_command_filter(self):
        assert COMMAND_TOPIC_FILTER == "ttlock/+/set"

    def test_parse_command_topic(self):
        assert parse_command_topic("ttlock/e1581b3a605c/set") == LOCK_ADDRESS

    @pytest.mark.parametrize(
        "topic",
        [
            "ttlock/e1581b3a605c",
            "ttlock/e1581b3a605c/get",
            "other/e1581b3a605c/set",
            "ttlock/e1581b3a605c/set/extra",
            "ttlock/e1581b3a60/set",
        ],
    )
    def test_parse_command_topic_rejects_malformed(self, topic):
        with pytest.raises(InvalidTopicError):
            _ = parse_command_topic(topic)

    def test_discovery_topics_all_features(self):
        topics = discovery_topics("homeassistant", LOCK_ID, _info(autolock=True, sound=True))

        assert list(topics.items()) == [
            ("lock", "homeassistant/lock/e1581b3a605c/lock/config"),
            ("battery", "homeassistant/sensor/e1581b3a605c/battery/config"),
            ("rssi", "homeassistant/sensor/e1581b3a605c/rssi/config"),
            ("autolock", "homeassistant/number/e1581b3a605c/autolock/config"),
            ("audio", "homeassistant/switch/e1581b3a605c/audio/config"),
        ]

    def test_discovery_topics_without_optional_features(self):
        topics = discovery_topics("ha", LOCK_ID, _info(autolock=False, sound=False))

        assert list(topics) == ["lock", "battery", "rssi"]
        assert topics["lock"] == "ha/lock/e1581b3a605c/lock/config"

    def test_discovery_topics_sound_only(self):
        topics = discovery_topics("homeassistant", LOCK_ID, _info(autolock=False, sound=True))

        assert "autolock" not in topics
        assert "audio" in topics
