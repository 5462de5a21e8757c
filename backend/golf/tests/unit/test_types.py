import json

import pytest
from pydantic import ValidationError

from golf.messaging.types import GameResultMessage, MessageType, parse_finished_payload


class TestFinishedPayload:
    def test_valid_payload(self):
        stats = parse_finished_payload(json.dumps({"keys": ["i"], "undoCount": 0}))

        assert stats.keys == ["i"]
        assert stats.undo_count == 0

    def test_float_undo_count_accepted(self):
        assert parse_finished_payload('{"keys": [], "undoCount": 1.5}').undo_count == 1.5

    @pytest.mark.parametrize(
        "payload",
        [
            {"foo": "bar"},
            {"keys": "bar", "undoCount": 0},
            {"keys": [0], "undoCount": 0},
            {"keys": [0]},
            {"keys": ["a"]},
            {"keys": ["a"], "undoCount": "1"},
            {"keys": ["a"], "undoCount": True},
            {"keys": ["a"], "undoCount": None},
        ],
    )
    def test_bad_data_rejected(self, payload):
        with pytest.raises(ValidationError):
            parse_finished_payload(json.dumps(payload))

    @pytest.mark.parametrize("payload", ["", "not json", "[]", '{"keys": ["a"], "undoCount": NaN}'])
    def test_non_object_json_rejected(self, payload):
        with pytest.raises(ValidationError):
            parse_finished_payload(payload)


class TestGameResultMessage:
    def test_defaults_describe_a_loss(self):
        result = GameResultMessage()

        assert result.winner is False
        assert result.failed is False
        assert result.expired is False
        assert result.reason is None

    def test_mirror_for_loser(self):
        result = GameResultMessage(winner=True, score_difference=12.5, keys_pressed_difference=-1)
        mirrored = result.model_copy(update={"winner": False, "expired": True})

        assert mirrored.winner is False
        assert mirrored.expired is True
        assert mirrored.score_difference == 12.5
        assert mirrored.keys_pressed_difference == -1
        assert result.winner is True

    def test_dump_uses_wire_names(self):
        dumped = GameResultMessage(failed=True, reason="late").model_dump(by_alias=True)

        assert dumped["failed"] is True
        assert dumped["reason"] == "late"
        assert "scoreDifference" in dumped
        assert "keysPressedDifference" in dumped
        assert "timeDifference" in dumped


def test_message_type_values_match_the_wire():
    assert MessageType.START_GAME == "start-game"
    assert {t.value for t in MessageType} == {"ready", "finished", "start-game", "waiting"}
