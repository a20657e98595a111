import pytest

from txn_broker.messaging.routing import (
    account_id_from_routing_key,
    topic_for_account,
    topic_matches,
    validate_account_pattern,
)


@pytest.mark.unit
class TestTopicForAccount:
    @pytest.mark.parametrize(
        "pattern,account_id",
        [
            ("deposit.laos.*", "00120010010106019"),
            ("withdraw.laos.*", "70120010010106020"),
            ("a.b.*.d", "x"),
        ],
    )
    def test_account_id_lands_on_third_segment(self, pattern, account_id):
        topic = topic_for_account(pattern, account_id)

        assert topic.split(".")[2] == account_id
        assert account_id_from_routing_key(topic) == account_id

    def test_only_first_wildcard_is_replaced(self):
        assert topic_for_account("deposit.laos.*.*", "42") == "deposit.laos.42.*"

    @pytest.mark.parametrize("account_id", ["", "001.002", "a.b"])
    def test_invalid_account_id(self, account_id):
        with pytest.raises(ValueError):
            topic_for_account("deposit.laos.*", account_id)

    @pytest.mark.parametrize(
        "pattern",
        ["deposit.laos.fixed", "deposit.*", "laos.*", "*.laos.x", "*.laos.*", "deposit.*.*", "dep*.laos.*"],
    )
    def test_pattern_without_account_wildcard_at_segment_2(self, pattern):
        with pytest.raises(ValueError):
            topic_for_account(pattern, "42")

    @pytest.mark.parametrize("pattern", ["deposit.laos.*", "withdraw.laos.*", "a.b.*.d"])
    def test_validate_account_pattern_returns_pattern(self, pattern):
        assert validate_account_pattern(pattern) == pattern


@pytest.mark.unit
class TestAccountIdFromRoutingKey:
    @pytest.mark.parametrize(
        "routing_key,expected",
        [
            ("deposit.laos.00120010010106019", "00120010010106019"),
            ("deposit.laos.42.extra", "42"),
            ("deposit.laos", "unknown"),
            ("deposit", "unknown"),
            ("", "unknown"),
            (None, "unknown"),
        ],
    )
    def test_extraction(self, routing_key, expected):
        assert account_id_from_routing_key(routing_key) == expected


@pytest.mark.unit
class TestTopicMatches:
    @pytest.mark.parametrize(
        "pattern,routing_key",
        [
            ("deposit.laos.*", "deposit.laos.00120010010106019"),
            ("deposit.#", "deposit.laos.42"),
            ("deposit.#", "deposit"),
            ("#", "anything.at.all"),
            ("*.laos.*", "withdraw.laos.1"),
            ("deposit.#.42", "deposit.laos.x.42"),
            ("deposit.laos.42", "deposit.laos.42"),
        ],
    )
    def test_matching(self, pattern, routing_key):
        assert topic_matches(pattern, routing_key)

    @pytest.mark.parametrize(
        "pattern,routing_key",
        [
            ("deposit.laos.*", "withdraw.laos.42"),
            ("deposit.laos.*", "deposit.laos"),
            ("deposit.laos.*", "deposit.laos.42.extra"),
            ("deposit.*", "deposit"),
            ("deposit.#.42", "deposit.laos.43"),
        ],
    )
    def test_not_matching(self, pattern, routing_key):
        assert not topic_matches(pattern, routing_key)
