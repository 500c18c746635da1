"""
Tests for the price oracle, authorizers, event sink and logging setup.
"""

import logging

import pytest

from perpcore.engine.auth import AllowAllAuthorizer, AllowListAuthorizer, CallbackAuthorizer
from perpcore.engine.events import MemoryEventSink
from perpcore.engine.oracle import TrustedPriceOracle
from perpcore.exceptions import ErrorCode, InvalidPriceError, UnauthorizedError
from perpcore.logger import LogManager, TerminalSafeFormatter, get_logger

ORACLE = "oracle-1"


class TestTrustedPriceOracle:

    def _oracle(self) -> TrustedPriceOracle:
        return TrustedPriceOracle(asset="BTC", trusted={ORACLE})

    def test_no_price_before_first_update(self):
        oracle = self._oracle()
        assert oracle.current_price() == 0
        assert not oracle.has_price

    def test_update(self):
        oracle = self._oracle()
        oracle.update_price(ORACLE, 50000, timestamp=123.0)
        assert oracle.current_price() == 50000
        assert oracle.last_updated == 123.0
        assert oracle.has_price

    def test_untrusted_publisher(self):
        oracle = self._oracle()
        with pytest.raises(UnauthorizedError, match="not a trusted oracle"):
            oracle.update_price("mallory", 1)
        assert oracle.current_price() == 0

    @pytest.mark.parametrize("price", [0, -1])
    def test_non_positive_price(self, price):
        oracle = self._oracle()
        with pytest.raises(InvalidPriceError):
            oracle.update_price(ORACLE, price)

    def test_add_and_remove(self):
        oracle = self._oracle()
        oracle.add_oracle("oracle-2")
        oracle.update_price("oracle-2", 100)
        oracle.remove_oracle(ORACLE)
        assert oracle.oracles == {"oracle-2"}
        with pytest.raises(UnauthorizedError):
            oracle.update_price(ORACLE, 100)

    def test_add_empty_identity(self):
        with pytest.raises(ValueError):
            self._oracle().add_oracle("")


class TestAuthorizers:

    def test_allow_all(self):
        AllowAllAuthorizer().require("anyone")
        with pytest.raises(UnauthorizedError):
            AllowAllAuthorizer().require("")

    def test_allow_list(self):
        auth = AllowListAuthorizer({"alice"})
        auth.require("alice")
        with pytest.raises(UnauthorizedError) as exc:
            auth.require("bob")
        assert exc.value.principal == "bob"
        assert exc.value.code == ErrorCode.UNAUTHORIZED

        auth.allow("bob")
        auth.require("bob")
        auth.revoke("alice")
        with pytest.raises(UnauthorizedError):
            auth.require("alice")

    def test_callback(self):
        auth = CallbackAuthorizer(lambda p: p.startswith("ok-"))
        auth.require("ok-alice")
        with pytest.raises(UnauthorizedError, match="verification failed"):
            auth.require("alice")


class TestMemoryEventSink:

    def test_publish_copies_payload(self):
        sink = MemoryEventSink()
        payload = {"trader": "alice"}
        sink.publish("PLACE", payload)
        payload["trader"] = "bob"
        assert sink.events[0].payload == {"trader": "alice"}

    def test_bounded(self):
        sink = MemoryEventSink(max_events=2)
        for i in range(5):
            sink.publish("PLACE", {"i": i})
        assert [e.payload["i"] for e in sink.events] == [3, 4]

    def test_by_topic_and_clear(self):
        sink = MemoryEventSink()
        sink.publish("PLACE", {})
        sink.publish("CLOSE", {})
        assert len(sink.by_topic("CLOSE")) == 1
        assert sink.events[0].to_dict()["event"] == "PLACE"
        sink.clear()
        assert sink.events == []


class TestLogging:

    def test_get_logger_configures_once(self):
        logger = get_logger("perpcore.tests")
        assert isinstance(logger, logging.Logger)
        assert LogManager().is_configured
        assert LogManager() is LogManager()

    def test_sanitize_strips_control_sequences(self):
        assert TerminalSafeFormatter.sanitize("\x1b[31mred\x1b[0m") == "red"

    def test_sanitize_keeps_tabs_and_newlines(self):
        assert TerminalSafeFormatter.sanitize("a\tb\nc\r\x07") == "a\tb\nc"
