"""Tests for the loguru-based unified logger."""

from loguru import logger as loguru_logger

from helpers.unified_logger import UnifiedLogger, get_exchange_logger, get_stream_logger


def capture(records):
    return loguru_logger.add(lambda message: records.append(message.record), level="DEBUG")


class TestComponentIds:

    def test_exchange_logger_context(self):
        logger = get_exchange_logger("kraken", symbol="BTC/USD", component="rest")

        assert logger.component_id == "EXCHANGE:KRAKEN:symbol=BTC/USD:component=rest"

    def test_stream_logger(self):
        logger = get_stream_logger("kraken_ws")

        assert logger.component_id == "STREAM:KRAKEN_WS"

    def test_with_context_extends(self):
        logger = get_stream_logger("kraken_ws").with_context(session="a1")

        assert isinstance(logger, UnifiedLogger)
        assert logger.component_id == "STREAM:KRAKEN_WS:session=a1"


class TestRecords:

    def test_component_id_bound_to_records(self):
        records = []
        sink_id = capture(records)
        try:
            get_exchange_logger("kraken").warning("rejected")
        finally:
            loguru_logger.remove(sink_id)

        assert records[-1]["message"] == "rejected"
        assert records[-1]["extra"]["component_id"] == "EXCHANGE:KRAKEN"

    def test_log_by_level_name(self):
        records = []
        sink_id = capture(records)
        try:
            logger = get_stream_logger("kraken_ws")
            logger.log("frame {not formatted}", "ERROR")
            logger.log("unknown level", "LOUD")
        finally:
            loguru_logger.remove(sink_id)

        assert records[-2]["level"].name == "ERROR"
        assert records[-2]["message"] == "frame {not formatted}"
        assert records[-1]["level"].name == "INFO"
