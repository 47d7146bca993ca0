"""Tests for em_common.energy, id_generator and datetime_utils."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from src.em_common.datetime_utils import minute_bucket, utc_now, window_start
from src.em_common.energy import clamp_price, energy_to_display, initial_price
from src.em_common.id_generator import (
    _COUNTER_BITS,
    _COUNTER_LIMIT,
    _EPOCH_MS,
    _WORKER_BITS,
    PrefixedIdFactory,
    new_market_id,
    new_outcome_id,
)


class TestEnergy:
    @pytest.mark.parametrize(
        "raw, expected", [(-1.0, 0.01), (0.0, 0.01), (0.5, 0.5), (0.99, 0.99), (3.0, 0.99)]
    )
    def test_clamp_price(self, raw, expected) -> None:
        assert clamp_price(raw) == expected

    @pytest.mark.parametrize("n, expected", [(1, 0.99), (2, 0.5), (4, 0.25)])
    def test_initial_price(self, n, expected) -> None:
        assert initial_price(n) == expected

    def test_initial_price_rejects_zero(self) -> None:
        with pytest.raises(ValueError):
            initial_price(0)

    def test_display(self) -> None:
        assert energy_to_display(1234.5) == "1,234.50 E"
        assert energy_to_display(-30) == "-30.00 E"
        assert energy_to_display(0) == "0.00 E"


class TestPrefixedIdFactory:
    def test_unique_and_increasing(self) -> None:
        factory = PrefixedIdFactory("MKT", worker=1)
        numbers = [factory.next_number() for _ in range(1000)]
        assert len(set(numbers)) == 1000
        assert numbers == sorted(numbers)

    def test_worker_out_of_range(self) -> None:
        with pytest.raises(ValueError):
            PrefixedIdFactory("MKT", worker=1 << _WORKER_BITS)

    def test_worker_is_packed_between_stamp_and_counter(self) -> None:
        stamp = _EPOCH_MS + 5
        with patch("src.em_common.id_generator._now_ms", return_value=stamp):
            number = PrefixedIdFactory("OUT", worker=3).next_number()

        assert number >> (_WORKER_BITS + _COUNTER_BITS) == 5
        assert (number >> _COUNTER_BITS) & ((1 << _WORKER_BITS) - 1) == 3
        assert number & (_COUNTER_LIMIT - 1) == 0

    def test_exhausted_counter_waits_for_next_millisecond(self) -> None:
        stamp = _EPOCH_MS + 100
        factory = PrefixedIdFactory("MKT")
        factory._stamp, factory._counter = stamp, _COUNTER_LIMIT - 1
        with patch(
            "src.em_common.id_generator._now_ms", side_effect=[stamp, stamp, stamp + 1]
        ):
            number = factory.next_number()

        assert number == 101 << (_WORKER_BITS + _COUNTER_BITS)

    def test_module_factories(self) -> None:
        market_id, outcome_id = new_market_id(), new_outcome_id()
        assert market_id.startswith("MKT-")
        assert market_id[4:].isdigit()
        assert outcome_id.startswith("OUT-")


class TestDatetimeUtils:
    def test_utc_now_is_aware(self) -> None:
        assert utc_now().tzinfo == UTC

    def test_window_start(self) -> None:
        now = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        assert window_start(60, now) == now - timedelta(hours=1)

    def test_minute_bucket(self) -> None:
        dt = datetime(2026, 1, 1, 12, 34, 56, 789, tzinfo=UTC)
        assert minute_bucket(dt) == datetime(2026, 1, 1, 12, 34, tzinfo=UTC)
