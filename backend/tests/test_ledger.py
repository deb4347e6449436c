"""Processing ledger: carry-over chain, profit and loss, weekly/monthly views and statistics."""
import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from food_station.core.errors import ValidationError
from food_station.db import session as db_session
from food_station.models.processing_ledger import (
    CARRY_CARRIED, CARRY_NO_RECORD, CARRY_ZERO, ProcessingLedgerEntry,
)
from food_station.services.ledger import ProductionLedger, compute_entry_figures, entry_to_dict
from tests import factories

JAN_1 = date(2024, 1, 1)
JAN_2 = date(2024, 1, 2)
JAN_3 = date(2024, 1, 3)


async def _all_entries(db, code="soy_curd"):
    result = await db.execute(
        select(ProcessingLedgerEntry)
        .where(ProcessingLedgerEntry.product_line == code)
        .order_by(ProcessingLedgerEntry.date)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


def _assert_chain(entries):
    """Every entry whose previous day is recorded carries that day's remainder."""
    by_date = {e.date: e for e in entries}
    for entry in entries:
        previous = by_date.get(entry.date - timedelta(days=1))
        if previous is None:
            assert entry.carry_over_state == CARRY_NO_RECORD
            assert entry.carried_over == 0
        else:
            assert entry.carried_over == max(Decimal("0"), previous.derived_remaining)
        expected = max(Decimal("0"), entry.carried_over + entry.derived_collected - entry.derived_dispatched)
        assert entry.derived_remaining == expected


def test_entry_figures_clamp_and_profit():
    figures = compute_entry_figures(
        carried_over=Decimal("1"),
        raw_input=Decimal("20"),
        derived_collected=Decimal("2"),
        derived_dispatched=Decimal("9"),
        byproduct_quantity=Decimal("4"),
        raw_price=Decimal("12000"),
        derived_price=Decimal("15000"),
        byproduct_price=Decimal("5000"),
        other_costs=Decimal("1000"),
    )
    assert figures["derived_remaining"] == 0
    assert figures["processing_efficiency"] == Decimal("0.1")
    assert figures["revenue"] == Decimal("50000")
    assert figures["cost"] == Decimal("241000")
    assert figures["net_profit"] == Decimal("-191000")


def test_efficiency_is_zero_without_raw_input():
    figures = compute_entry_figures(*(Decimal("0"),) * 9)
    assert figures["processing_efficiency"] == 0


def test_soy_curd_carry_over_scenario(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        first = await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 6)
        second = await ledger.upsert_daily("soy_curd", "2024-01-02", 20, 16, 10)
        return entry_to_dict(first), entry_to_dict(second)

    first, second = run_db(scenario)

    assert first["carry_over_state"] == CARRY_NO_RECORD
    assert first["derived_remaining"] == Decimal("4")
    assert second["carried_over"] == Decimal("4")
    assert second["carry_over_state"] == CARRY_CARRIED
    assert second["derived_remaining"] == Decimal("10")
    assert second["processing_efficiency"] == Decimal("0.8")
    assert second["revenue"] == Decimal("240000")
    assert second["cost"] == Decimal("240000")
    assert second["net_profit"] == 0
    assert second["raw_price"] == Decimal("12000")


def test_remaining_never_negative_and_zero_carry(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 5, 3, 8)
        return await ledger.upsert_daily("soy_curd", JAN_2, 5, 3, 1)

    entry = run_db(scenario)

    assert entry.carried_over == 0
    assert entry.carry_over_state == CARRY_ZERO
    assert entry.derived_remaining == Decimal("2")


def test_upsert_is_idempotent(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("bean_sprouts", JAN_1, 10, 30, 20, note="morning batch")
        first = entry_to_dict(await ledger.upsert_daily("bean_sprouts", JAN_2, 10, 28, 25))
        second = entry_to_dict(await ledger.upsert_daily("bean_sprouts", JAN_2, 10, 28, 25))
        count = await db.scalar(select(func.count()).select_from(ProcessingLedgerEntry))
        return first, second, count

    first, second, count = run_db(scenario)

    first.pop("updated_at")
    second.pop("updated_at")
    assert first == second
    assert count == 2


def test_back_dated_edit_cascades_forward(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 6)
        await ledger.upsert_daily("soy_curd", JAN_2, 20, 16, 10)
        await ledger.upsert_daily("soy_curd", JAN_3, 10, 8, 5)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 10)
        return await _all_entries(db)

    entries = run_db(scenario)

    jan_1, jan_2, jan_3 = entries
    assert jan_1.derived_remaining == 0
    assert jan_2.carry_over_state == CARRY_ZERO
    assert jan_2.derived_remaining == Decimal("6")
    assert jan_3.carried_over == Decimal("6")
    assert jan_3.derived_remaining == Decimal("9")
    _assert_chain(entries)


def test_gap_day_resets_carry_and_stops_cascade(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 2)
        await ledger.upsert_daily("soy_curd", JAN_3, 10, 5, 1)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 12, 2)
        return await _all_entries(db)

    entries = run_db(scenario)

    assert entries[1].date == JAN_3
    assert entries[1].carry_over_state == CARRY_NO_RECORD
    assert entries[1].derived_remaining == Decimal("4")
    _assert_chain(entries)


def test_filling_gap_links_following_day(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 2)
        await ledger.upsert_daily("soy_curd", JAN_3, 10, 5, 1)
        await ledger.upsert_daily("soy_curd", JAN_2, 0, 0, 3)
        return await _all_entries(db)

    entries = run_db(scenario)

    assert [e.derived_remaining for e in entries] == [Decimal("8"), Decimal("5"), Decimal("9")]
    assert entries[2].carry_over_state == CARRY_CARRIED
    _assert_chain(entries)


def test_product_lines_do_not_share_chains(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 2)
        return await ledger.upsert_daily("bean_sprouts", JAN_2, 10, 30, 10)

    entry = run_db(scenario)

    assert entry.carry_over_state == CARRY_NO_RECORD
    assert entry.derived_remaining == Decimal("20")


async def _write(day, *values, ledger_class=ProductionLedger):
    async with db_session.SessionLocal() as db:
        return await ledger_class(db).upsert_daily("soy_curd", day, *values)


def test_concurrent_sessions_keep_chain(run_db):
    async def both():
        await asyncio.gather(_write(JAN_1, 10, 10, 6), _write(JAN_2, 20, 16, 10))

    asyncio.run(both())
    entries = run_db(_all_entries)

    jan_1, jan_2 = entries
    assert jan_1.derived_remaining == Decimal("4")
    assert jan_2.carried_over == Decimal("4")
    assert jan_2.carry_over_state == CARRY_CARRIED
    assert jan_2.derived_remaining == Decimal("10")
    _assert_chain(entries)


def test_writers_in_separate_event_loops_queue_on_write_lock(run_db):
    """A writer that has read the previous day holds the write lock until it commits."""
    jan_1_read = threading.Event()
    jan_1_committed = threading.Event()

    class PausingLedger(ProductionLedger):
        async def _get_entry(self, code, day):
            entry = await super()._get_entry(code, day)
            if day == JAN_1 and not jan_1_read.is_set():
                jan_1_read.set()
                # gives the other loop a chance to commit Jan 1 in between
                await asyncio.to_thread(jan_1_committed.wait, 0.5)
            return entry

    def write_jan_1():
        assert jan_1_read.wait(5)
        asyncio.run(_write(JAN_1, 10, 10, 6))
        jan_1_committed.set()

    with ThreadPoolExecutor(max_workers=2) as pool:
        jan_2_future = pool.submit(asyncio.run, _write(JAN_2, 20, 16, 10, ledger_class=PausingLedger))
        jan_1_future = pool.submit(write_jan_1)
        jan_2_future.result(timeout=30)
        jan_1_future.result(timeout=30)

    entries = run_db(_all_entries)

    jan_1, jan_2 = entries
    assert jan_1.derived_remaining == Decimal("4")
    assert jan_2.carried_over == Decimal("4")
    assert jan_2.carry_over_state == CARRY_CARRIED
    assert jan_2.derived_remaining == Decimal("10")
    _assert_chain(entries)


@pytest.mark.parametrize("field", ["raw_input", "derived_collected", "derived_dispatched"])
def test_negative_quantities_rejected(run_db, field):
    values = {"raw_input": 1, "derived_collected": 1, "derived_dispatched": 1, field: -1}

    async def scenario(db):
        await ProductionLedger(db).upsert_daily("soy_curd", JAN_1, **values)

    with pytest.raises(ValidationError):
        run_db(scenario)


def test_negative_price_and_unknown_line_rejected(run_db):
    async def bad_price(db):
        await ProductionLedger(db).upsert_daily("soy_curd", JAN_1, 1, 1, 1, raw_price=-5)

    async def bad_line(db):
        await ProductionLedger(db).upsert_daily("caviar", JAN_1, 1, 1, 1)

    with pytest.raises(ValidationError):
        run_db(bad_price)
    with pytest.raises(ValidationError):
        run_db(bad_line)


def test_get_daily_synthesizes_missing_day(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_2, 20, 16, 6)
        return await ledger.get_daily("soy_curd", JAN_3), await ledger.get_daily("soy_curd", JAN_2)

    missing, recorded = run_db(scenario)

    assert missing["is_recorded"] is False
    assert missing["carried_over"] == 0
    assert missing["derived_remaining"] == 0
    assert missing["carry_over_state"] == CARRY_CARRIED
    assert missing["previous_remaining"] == Decimal("10")
    assert missing["raw_input"] == 0
    assert missing["derived_price"] == Decimal("15000")
    assert recorded["is_recorded"] is True
    assert recorded["day_of_week"] == "Tuesday"


def test_weekly_has_seven_rows_and_opening_balance(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", date(2023, 12, 31), 10, 10, 7)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 10, 5)
        await ledger.upsert_daily("soy_curd", JAN_3, 20, 10, 5)
        return await ledger.get_weekly("soy_curd", 1, 2024)

    week = run_db(scenario)

    assert [row["date"] for row in week["days"]] == [JAN_1 + timedelta(days=i) for i in range(7)]
    assert [row["is_recorded"] for row in week["days"]][:3] == [True, False, True]
    assert week["opening_balance"] == Decimal("3")
    assert week["opening_state"] == CARRY_CARRIED
    assert week["days"][0]["carried_over"] == Decimal("3")
    assert week["days"][1]["carried_over"] == 0
    assert week["days"][1]["derived_remaining"] == 0
    assert week["days"][1]["previous_remaining"] == Decimal("8")
    assert week["days"][2]["carry_over_state"] == CARRY_NO_RECORD
    # Sunday has no entry
    assert week["closing_balance"] == 0
    assert week["totals"]["recorded_days"] == 2
    assert week["totals"]["total_raw_input"] == Decimal("30")
    # mean of daily ratios 1.0 and 0.5
    assert week["totals"]["average_conversion_rate"] == Decimal("0.75")


def test_empty_week(run_db):
    async def scenario(db):
        return await ProductionLedger(db).get_weekly("bean_sprouts", 10, 2024)

    week = run_db(scenario)

    assert len(week["days"]) == 7
    assert all(not row["is_recorded"] for row in week["days"])
    assert week["opening_state"] == CARRY_NO_RECORD
    assert week["closing_balance"] == 0
    assert week["days"][0]["previous_remaining"] is None
    assert week["totals"]["recorded_days"] == 0
    assert week["totals"]["average_conversion_rate"] == 0


def test_monthly_series(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", date(2023, 12, 31), 10, 10, 8)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 20, 5)
        await ledger.upsert_daily("soy_curd", date(2024, 1, 15), 10, 10, 5)
        return await ledger.get_monthly("soy_curd", 2024, 2, month_count=3)

    result = run_db(scenario)

    december, january, february = result["months"]
    assert [m["label"] for m in result["months"]] == ["2023-12", "2024-01", "2024-02"]
    assert december["has_data"] is True
    assert january["total_raw_input"] == Decimal("20")
    assert january["processing_efficiency"] == Decimal("1.5")
    assert january["opening_balance"] == Decimal("2")
    assert january["closing_balance"] == Decimal("5")
    assert january["recorded_days"] == 2
    assert february["has_data"] is False
    assert february["total_raw_input"] is None
    assert february["recorded_days"] == 0


@pytest.mark.parametrize("month_count", [0, 25])
def test_monthly_rejects_bad_month_count(run_db, month_count):
    async def scenario(db):
        await ProductionLedger(db).get_monthly("soy_curd", 2024, 1, month_count=month_count)

    with pytest.raises(ValidationError):
        run_db(scenario)


def test_usage_statistics(run_db):
    async def scenario(db):
        ledger = ProductionLedger(db)
        await ledger.upsert_daily("soy_curd", JAN_1, 10, 25, 20)
        await ledger.upsert_daily("soy_curd", JAN_3, 10, 20, 20)
        await factories.create_dish(db, "Đậu phụ sốt cà chua", [("Đậu phụ", "1"), ("Cà chua", "0.5")])
        await factories.create_dish(db, "Rau muống xào", [("Rau muống", "1")])
        return (
            await ledger.get_usage_statistics("soy_curd", JAN_1, date(2024, 1, 7)),
            await ledger.get_usage_statistics("soy_curd", date(2024, 2, 1), date(2024, 2, 7)),
        )

    stats, empty = run_db(scenario)

    assert stats["processing_days"] == 2
    assert stats["total_raw_input"] == Decimal("20")
    assert stats["total_derived_output"] == Decimal("45")
    assert stats["average_conversion_rate"] == Decimal("2.25")
    assert stats["average_daily_output"] == Decimal("22.5")
    assert [d["name"] for d in stats["dishes"]] == ["Đậu phụ sốt cà chua"]
    assert stats["dishes"][0]["ingredients"] == ["Đậu phụ"]
    assert empty["processing_days"] == 0
    assert empty["average_conversion_rate"] == Decimal("2.5")


def test_usage_statistics_rejects_inverted_range(run_db):
    async def scenario(db):
        await ProductionLedger(db).get_usage_statistics("soy_curd", JAN_3, JAN_1)

    with pytest.raises(ValidationError):
        run_db(scenario)
