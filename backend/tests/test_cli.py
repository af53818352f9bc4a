"""CLI commands: catalog history and day lifecycle."""

from prodday.services import day_service, entry_service

from conftest import PAST_DAY


def test_catalog_history_lists_finalize_and_reopen(app, operator, admin, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 3, operator.id)
    day_service.finalize_day(PAST_DAY, operator.id)
    day_service.reopen_day(PAST_DAY, admin.id)

    result = app.test_cli_runner().invoke(args=['catalog', 'history', 'wid-a'])

    assert result.exit_code == 0
    assert "WID-A - WIDGET A (total produced: 0)" in result.output
    assert "production" in result.output
    assert "adjustment" in result.output
    assert "-3" in result.output


def test_catalog_history_unknown_product(app, db_session):
    result = app.test_cli_runner().invoke(args=['catalog', 'history', 'NOPE'])

    assert "FAIL Product NOPE not found" in result.output


def test_days_finalize_and_status(app, operator, product_a):
    entry_service.add_entry(PAST_DAY, product_a, 2, operator.id)
    runner = app.test_cli_runner()

    result = runner.invoke(args=['days', 'finalize', '2024-01-10', '--username', 'operator'])
    assert "PASS Day 2024-01-10 finalized: 1 items / 2 units" in result.output

    result = runner.invoke(args=['days', 'status', '2024-01-10'])
    assert "FINALIZED" in result.output

    result = runner.invoke(args=['days', 'finalize', '2024-01-10'])
    assert "FAIL [AlreadyFinalized]" in result.output
