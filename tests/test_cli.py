from pathlib import Path

from engine.__main__ import build, main, parse_args
from engine.ledger import TransactionFilter

SEED = str(Path(__file__).resolve().parent.parent / "data" / "seed.json")


def test_build_loads_seed_into_engine():
    engine, ledger, gateway = build(parse_args(["--seed", SEED]))
    assert engine.ledger is ledger
    assert engine.gateway is gateway
    assert len(ledger.recurring_rules) == 3


def test_single_pass_exits_cleanly(capsys):
    assert main(["--seed", SEED, "--once"]) == 0
    for line in capsys.readouterr().out.splitlines():
        assert line.startswith("[")


def test_seed_rules_catch_up_on_first_pass():
    engine, ledger, _ = build(parse_args(["--seed", SEED]))
    before = len(ledger.query_transactions(TransactionFilter()))
    created = engine.process_recurring(ledger.get_recurring_rule("r1").next_date)
    # rent and streaming once, bi-weekly gym on 03-18 and 04-01
    assert len(created) == 4
    assert len(ledger.query_transactions(TransactionFilter())) == before + 4
