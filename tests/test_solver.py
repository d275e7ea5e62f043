import itertools
import logging

import pytest

from relsolve.field_class import InconsistencyError
from relsolve.rule_class import Rule
from relsolve.schema_class import Schema
from relsolve.schemas.invoice_item import INVOICE_ITEM
from relsolve.solver_class import SOLVED, UNDERSPECIFIED, Solver, check, solve

AMOUNT_FIELDS = {"rate", "net_amount", "vat", "gross_amount"}

# Consistent with the invoice defaults (vat_pct=5, qty=1).
DEFAULT_CASE = {"qty": 1.0, "rate": 100.0, "net_amount": 100.0, "vat_pct": 5.0, "vat": 5.0, "gross_amount": 105.0}
# Consistent, but qty differs from its default.
REAL_CASE = {"qty": 2.0, "rate": 50.0, "net_amount": 100.0, "vat_pct": 5.0, "vat": 5.0, "gross_amount": 105.0}


def _subsets(case: dict[str, float]):
    names = list(case)
    for size in range(len(names) + 1):
        for combo in itertools.combinations(names, size):
            yield {name: case[name] for name in combo}


def test_net_amount_alone_uses_both_defaults() -> None:
    result = solve(INVOICE_ITEM, {"net_amount": 100})
    assert result.solved
    assert result.status == SOLVED
    assert result.values == pytest.approx(DEFAULT_CASE)
    assert result.defaults_applied == ("vat_pct", "qty")
    assert result.unknown == ()
    assert result.sources["qty"] == "default"
    assert result.sources["net_amount"] == "input"
    assert result.sources["rate"] == "Rate from net amount and quantity"


def test_contradicting_input_raises() -> None:
    with pytest.raises(InconsistencyError) as excinfo:
        solve(INVOICE_ITEM, {"qty": 3, "rate": 10, "vat": 10, "vat_pct": 25})
    err = excinfo.value
    # net_amount = 30 is derived first, then vat = 30 * 25% disagrees with the given 10.
    assert err.field == "vat"
    assert err.old == pytest.approx(10.0)
    assert err.new == pytest.approx(7.5)


def test_empty_input_is_underspecified_not_an_error() -> None:
    result = solve(INVOICE_ITEM, {})
    assert not result
    assert result.status == UNDERSPECIFIED
    assert result.defaults_applied == ("vat_pct", "qty")
    assert set(result.unknown) == AMOUNT_FIELDS
    assert result.values["vat_pct"] == 5.0
    assert result.values["rate"] is None


def test_none_input_means_unknown() -> None:
    result = solve(INVOICE_ITEM, {"net_amount": 100, "rate": None})
    assert result.values == pytest.approx(DEFAULT_CASE)


def test_default_order_changes_the_completion() -> None:
    schema = INVOICE_ITEM.with_defaults([("vat_pct", 25), ("qty", 1)])
    data = {"vat": 2, "rate": 10}

    qty_first = solve(schema.with_default_order(["qty", "vat_pct"]), data)
    assert qty_first.defaults_applied == ("qty",)
    assert qty_first.values == pytest.approx(
        {"qty": 1, "rate": 10, "net_amount": 10, "vat_pct": 20, "vat": 2, "gross_amount": 12}
    )

    pct_first = solve(schema, data)
    assert pct_first.defaults_applied == ("vat_pct",)
    assert pct_first.values == pytest.approx(
        {"qty": 0.8, "rate": 10, "net_amount": 8, "vat_pct": 25, "vat": 2, "gross_amount": 10}
    )


def test_fully_specified_input_is_returned_unchanged() -> None:
    result = solve(INVOICE_ITEM, REAL_CASE)
    assert result.solved
    assert result.values == REAL_CASE
    assert result.defaults_applied == ()
    assert result.rules_applied == ()
    assert result.passes == 0


def test_every_subset_of_default_case_recovers_it() -> None:
    for subset in _subsets(DEFAULT_CASE):
        result = solve(INVOICE_ITEM, subset)
        if AMOUNT_FIELDS.intersection(subset):
            assert result.solved, subset
            assert result.values == pytest.approx(DEFAULT_CASE, rel=1e-6), subset
        else:
            assert not result, subset


def test_every_subset_of_real_case_keeps_given_fields() -> None:
    for subset in _subsets(REAL_CASE):
        result = solve(INVOICE_ITEM, subset)
        if not result:
            continue
        for name, value in subset.items():
            assert result.values[name] == value
        # Whatever defaults filled in, the completion must satisfy every rule.
        check(INVOICE_ITEM, result.values)


def test_subsets_that_pin_qty_recover_real_case() -> None:
    for subset in _subsets(REAL_CASE):
        if "qty" not in subset or not AMOUNT_FIELDS.intersection(subset):
            continue
        result = solve(INVOICE_ITEM, subset)
        assert result.values == pytest.approx(REAL_CASE, rel=1e-6), subset


def test_division_by_zero_leaves_rule_active() -> None:
    result = solve(INVOICE_ITEM, {"qty": 0, "rate": 10})
    assert result.solved
    assert result.values == pytest.approx(
        {"qty": 0, "rate": 10, "net_amount": 0, "vat_pct": 5, "vat": 0, "gross_amount": 0}
    )
    assert "Rate from net amount and quantity" not in result.rules_applied


def test_unknown_input_field_is_rejected() -> None:
    with pytest.raises(ValueError, match="no field 'price'"):
        solve(INVOICE_ITEM, {"price": 3})


def test_non_numeric_input_is_rejected() -> None:
    with pytest.raises(ValueError):
        solve(INVOICE_ITEM, {"qty": "three"})


def _counting_schema(calls: list[str]) -> Schema:
    def doubled(a: float) -> float:
        calls.append("b")
        return a * 2

    return Schema(
        name="counting",
        fields=("a", "b", "c", "d"),
        defaults=(("c", 5.0),),
        rules=(
            Rule.from_function(doubled, output="b", name="b from a"),
            Rule.from_expression("d = c + b"),
        ),
        warn=lambda message, category=None: None,
    )


def test_consumed_rules_are_not_retried_after_a_default() -> None:
    calls: list[str] = []
    schema = _counting_schema(calls)
    calls.clear()  # drop the symbolic trace made while building the rule

    result = solve(schema, {"a": 1})

    assert result.solved
    assert result.values == {"a": 1.0, "b": 2.0, "c": 5.0, "d": 7.0}
    assert calls == ["b"]
    assert result.rules_applied == ("b from a", "d = c + b")
    assert result.defaults_applied == ("c",)


def test_rule_confirming_a_known_value_is_consumed() -> None:
    result = solve(INVOICE_ITEM, {"qty": 2, "rate": 50, "net_amount": 100, "vat_pct": 5})
    # qty and rate were given; both rules still consumed as confirmations.
    assert "Quantity from net amount and rate" in result.rules_applied
    assert "Rate from net amount and quantity" in result.rules_applied
    assert len(result.rules_applied) == len(set(result.rules_applied))


def test_each_rule_applied_at_most_once() -> None:
    for subset in _subsets(REAL_CASE):
        result = solve(INVOICE_ITEM, subset)
        assert len(result.rules_applied) == len(set(result.rules_applied))


def test_pass_count_is_bounded() -> None:
    result = solve(INVOICE_ITEM, {"vat": 5})
    bound = (len(INVOICE_ITEM.fields) + 1) * (1 + len(INVOICE_ITEM.defaults))
    assert result.passes <= bound


def test_looser_tolerance_accepts_rounded_input() -> None:
    data = {"net_amount": 100, "vat_pct": 5, "gross_amount": 105.01}
    with pytest.raises(InconsistencyError):
        solve(INVOICE_ITEM, data)
    result = solve(INVOICE_ITEM, data, tol=1e-2)
    assert result.values["vat"] == pytest.approx(5.0)


def test_negative_tolerance_is_rejected() -> None:
    with pytest.raises(ValueError):
        Solver(INVOICE_ITEM, tol=-1.0)


def test_solver_uses_registry_tolerance_by_default() -> None:
    assert Solver(INVOICE_ITEM).tol == pytest.approx(1e-6)


def test_check_detects_contradiction_in_complete_data() -> None:
    data = dict(REAL_CASE, gross_amount=106.0)
    # solve() returns complete data unchecked...
    assert solve(INVOICE_ITEM, data).values == data
    # ...check() applies every rule.
    with pytest.raises(InconsistencyError) as excinfo:
        check(INVOICE_ITEM, data)
    assert excinfo.value.field == "gross_amount"


def test_check_returns_confirming_rules() -> None:
    confirmed = check(INVOICE_ITEM, REAL_CASE)
    assert len(confirmed) == len(INVOICE_ITEM.rules)


def test_check_on_partial_data_lists_deriving_rules() -> None:
    produced = check(INVOICE_ITEM, {"qty": 2, "rate": 50})
    # Net amount is derived, then confirmed against by the two inverse rules.
    assert produced == [
        "Net amount from quantity and rate",
        "Quantity from net amount and rate",
        "Rate from net amount and quantity",
    ]


def test_verbose_solver_keeps_logging_after_other_solves(caplog: pytest.LogCaptureFixture) -> None:
    loud = Solver(INVOICE_ITEM, verbose=True)
    solve(INVOICE_ITEM, {"qty": 1, "rate": 1})
    with caplog.at_level(logging.INFO, logger="relsolve"):
        loud.solve({"net_amount": 100})
    assert "Applying default vat_pct=5" in [record.getMessage() for record in caplog.records]


def test_quiet_solver_logs_nothing_below_warning(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="relsolve.solver_class"):
        Solver(INVOICE_ITEM).solve({"net_amount": 100})
    assert caplog.records == []


def test_verbose_solver_emits_debug_records(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.DEBUG, logger="relsolve"):
        Solver(INVOICE_ITEM, verbose=True).solve({"qty": 2, "rate": 50, "vat_pct": 5})
    messages = [record.getMessage() for record in caplog.records if record.levelno == logging.DEBUG]
    assert "Applied 'Net amount from quantity and rate': net_amount=100" in messages
    assert any(message.startswith("Pass 0:") for message in messages)


def test_result_is_hashable() -> None:
    result = solve(INVOICE_ITEM, {"net_amount": 100})
    assert {result: "ok"}[result] == "ok"


def test_solver_is_reusable_across_calls() -> None:
    solver = Solver(INVOICE_ITEM)
    first = solver.solve({"net_amount": 100})
    second = solver.solve({"gross_amount": 210, "qty": 2})
    assert first.values == pytest.approx(DEFAULT_CASE)
    assert second.values["rate"] == pytest.approx(100.0)


def test_verbose_solver_logs_defaults(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="relsolve"):
        Solver(INVOICE_ITEM, verbose=True).solve({"net_amount": 100})
    messages = [record.getMessage() for record in caplog.records]
    assert "Applying default vat_pct=5" in messages
    assert any(message.startswith("Solved after") for message in messages)


def test_result_repr_shows_unknowns() -> None:
    result = solve(INVOICE_ITEM, {})
    assert "underspecified" in repr(result)
    assert "rate=?" in repr(result)
