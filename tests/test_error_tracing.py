import pytest

from vex.vex_runtime import ExpressionRunner, ExecutionResult
from vex.vex_datatypes import HostResult


def stderr_messages(res):
    return [e['message'] for e in res.side_effects if e.get('topics') == ['stderr']]


def test_success_result():
    runner = ExpressionRunner()
    runner.vm.set("x", 2)
    res = runner.handle_expression("x * 21")
    assert res.status == 'success'
    assert res.value == 42
    assert res.error_message is None
    assert res.side_effects == []
    assert res.format_error() == ""


def test_unbound_name_traces_location_and_stderr():
    runner = ExpressionRunner()
    res = runner.handle_expression("1 + missing")
    assert res.status == 'error'
    msg = res.error_message or ''

    assert "UnboundName" in msg
    assert "line 1, col 5" in msg
    assert "1 + missing" in msg
    assert "^" in msg
    assert res.error_token['line'] == 1
    assert res.error_token['col'] == 5
    assert res.error_token['text'] == "missing"

    stderr = stderr_messages(res)
    assert stderr, f"stderr side effect missing: {res.side_effects}"
    assert msg in stderr[-1]


def test_caret_points_at_failing_node_on_later_line():
    runner = ExpressionRunner()
    runner.vm.set("a", 1)
    res = runner.handle_expression("a +\n    b")
    msg = res.error_message
    assert "line 2, col 5" in msg
    lines = msg.splitlines()
    source_line = [ln for ln in lines if ln.startswith("2 | ")][0]
    caret_line = lines[lines.index(source_line) + 1]
    assert caret_line.rstrip().endswith("^")
    assert caret_line.index("^") == source_line.index("b")


def test_underline_spans_the_failing_node():
    runner = ExpressionRunner()
    runner.vm.set("p", {'x': 1})
    res = runner.handle_expression("1 + p.nope")
    assert res.status == 'error'
    assert "1 | 1 + p.nope\n        ^~~~~~" in res.error_message
    assert res.error_token['text'] == "p.nope"
    assert res.format_error().startswith("Error at line 1, col 5 (p.nope): MemberNotFound:")


def test_stacktrace_shows_host_call_chain():
    runner = ExpressionRunner()
    vm = runner.vm

    def boom(x: int):
        return x / 0

    def apply(source: str):
        return vm.run(source)

    vm.set("boom", boom)
    vm.set("apply", apply)
    res = runner.handle_expression('apply("boom(5)")')
    assert res.status == 'error'
    msg = res.error_message

    assert msg.startswith("HostError:")
    assert "ZeroDivisionError" in msg
    assert "VEX stacktrace:" in msg
    assert "(apply 'boom(5)')" in msg
    assert "(boom 5)" in msg
    assert msg.index("(apply") < msg.index("(boom")


def test_host_error_reports_partial_result():
    runner = ExpressionRunner()
    runner.vm.set("fetch", lambda: HostResult([1, 2], IOError("disk")))
    res = runner.handle_expression("fetch()")
    assert res.status == 'error'
    assert res.value == [1, 2]
    assert "HostError: fetch: disk" in res.error_message
    assert "partial result: [1, 2]" in res.error_message


def test_integer_division_by_zero_is_reported_by_kind():
    runner = ExpressionRunner()
    res = runner.handle_expression("10 / (2 - 2)")
    assert res.status == 'error'
    assert res.error_message.startswith("DivisionByZero: integer division by zero")


def test_parse_error_emits_stderr():
    runner = ExpressionRunner()
    res = runner.handle_expression("1 + * 2")
    assert res.status == 'error'
    assert res.error_message.startswith("SyntaxError: unexpected token '*'")
    assert "(line 1, col 5)" in res.error_message
    assert res.error_token['line'] == 1
    assert res.error_token['col'] == 5

    stderr = stderr_messages(res)
    assert stderr and stderr[-1] == res.error_message


def test_parse_error_at_end_of_input_shows_source():
    runner = ExpressionRunner()
    res = runner.handle_expression("f(1,")
    assert res.status == 'error'
    assert "unexpected end of input" in res.error_message
    assert "f(1," in res.error_message


def test_each_run_starts_clean():
    runner = ExpressionRunner()
    assert runner.handle_expression("nope").status == 'error'
    res = runner.handle_expression("1 + 1")
    assert res.status == 'success'
    assert res.side_effects == []
    assert runner.vm.call_stack == []


def test_unexpected_exception_is_internal_error(monkeypatch):
    runner = ExpressionRunner()

    def broken(expr):
        raise RuntimeError("evaluator bug")

    monkeypatch.setattr(runner.vm, "eval", broken)
    res = runner.handle_expression("1")
    assert res.status == 'error'
    assert res.error_message.startswith("InternalError: RuntimeError: evaluator bug")


@pytest.mark.parametrize("result, expected", [
    (ExecutionResult(status='error', error_message="Boom"), "Boom"),
    (ExecutionResult(status='error', error_message="Boom", error_token={'line': 3, 'col': 7}),
     "Error at line 3, col 7: Boom"),
    (ExecutionResult(status='error', error_message="Boom", error_token={'line': 3, 'col': None}),
     "Error at line 3: Boom"),
    (ExecutionResult(status='error', error_message="Boom", error_token={'line': 1, 'col': 2, 'text': "x.y"}),
     "Error at line 1, col 2 (x.y): Boom"),
    (ExecutionResult(status='success', value=1), ""),
], ids=["no-token", "line-and-col", "line-only", "with-text", "success"])
def test_execution_result_format_error(result, expected):
    assert result.format_error() == expected
