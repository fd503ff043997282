import pytest

from vex import ExpressionRunner, VexHost, VM
from vex.vex_reflect import vex_api_method, kind_of, method_names, field_names, MAPPING, RECORD
from vex.vex_datatypes import MethodNotFound, MemberNotFound


def assert_ok(res, expected=None):
    assert res.status == "success", f"expected success, got {res}"
    if expected is not None:
        assert res.value == expected, f"expected {expected!r}, got {res.value!r}"


class MyHost(VexHost):
    def __init__(self):
        super().__init__()
        self._data = {"hp": 100, "name": "hero"}

    def __getitem__(self, key):
        return self._data[key]

    @vex_api_method
    def take_damage(self, amount: int):
        self._data["hp"] -= amount
        return self._data["hp"]

    @vex_api_method
    def describe(self):
        return f"{self._data['name']} ({self._data['hp']})"

    def heal(self, amount):
        # Not exposed to expressions
        self._data["hp"] += amount
        return self._data["hp"]


def test_host_api_methods_are_bound_and_callable():
    host = MyHost()
    runner = ExpressionRunner(host_object=host)
    res = runner.handle_expression("take_damage(5)")
    assert_ok(res, 95)
    assert host["hp"] == 95


def test_host_api_arguments_are_adapted():
    host = MyHost()
    runner = ExpressionRunner(host_object=host)
    assert_ok(runner.handle_expression('take_damage("10")'), 90)


def test_unmarked_host_methods_are_not_bound():
    runner = ExpressionRunner(host_object=MyHost())
    res = runner.handle_expression("heal(5)")
    assert res.status == "error"
    assert "UnboundName" in res.error_message


def test_host_data_is_read_through_getitem():
    vm = VM()
    vm.set("h", MyHost())
    assert vm.run("h.hp") == 100
    assert vm.run('h["name"] + "!"') == "hero!"
    with pytest.raises(MemberNotFound):
        vm.run("h.mana")


def test_only_api_methods_are_callable_on_host_values():
    host = MyHost()
    vm = VM()
    vm.set("h", host)
    assert vm.run("h.take_damage(1)") == 99
    assert vm.run("h.describe()") == "hero (99)"
    with pytest.raises(MethodNotFound):
        vm.run("h.heal(1)")
    assert host["hp"] == 99


def test_host_is_classified_as_mapping():
    host = MyHost()
    assert kind_of(host) == MAPPING
    assert sorted(method_names(host)) == ["describe", "take_damage"]


def test_rebinding_drops_previous_host_methods():
    runner = ExpressionRunner(host_object=MyHost())
    assert_ok(runner.handle_expression("describe()"), "hero (100)")

    runner.host_object = None
    res = runner.handle_expression("describe()")
    assert res.status == "error"
    assert "describe" not in runner.vm.env


def test_runner_uses_the_given_vm_environment():
    vm = VM({'base': 40})
    runner = ExpressionRunner(vm=vm, host_object=MyHost())
    assert_ok(runner.handle_expression("base + take_damage(98)"), 42)


class Slotted:
    __slots__ = ("a", "_b")

    def __init__(self):
        self.a = 1
        self._b = 2


def test_slotted_objects_are_records():
    obj = Slotted()
    assert kind_of(obj) == RECORD
    assert field_names(obj) == ["a"]
    vm = VM({'s': obj})
    assert vm.run("s.a") == 1
    with pytest.raises(MemberNotFound):
        vm.run("s._b")
