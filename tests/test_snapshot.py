from pathlib import Path

import pytest

from ip6tables_save.model import Counters, Policy, SnapshotError, TableNotFoundError
from ip6tables_save.snapshot import SnapshotEngine, parse_save_text, read_snapshot_file

SAMPLE = Path(__file__).resolve().parent.parent / "examples" / "ip6tables" / "sample.rules"


def test_parse_sample_file():
    engine = read_snapshot_file(SAMPLE)
    assert engine.table_names() == ["filter", "mangle"]
    with engine.open("filter") as handle:
        assert list(handle.chain_names()) == ["INPUT", "FORWARD", "OUTPUT", "SSH"]
        assert handle.is_builtin("INPUT")
        assert handle.get_policy("INPUT") == (Policy.DROP, Counters(1205, 98012))
        assert handle.is_builtin("SSH") is False
        ssh_rules = list(handle.rules("SSH"))
    assert ssh_rules[0].args == ("-s", "2001:db8::/32", "-m", "comment", "--comment", "office network", "-j", "ACCEPT")
    assert ssh_rules[0].counters == Counters(3, 240)
    assert ssh_rules[1].args == ("-j", "RETURN")


def test_chain_walk_is_restartable():
    engine = read_snapshot_file(SAMPLE)
    with engine.open("mangle") as handle:
        first = list(handle.chain_names())
        second = list(handle.chain_names())
    assert first == second == ["PREROUTING", "INPUT", "FORWARD", "OUTPUT", "POSTROUTING"]


def test_rules_without_counter_prefix_default_to_zero():
    engine = SnapshotEngine.from_text("*filter\n:INPUT ACCEPT [0:0]\n-A INPUT -j DROP\nCOMMIT\n")
    with engine.open("filter") as handle:
        (rule,) = handle.rules("INPUT")
    assert rule.counters == Counters.zero()


def test_set_counters_option_is_taken_as_rule_counters():
    engine = SnapshotEngine.from_text("*filter\n:INPUT ACCEPT [0:0]\n-A INPUT -c 7 420 -j DROP\nCOMMIT\n")
    with engine.open("filter") as handle:
        (rule,) = handle.rules("INPUT")
    assert rule.counters == Counters(7, 420)
    assert rule.args == ("-j", "DROP")


def test_unknown_table_is_not_found():
    engine = SnapshotEngine.from_text("*filter\nCOMMIT\n")
    with pytest.raises(TableNotFoundError, match="Can't initialize"):
        engine.open("nat")


@pytest.mark.parametrize(
    "text, message",
    [
        ("*filter\n:INPUT ACCEPT [0:0]\n", "missing COMMIT"),
        (":INPUT ACCEPT [0:0]\n", "outside of a table"),
        ("*filter\n-A INPUT -j DROP\nCOMMIT\n", "unknown chain INPUT"),
        ("*filter\n:INPUT MAYBE [0:0]\nCOMMIT\n", "Unsupported policy"),
        ("*filter\n:INPUT ACCEPT [x:0]\nCOMMIT\n", "decimal integers"),
        ("*filter\nCOMMIT\n*filter\nCOMMIT\n", "appears twice"),
        ("*filter\n:INPUT ACCEPT [0:0]\n-I INPUT -j DROP\nCOMMIT\n", "Unsupported line"),
    ],
)
def test_malformed_snapshots(text, message):
    with pytest.raises(SnapshotError, match=message):
        parse_save_text(text)


def test_error_reports_line_number():
    with pytest.raises(SnapshotError) as excinfo:
        parse_save_text("# header\n*filter\n:INPUT ACCEPT [0:0]\n:INPUT ACCEPT [0:0]\nCOMMIT\n")
    assert excinfo.value.lineno == 4
    assert str(excinfo.value).startswith("line 4:")


def test_missing_snapshot_file(tmp_path):
    with pytest.raises(SnapshotError, match="Unable to read"):
        read_snapshot_file(tmp_path / "absent.rules")


def test_undecodable_snapshot_file(tmp_path):
    path = tmp_path / "latin1.rules"
    path.write_bytes(b"*filter\n:INPUT ACCEPT [0:0]\n-A INPUT -m comment --comment \xff -j ACCEPT\nCOMMIT\n")
    with pytest.raises(SnapshotError, match="not valid UTF-8"):
        read_snapshot_file(path)
