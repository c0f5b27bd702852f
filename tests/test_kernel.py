import subprocess

import pytest

from ip6tables_save.kernel import CommandEngine, parse_rule_specs
from ip6tables_save.model import Counters, EngineError, Policy, TableNotFoundError

_SPECS = """-P INPUT DROP -c 10 840
-P FORWARD DROP -c 0 0
-P OUTPUT ACCEPT -c 5 400
-N SSH
-A INPUT -p tcp -m tcp --dport 22 -c 4 320 -j SSH
-A SSH -s 2001:db8::/32 -m comment --comment "office network" -c 3 240 -j ACCEPT
"""


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def test_parse_rule_specs():
    table = parse_rule_specs("filter", _SPECS)
    chains = table.chain_map()
    assert [chain.name for chain in table.chains] == ["INPUT", "FORWARD", "OUTPUT", "SSH"]
    assert chains["INPUT"].policy == Policy.DROP
    assert chains["INPUT"].counters == Counters(10, 840)
    assert chains["SSH"].builtin is False
    (rule,) = chains["SSH"].rules
    assert rule.args == ("-s", "2001:db8::/32", "-m", "comment", "--comment", "office network", "-j", "ACCEPT")
    assert rule.counters == Counters(3, 240)


def test_rule_for_undeclared_chain():
    with pytest.raises(EngineError, match="undeclared chain"):
        parse_rule_specs("filter", "-A INPUT -j DROP\n")


def test_open_runs_ip6tables(monkeypatch):
    calls = []

    def fake_run(argv, **kwargs):
        calls.append(argv)
        return _completed(stdout=_SPECS)

    monkeypatch.setattr(subprocess, "run", fake_run)
    engine = CommandEngine(command="/sbin/ip6tables")
    with engine.open("filter") as handle:
        assert handle.get_policy("OUTPUT") == (Policy.ACCEPT, Counters(5, 400))
        assert [rule.args[-1] for rule in handle.rules("INPUT")] == ["SSH"]
    assert calls == [["/sbin/ip6tables", "-t", "filter", "-S", "-v"]]


def test_missing_table(monkeypatch):
    stderr = "ip6tables v1.8.9 (legacy): can't initialize ip6tables table `nope': Table does not exist (do you need to insmod?)\n"
    monkeypatch.setattr(subprocess, "run", lambda argv, **kwargs: _completed(stderr=stderr, returncode=3))
    with pytest.raises(TableNotFoundError, match="Can't initialize: .*Table does not exist"):
        CommandEngine().open("nope")


def test_permission_denied_is_engine_error(monkeypatch):
    stderr = "ip6tables v1.8.9 (legacy): can't initialize ip6tables table `filter': Permission denied (you must be root)\n"
    monkeypatch.setattr(subprocess, "run", lambda argv, **kwargs: _completed(stderr=stderr, returncode=4))
    with pytest.raises(EngineError, match="Permission denied") as excinfo:
        CommandEngine().open("filter")
    assert not isinstance(excinfo.value, TableNotFoundError)


def test_missing_executable():
    with pytest.raises(EngineError, match="Can't initialize"):
        CommandEngine(command="/nonexistent/ip6tables").open("filter")


def test_table_names_from_listing(tmp_path):
    listing = tmp_path / "names"
    listing.write_text("filter\nmangle\n")
    assert CommandEngine(names_file=listing).table_names() == ["filter", "mangle"]


def _fake_ip6tables(tmp_path, output: bytes):
    dump = tmp_path / "rules.out"
    dump.write_bytes(output)
    script = tmp_path / "ip6tables"
    script.write_text(f'#!/bin/sh\ncat "{dump}"\n')
    script.chmod(0o755)
    return script


def test_undecodable_rule_text_is_kept(tmp_path):
    script = _fake_ip6tables(
        tmp_path,
        b"-P INPUT ACCEPT -c 0 0\n-A INPUT -m comment --comment caf\xe9 -c 1 60 -j ACCEPT\n",
    )
    with CommandEngine(command=str(script)).open("filter") as handle:
        (rule,) = handle.rules("INPUT")
    assert rule.args == ("-m", "comment", "--comment", "caf\udce9", "-j", "ACCEPT")
    assert rule.args[3].encode("utf-8", "surrogateescape") == b"caf\xe9"
