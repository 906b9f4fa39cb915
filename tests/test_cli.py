import builtins
from pathlib import Path

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from ember import ember_cli
from ember.ember_cli import main, run_ember
from ember.ember_driver import Driver

ADD_SOURCE = "def add : x, y { x + y }\nadd(2, 3)\n"


def test_run_ember_string(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_ember(ADD_SOURCE, is_string=True, execute=True) == [5.0]
    assert capsys.readouterr().out.strip() == "5.0"


def test_run_ember_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "add.ember"
    path.write_text(ADD_SOURCE, encoding="utf-8")
    assert run_ember(str(path), execute=True) == [5.0]


def test_run_ember_without_exec_prints_nothing(capsys: pytest.CaptureFixture[str]) -> None:
    assert run_ember(ADD_SOURCE, is_string=True) == []
    assert capsys.readouterr().out == ""


def test_run_ember_rejects_other_extensions() -> None:
    with pytest.raises(ValueError, match="Only .ember files are supported."):
        run_ember("script.txt")


def test_run_ember_pretty(capsys: pytest.CaptureFixture[str]) -> None:
    run_ember("1 + 1 )", is_string=True, execute=True, pretty=True)
    out = capsys.readouterr().out
    assert "Ember output" in out
    assert "1 error(s)" in out


def test_run_ember_uses_given_driver() -> None:
    driver = Driver()
    run_ember("def k : { 4 }", is_string=True, driver=driver)
    assert driver.session.backend.lookup_function("k") is not None


def test_main_string_exec(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-s", ADD_SOURCE, "-e"]) == 0
    assert "5.0" in capsys.readouterr().out


def test_main_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "prog.ember"
    path.write_text("import sqrt : x { }\nsqrt(16)\n", encoding="utf-8")
    assert main([str(path), "--exec"]) == 0
    assert "4.0" in capsys.readouterr().out


def test_main_reports_unit_errors(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-s", "nope(1) 2", "-e"]) == 1
    out = capsys.readouterr().out
    assert "[error] >>>" in out
    assert "2.0" in out


def test_main_deep_nesting_is_a_unit_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-s", "(" * 400 + "1" + ")" * 400, "-e"]) == 1
    assert "Expression nested too deeply" in capsys.readouterr().out


def test_main_long_sum_is_a_unit_error(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["-s", "+".join(["1"] * 1000), "-e"]) == 1
    assert "nested too deeply to compile" in capsys.readouterr().out


def test_main_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main([str(tmp_path / "missing.ember")]) == 2
    assert "[error] >>>" in capsys.readouterr().err


def test_main_wrong_extension(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["prog.py"]) == 2
    assert "Only .ember files are supported." in capsys.readouterr().err


def test_main_without_args_starts_repl(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[bool] = []
    monkeypatch.setattr(
        "ember.ember_repl.start_repl", lambda verbose=False: calls.append(verbose)
    )
    assert main([]) == 0
    assert calls == [False]


def test_main_repl_flag(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(builtins, "input", lambda prompt="": "quit")
    assert main(["--repl", "--verbose"]) == 0
    assert "Exiting Ember REPL." in capsys.readouterr().out


def test_main_reads_sys_argv(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr("sys.argv", ["ember", "-s", "6 * 7", "-e"])
    assert ember_cli.main() == 0
    assert "42.0" in capsys.readouterr().out


@settings(
    max_examples=25, suppress_health_check=[HealthCheck.function_scoped_fixture]
)  # type: ignore[misc]
@given(values=st.lists(st.integers(min_value=0, max_value=1000), min_size=1, max_size=5))  # type: ignore[misc]
def test_every_expression_is_printed(
    values: list[int], capsys: pytest.CaptureFixture[str]
) -> None:
    capsys.readouterr()
    source = " ".join(str(v) for v in values)
    assert run_ember(source, is_string=True, execute=True) == [float(v) for v in values]
    printed = capsys.readouterr().out.split()
    assert printed == [str(float(v)) for v in values]
