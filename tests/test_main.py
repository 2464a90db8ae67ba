"""Tests for the command-line driver."""

import os

import pytest

from hamer.errors import ErrorManager
from hamer.main import VERSION, compile_source, main


def write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return str(path)


def run_cli(argv):
    """Run main() and return its exit code (None when it returns normally)."""
    try:
        main(argv)
    except SystemExit as exit_info:
        return exit_info.code
    return None


def test_compiles_to_requested_output(tmp_path, capsys):
    source = write(tmp_path / "hello.hmr", 'print "hi"\n')
    output = tmp_path / "hello.s"
    assert run_cli([source, "-o", str(output)]) is None
    assert "H@mer: Compilation Successful." in capsys.readouterr().out
    asm = output.read_text()
    assert "_start:" in asm
    assert '.ascii "hi\\n"' in asm


def test_default_output_is_out_s(tmp_path, monkeypatch):
    source = write(tmp_path / "prog.hmr", "local n = 3\nprint n\n")
    monkeypatch.chdir(tmp_path)
    assert run_cli([source]) is None
    assert (tmp_path / "out.s").exists()


def test_analyze_only_reports_clean_file(tmp_path, capsys):
    source = write(tmp_path / "prog.hmr", "local n = 3\nprint n\n")
    assert run_cli([source, "--analyze"]) == 0
    assert f"Analysis complete: No issues found in {source}" in capsys.readouterr().out
    assert not (tmp_path / "out.s").exists()


def test_analyze_only_prints_warnings(tmp_path, capsys):
    source = write(tmp_path / "prog.hmr", "print ghost\n")
    assert run_cli([source, "-a"]) == 0
    assert "WARNING: undefined variable 'ghost'" in capsys.readouterr().out


def test_unresolved_reference_is_a_warning_by_default(tmp_path, capsys):
    source = write(tmp_path / "prog.hmr", "local a = 1\nprint a.x\n")
    output = tmp_path / "prog.s"
    assert run_cli([source, "-o", str(output)]) is None
    out = capsys.readouterr().out
    assert "WARNING: 'a' is not an object" in out
    assert "H@mer: Compilation Successful." in out
    assert "ldr x2, [x12, #0]" in output.read_text()


def test_strict_mode_rejects_unresolved_reference(tmp_path, capsys):
    source = write(tmp_path / "prog.hmr", "local a = 1\nprint a.x\n")
    output = tmp_path / "prog.s"
    assert run_cli([source, "-o", str(output), "--strict"]) == 1
    out = capsys.readouterr().out
    assert f"COMPILER ERROR: 'a' is not an object ({os.path.abspath(source)}:2)" in out
    assert not output.exists()


def test_analyzer_errors_stop_compilation(tmp_path, capsys):
    source = write(tmp_path / "prog.hmr", "local o = new Missing\n")
    assert run_cli([source, "-o", str(tmp_path / "prog.s")]) == 1
    out = capsys.readouterr().out
    assert "ERROR: class 'Missing' is not defined" in out
    assert "Compilation failed due to errors." in out


def test_diagnostics_point_into_imported_file(tmp_path, capsys):
    lib = write(tmp_path / "lib.hmr", "class A is x done\nlocal o = new Nope\n")
    source = write(tmp_path / "main.hmr", 'Get "lib"\nprint "x"\n')
    assert run_cli([source, "--analyze"]) == 1
    out = capsys.readouterr().out
    assert f"{os.path.abspath(lib)}:2:0: ERROR: class 'Nope' is not defined" in out
    assert "  local o = new Nope" in out


def test_verbose_reports_injected_libraries(tmp_path, capsys):
    write(tmp_path / "shapes.hmr", "class Box is w h done\n")
    source = write(tmp_path / "main.hmr", 'Get "shapes"\nlocal b = new Box\n')
    assert run_cli([source, "-o", str(tmp_path / "main.s"), "--verbose"]) is None
    out = capsys.readouterr().out
    assert "Injected shapes from " in out
    assert "Wrote " in out


def test_missing_library(tmp_path, capsys):
    source = write(tmp_path / "main.hmr", 'Get "absent"\n')
    assert run_cli([source]) == 1
    assert "COMPILER ERROR: Could not find library file at" in capsys.readouterr().out


def test_missing_input_file(tmp_path, capsys):
    missing = str(tmp_path / "nope.hmr")
    assert run_cli([missing]) == 1
    assert f"Error: Input file '{missing}' not found." in capsys.readouterr().out


def test_option_in_place_of_input(capsys):
    assert run_cli(["--strict"]) == 1
    assert "Expected input file" in capsys.readouterr().out


@pytest.mark.parametrize("flag", ["--version", "-v"])
def test_version(flag, capsys):
    assert run_cli([flag]) == 0
    assert f"H@mer Compiler {VERSION}" in capsys.readouterr().out


def test_help_and_usage(capsys):
    assert run_cli(["--help"]) == 0
    assert "USAGE:" in capsys.readouterr().out
    assert run_cli([]) == 1


def test_compile_source_returns_none_on_errors():
    assert compile_source("local o = new Missing") is None
    asm = compile_source('print "ok"')
    assert asm.startswith(".section .data")


def test_compile_source_analyze_only_keeps_diagnostics():
    errors = ErrorManager("print ghost\n", "prog.hmr")
    assert compile_source("print ghost\n", error_manager=errors, analyze_only=True) is None
    assert [d.message for d in errors.diagnostics] == ["undefined variable 'ghost'"]
    assert not errors.has_error
