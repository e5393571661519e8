"""Tests for CLI module."""

import json
import subprocess
import sys
from fractions import Fraction

import pytest
from symbra.cli import ScriptRunner, SymbraCompleter, SymbraREPL, count_parens, parse_bindings
from symbra.numeric import EXACT_CONTEXT


class TestREPLCommands:
    """Tests for REPL command handling."""

    def setup_method(self):
        self.repl = SymbraREPL()

    def test_help_command(self):
        result = self.repl.handle_command(":help")
        assert ":set" in result
        assert ":eval" in result

    def test_flags_command(self):
        result = self.repl.handle_command(":flags")
        assert "merge_fraction: off" in result
        assert "expand: off" in result

    def test_set_command(self):
        result = self.repl.handle_command(":set merge_fraction on")
        assert result == "merge_fraction: on"
        assert self.repl.calculator.flag("merge_fraction")

        self.repl.handle_command(":set merge_fraction off")
        assert not self.repl.calculator.flag("merge_fraction")

    def test_set_unknown_flag(self):
        assert self.repl.handle_command(":set bogus on").startswith("Unknown flag")

    def test_set_usage(self):
        assert self.repl.handle_command(":set merge_fraction").startswith("Usage")
        assert self.repl.handle_command(":set merge_fraction maybe").startswith("Usage")

    def test_tags_command(self):
        result = self.repl.handle_command(":tags")
        assert "algebra: enabled" in result
        assert "trigonometric: enabled" in result

    def test_enable_disable(self):
        assert self.repl.handle_command(":disable trigonometric") == "Disabled tag: trigonometric"
        assert "trigonometric" not in self.repl.calculator.tags
        assert self.repl.handle_command(":enable trigonometric") == "Enabled tag: trigonometric"
        assert "trigonometric" in self.repl.calculator.tags

    def test_enable_unknown_tag(self):
        assert self.repl.handle_command(":enable nope").startswith("Unknown tag")

    def test_strategies_command(self):
        result = self.repl.handle_command(":strategies")
        assert "+ cancel-factors" in result
        assert "- merge-fractions" in result

    def test_trace_command(self):
        assert self.repl.trace is False

        result = self.repl.handle_command(":trace on")
        assert self.repl.trace is True
        assert "enabled" in result.lower()

        result = self.repl.handle_command(":trace off")
        assert self.repl.trace is False
        assert "disabled" in result.lower()

    def test_trace_toggle(self):
        self.repl.handle_command(":trace")
        assert self.repl.trace is True
        self.repl.handle_command(":trace")
        assert self.repl.trace is False

    def test_context_command(self):
        assert self.repl.handle_command(":context exact") == "Context set to: exact"
        assert self.repl.context is EXACT_CONTEXT
        assert self.repl.handle_command(":context bogus").startswith("Unknown context")
        assert "exact" in self.repl.handle_command(":context")

    def test_raw_command(self):
        assert self.repl.handle_command(":raw x/x") == "x/x"
        assert self.repl.handle_command(":raw").startswith("Usage")

    def test_functions_command(self):
        result = self.repl.handle_command(":functions")
        assert "sin/1" in result
        assert "exp/2" in result

    def test_load_command(self, tmp_path):
        path = tmp_path / "calc.json"
        path.write_text(json.dumps({"flags": {"expand": True}}))
        result = self.repl.handle_command(f":load {path}")
        assert result.startswith("Loaded configuration")
        assert self.repl.calculator.flag("expand")

    def test_load_missing_file(self, tmp_path):
        result = self.repl.handle_command(f":load {tmp_path / 'missing.json'}")
        assert result.startswith("Error loading")

    def test_quit_command(self):
        assert self.repl.handle_command(":quit") is None
        assert self.repl.running is False

    def test_unknown_command(self):
        assert self.repl.handle_command(":bogus").startswith("Unknown command")


class TestEvalCommand:
    """Tests for numeric evaluation in the REPL."""

    def setup_method(self):
        self.repl = SymbraREPL()

    def test_eval_with_bindings(self):
        assert self.repl.handle_command(":eval x=2,y=3 x*y+1") == "7.0"

    def test_eval_exact(self):
        self.repl.handle_command(":context exact")
        assert self.repl.handle_command(":eval x=2,y=3 x*y+1") == "7"

    def test_eval_constant(self):
        assert self.repl.handle_command(":eval pi") == "3.141592653589793"

    def test_eval_unbound(self):
        assert self.repl.handle_command(":eval x+1") == "Error: unbound symbol 'x'"

    def test_eval_bad_binding(self):
        assert self.repl.handle_command(":eval x= 1").startswith("Error")

    def test_eval_usage(self):
        assert self.repl.handle_command(":eval").startswith("Usage")


class TestProcessLine:
    """Tests for expression lines."""

    def setup_method(self):
        self.repl = SymbraREPL()

    def test_blank_and_comment(self):
        assert self.repl.process_line("") is None
        assert self.repl.process_line("   ") is None
        assert self.repl.process_line("# comment") is None

    def test_simplifies(self):
        assert self.repl.process_line("2+3") == "5"
        assert self.repl.process_line("sin(x)/cos(x)*cos(x)/sin(x)") == "1"

    def test_syntax_error_has_pointer(self):
        result = self.repl.process_line("sin(x")
        assert result.startswith("Error: unterminated call to 'sin'")
        assert result.endswith("sin(x\n^")

    def test_division_by_zero(self):
        result = self.repl.process_line("1/0")
        assert result.startswith("Error")
        assert "zero denominator" in result

    def test_trace_mode(self):
        self.repl.trace = True
        assert self.repl.process_line("x/x+1") == "2\nfraction"
        assert self.repl.process_line("sin(x)") == "sin(x)"


class TestHelpers:
    """Tests for parenthesis counting and bindings."""

    def test_count_parens(self):
        assert count_parens("sin(x") == 1
        assert count_parens("(a+b)") == 0
        assert count_parens("x)") == -1

    def test_parse_bindings(self):
        assert parse_bindings("a=1, b=2") == {"a": 1.0, "b": 2.0}
        assert parse_bindings("a=1/2", EXACT_CONTEXT) == {"a": Fraction(1, 2)}

    def test_parse_bindings_rejects_malformed(self):
        with pytest.raises(ValueError):
            parse_bindings("a")
        with pytest.raises(ValueError):
            parse_bindings("=1")


class TestCompleter:
    """Tests for tab completion."""

    def setup_method(self):
        self.completer = SymbraCompleter(SymbraREPL())

    def test_commands(self):
        matches = self.completer._get_matches(":", ":")
        assert ":help" in matches
        assert ":strategies" in matches
        assert self.completer._get_matches(":st", ":st") == [":strategies"]

    def test_flags(self):
        assert self.completer._get_matches("m", ":set m") == ["merge_fraction"]
        assert self.completer._get_matches("", ":set merge_fraction ") == ["on", "off"]

    def test_tags_and_contexts(self):
        assert self.completer._get_matches("a", ":enable a") == ["algebra"]
        assert self.completer._get_matches("e", ":context e") == ["exact"]

    def test_function_names(self):
        assert self.completer._get_matches("si", "si") == ["sin("]
        assert self.completer._get_matches("ar", "2ar") == ["arccos(", "arcsin(", "arctan("]


class TestScriptRunner:
    """Tests for script execution."""

    def test_run_script(self, tmp_path, capsys):
        script = tmp_path / "test.sym"
        script.write_text(
            "# comment\n"
            ":set merge_fraction on\n"
            "\n"
            "a/(a+b) + b/(a+b)\n"
            ":eval x=2 x^2+1\n"
        )
        runner = ScriptRunner()
        assert runner.run_script(script) == 0
        assert capsys.readouterr().out == "1\n5.0\n"

    def test_run_script_quiet(self, tmp_path, capsys):
        script = tmp_path / "test.sym"
        script.write_text("2+3\n")
        assert ScriptRunner().run_script(script, quiet=True) == 0
        assert capsys.readouterr().out == ""

    def test_run_script_error(self, tmp_path, capsys):
        script = tmp_path / "bad.sym"
        script.write_text("2+3\nsin(x\n")
        assert ScriptRunner().run_script(script) == 1
        captured = capsys.readouterr()
        assert captured.out == "5\n"
        assert "bad.sym:2:" in captured.err

    def test_run_missing_script(self, tmp_path, capsys):
        assert ScriptRunner().run_script(tmp_path / "missing.sym") == 1
        assert "Error reading" in capsys.readouterr().err

    def test_run_expression(self, capsys):
        runner = ScriptRunner()
        assert runner.run_expression("2x + x") == 0
        assert capsys.readouterr().out == "3x\n"
        assert runner.run_expression("sin(") == 1
        assert capsys.readouterr().err.startswith("Error")


class TestCLIIntegration:
    """Integration tests running the CLI as a subprocess."""

    def run_cli(self, *args, stdin=None):
        return subprocess.run(
            [sys.executable, "-m", "symbra.cli", *args],
            input=stdin,
            capture_output=True,
            text=True,
        )

    def test_help(self):
        result = self.run_cli("--help")
        assert result.returncode == 0
        assert "Symbra" in result.stdout

    def test_version(self):
        result = self.run_cli("--version")
        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_expression(self):
        result = self.run_cli("-e", "2+3")
        assert result.returncode == 0
        assert result.stdout.strip() == "5"

    def test_merge_flag(self):
        result = self.run_cli("--merge", "-e", "1/x + 1/y")
        assert result.stdout.strip() == "(x+y)/xy"

    def test_expand_flag(self):
        result = self.run_cli("--expand", "-e", "sin(x)*(sin(x)+1)")
        assert result.stdout.strip() == "sin(x)+exp(sin(x),2)"

    def test_trace_flag(self):
        result = self.run_cli("-t", "-e", "x/x + 1")
        assert result.stdout.splitlines() == ["2", "fraction"]

    def test_syntax_error(self):
        result = self.run_cli("-e", "sin(x")
        assert result.returncode == 1
        assert "unterminated call" in result.stderr

    def test_pipe_mode(self):
        result = self.run_cli(stdin="2x + x\nsin(x)/sin(x)\n")
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["3x", "1"]

    def test_config_file(self, tmp_path):
        path = tmp_path / "calc.json"
        path.write_text(json.dumps({"flags": {"merge_fraction": True}}))
        result = self.run_cli("-c", str(path), "-e", "1/x + 1/y")
        assert result.stdout.strip() == "(x+y)/xy"

    def test_bad_config_file(self, tmp_path):
        path = tmp_path / "calc.json"
        path.write_text(json.dumps({"flags": {"bogus": True}}))
        result = self.run_cli("-c", str(path), "-e", "x")
        assert result.returncode == 1
        assert "Error loading" in result.stderr
