"""
Tests for the BingCLI command surface, configuration and plugins.
"""

import pytest
import os
import sys
import json
import tempfile
from unittest.mock import Mock, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import bing_cli
from reconciler import reconcile, FlaggedToken, Suggestion
from tests.test_bing_api import SPELL_RESPONSE, SEARCH_RESPONSE, mock_response


@pytest.fixture
def config_path():
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "config.ini")


class TestConfiguration:
    """Test configuration management."""

    def test_load_config_creates_default(self, config_path):
        """Test that default config is created when none exists."""
        config = bing_cli.load_config(config_path)
        assert os.path.exists(config_path)
        assert 'API' in config
        assert 'Search' in config
        assert config['Search']['market'] == 'en-gb'
        assert config['Search']['safe_search'] == 'moderate'

    def test_default_config_in_script_dir(self):
        """Test the default location next to the script."""
        with tempfile.TemporaryDirectory() as temp_dir:
            with patch('bing_cli.SCRIPT_DIR', temp_dir):
                bing_cli.load_config()
                assert os.path.exists(os.path.join(temp_dir, "config.ini"))

    def test_config_api_key_from_env(self, config_path):
        """Test API key loading from environment variable."""
        with patch.dict(os.environ, {'BING_API_KEY': 'env_key'}):
            config = bing_cli.load_config(config_path)
            assert config['API']['api_key'] == 'env_key'

    def test_config_file_key_wins_over_env(self, config_path):
        """Test that a key in the file is not overwritten."""
        with open(config_path, 'w') as f:
            f.write("[API]\napi_key = file_key\n")
        with patch.dict(os.environ, {'BING_API_KEY': 'env_key'}):
            config = bing_cli.load_config(config_path)
            assert config['API']['api_key'] == 'file_key'


class TestPluginSystem:
    """Test plugin loading and execution."""

    def test_load_plugins_missing_directory(self):
        """Test that a missing plugins directory yields no plugins."""
        with tempfile.TemporaryDirectory() as temp_dir:
            plugins = bing_cli.load_plugins(os.path.join(temp_dir, "plugins"))
            assert plugins == {}

    def test_load_bundled_plugins(self):
        """Test that the bundled spellcheck plugin is found."""
        plugins = bing_cli.load_plugins()
        assert "spellcheck_plugin.py" in plugins
        assert "__init__.py" not in plugins

    def test_process_text_with_plugins(self):
        """Test text processing through plugins."""
        mock_plugin = Mock()
        mock_plugin.execute.return_value = "corrected text"
        result = bing_cli.process_text_with_plugins("test text", {"test_plugin": mock_plugin})
        assert result == "corrected text"
        mock_plugin.execute.assert_called_once_with("test text")

    def test_spellcheck_plugin_fixes_typos(self):
        """Test the bundled typo table."""
        plugin = bing_cli.load_plugins()["spellcheck_plugin.py"]
        assert plugin.execute("pls fix teh bug") == "please fix the bug"

    def test_spellcheck_plugin_ignores_partial_words(self):
        """Test that typos inside longer words are not flagged."""
        plugin = bing_cli.load_plugins()["spellcheck_plugin.py"]
        assert plugin.execute("plsql tehran") == "plsql tehran"

    def test_spellcheck_plugin_mixed_whole_and_partial_words(self):
        """Test that only whole-word typos are replaced when both kinds appear."""
        plugin = bing_cli.load_plugins()["spellcheck_plugin.py"]
        assert plugin.execute("teh tehran pls use plsql") == "the tehran please use plsql"

    def test_spellcheck_plugin_custom_table(self):
        """Test a custom table with regex characters in the typo."""
        plugin = bing_cli.load_plugins()["spellcheck_plugin.py"].__class__({"c++": "C++", "wrld": "world"})
        assert plugin.execute("hello wrld wrlds") == "hello world wrlds"


class TestOutputFormatting:
    """Test highlight and report rendering."""

    def test_highlight_corrections(self):
        """Test that replaced words are coloured."""
        correction = reconcile("chese on tosat", [
            FlaggedToken("chese", [Suggestion("cheese")]),
            FlaggedToken("tosat", [Suggestion("toast")]),
        ])
        highlighted = bing_cli.highlight_corrections(correction)
        assert highlighted == f"{bing_cli.GREEN}cheese{bing_cli.RESET} on {bing_cli.GREEN}toast{bing_cli.RESET}"

    def test_report_without_corrections(self):
        """Test the report for clean text."""
        assert bing_cli.format_correction_report(reconcile("fine", [])) == "No spelling errors detected!"

    def test_report_lists_corrections(self):
        """Test the numbered correction list."""
        correction = reconcile("test test", [FlaggedToken("test", [Suggestion("best")])])
        report = bing_cli.format_correction_report(correction)
        assert report.startswith("1. ")
        assert "best" in report
        assert "(x2)" in report


class TestCommands:
    """Test the command-line entry point."""

    def run(self, config_path, *argv):
        return bing_cli.main(["--config", config_path, "--key", "key123", "--no-plugins", *argv])

    def test_missing_api_key(self, config_path, monkeypatch, capsys):
        """Test that a missing key exits with a usage error."""
        monkeypatch.delenv('BING_API_KEY', raising=False)
        code = bing_cli.main(["--config", config_path, "spell", "text"])
        assert code == bing_cli.EXIT_USAGE
        assert "API key" in capsys.readouterr().err

    def test_spell_prints_raw_response(self, config_path, capsys):
        """Test the default spell output is the raw JSON."""
        with patch('requests.get', return_value=mock_response(SPELL_RESPONSE)):
            code = self.run(config_path, "spell", "chese on tosat")
        assert code == bing_cli.EXIT_OK
        assert json.loads(capsys.readouterr().out) == SPELL_RESPONSE

    def test_spell_correct_only(self, config_path, capsys):
        """Test that --correct-only prints just the corrected sentence."""
        with patch('requests.get', return_value=mock_response(SPELL_RESPONSE)):
            code = self.run(config_path, "spell", "chese on tosat", "--correct-only")
        assert code == bing_cli.EXIT_OK
        assert capsys.readouterr().out.strip() == "cheese on toast"

    def test_spell_highlight(self, config_path, capsys):
        """Test that --highlight prints coloured text and a report."""
        with patch('requests.get', return_value=mock_response(SPELL_RESPONSE)):
            code = self.run(config_path, "spell", "chese on tosat", "--highlight")
        out = capsys.readouterr().out
        assert code == bing_cli.EXIT_OK
        assert bing_cli.GREEN in out
        assert "2. " in out

    def test_spell_failure_exits_nonzero(self, config_path, capsys):
        """Test that an API failure produces a non-zero exit and a message."""
        with patch('requests.get', return_value=mock_response(status=403)):
            code = self.run(config_path, "spell", "chese", "--correct-only")
        captured = capsys.readouterr()
        assert code == bing_cli.EXIT_API_FAILURE
        assert captured.out == ""
        assert "403" in captured.err

    def test_search_passes_flags(self, config_path, capsys):
        """Test that search flags reach the request."""
        with patch('requests.get', return_value=mock_response(SEARCH_RESPONSE)) as mock_get:
            code = self.run(config_path, "search", "pandas merge", "--count", "3", "--site", "github.com")
        assert code == bing_cli.EXIT_OK
        params = mock_get.call_args.kwargs['params']
        assert params['q'] == "site:github.com pandas merge"
        assert params['count'] == 3
        assert params['offset'] == 0
        assert json.loads(capsys.readouterr().out) == SEARCH_RESPONSE

    def test_site_prints_first_url(self, config_path, capsys):
        """Test the site command without opening a browser."""
        with patch('requests.get', return_value=mock_response(SEARCH_RESPONSE)), \
                patch('bing_api.open_in_browser') as mock_open:
            code = self.run(config_path, "site", "list comprehension")
        assert code == bing_cli.EXIT_OK
        assert capsys.readouterr().out.strip() == "https://stackoverflow.com/q/1"
        mock_open.assert_not_called()

    def test_site_open_launches_browser(self, config_path):
        """Test that --open opens the first result."""
        with patch('requests.get', return_value=mock_response(SEARCH_RESPONSE)), \
                patch('bing_api.open_in_browser') as mock_open:
            code = self.run(config_path, "site", "list comprehension", "--open")
        assert code == bing_cli.EXIT_OK
        mock_open.assert_called_once_with("https://stackoverflow.com/q/1", browser_path=None)

    def test_site_no_results(self, config_path, capsys):
        """Test the site command when nothing matches."""
        with patch('requests.get', return_value=mock_response({})):
            code = self.run(config_path, "site", "zzzz", "--open")
        assert code == bing_cli.EXIT_OK
        assert "No results" in capsys.readouterr().out

    def test_plugins_process_input(self, config_path, capsys):
        """Test that input passes through plugins before the request."""
        with patch('requests.get', return_value=mock_response({"flaggedTokens": []})) as mock_get:
            code = bing_cli.main(["--config", config_path, "--key", "k", "spell", "teh cat", "-c"])
        assert code == bing_cli.EXIT_OK
        assert mock_get.call_args.kwargs['params']['text'] == "the cat"
        assert capsys.readouterr().out.strip() == "the cat"

    def test_raw_spell_skips_plugins(self, config_path, capsys):
        """Test that the raw response is for the sentence exactly as typed."""
        payload = {"flaggedTokens": [{"token": "teh", "suggestions": [{"suggestion": "the"}]}]}
        with patch('requests.get', return_value=mock_response(payload)) as mock_get:
            code = bing_cli.main(["--config", config_path, "--key", "k", "spell", "teh cat"])
        assert code == bing_cli.EXIT_OK
        assert mock_get.call_args.kwargs['params']['text'] == "teh cat"
        assert json.loads(capsys.readouterr().out) == payload

    def test_search_uses_plugins(self, config_path, capsys):
        """Test that search queries still pass through plugins."""
        with patch('requests.get', return_value=mock_response(SEARCH_RESPONSE)) as mock_get:
            code = bing_cli.main(["--config", config_path, "--key", "k", "search", "teh docs"])
        assert code == bing_cli.EXIT_OK
        assert mock_get.call_args.kwargs['params']['q'] == "the docs"

    def test_highlight_does_not_touch_escape_codes(self, config_path, capsys):
        """Test that a token matching colour codes leaves them intact."""
        payload = {"flaggedTokens": [
            {"token": "chese", "suggestions": [{"suggestion": "cheese"}]},
            {"token": "92m", "suggestions": [{"suggestion": "X"}]},
        ]}
        with patch('requests.get', return_value=mock_response(payload)):
            code = self.run(config_path, "spell", "chese", "--highlight")
        out = capsys.readouterr().out
        assert code == bing_cli.EXIT_OK
        assert out.startswith(f"{bing_cli.GREEN}cheese{bing_cli.RESET}\n")
