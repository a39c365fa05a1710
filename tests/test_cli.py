"""Tests for the storyscape CLI."""

import sys
from unittest.mock import patch

from storyscape import cli

from tests.conftest import make_document


def run_cli(monkeypatch, config, *argv):
    monkeypatch.setattr(sys, "argv", ["storyscape", *argv])
    # mock-ok: point the CLI at the temp config instead of config.yaml
    with patch.object(cli, "load_config", return_value=config):
        cli.main()


class TestReadInteractively:
    def test_reads_to_the_end(self, monkeypatch, capsys):
        answers = iter(["z", "a"])
        monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
        state = cli.read_interactively(make_document())
        assert state.path == (1, 2)
        out = capsys.readouterr().out
        assert "No choice 'Z'" in out
        assert "The End." in out

    def test_dangling_choice_stays_put(self, monkeypatch, capsys):
        answers = iter(["b", "q"])
        monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
        state = cli.read_interactively(make_document())
        assert state.path == (1,)
        assert "not been written yet" in capsys.readouterr().out


class TestCommands:
    def test_feed(self, populated_db, config, monkeypatch, capsys):
        run_cli(monkeypatch, config, "feed", "--filter", "trending")
        out = capsys.readouterr().out
        assert "The Lantern Keeper of Gion" in out
        assert "Sands of Giza" not in out
        assert "(fallback)" in out

    def test_upvote_toggles(self, populated_db, config, monkeypatch, capsys):
        run_cli(monkeypatch, config, "upvote", "2", "--user", "bob")
        run_cli(monkeypatch, config, "upvote", "2", "--user", "bob")
        out = capsys.readouterr().out
        assert "Upvoted story 2 (4 upvotes)" in out
        assert "Removed upvote from story 2 (3 upvotes)" in out

    def test_missing_story_prints_error(self, populated_db, config, monkeypatch, capsys):
        run_cli(monkeypatch, config, "upvote", "999", "--user", "bob")
        assert "Error: Story not found: 999" in capsys.readouterr().out

    def test_quota(self, tmp_db, config, monkeypatch, capsys):
        run_cli(monkeypatch, config, "quota", "--user", "alice")
        assert "alice: 0 used, 5 remaining" in capsys.readouterr().out
