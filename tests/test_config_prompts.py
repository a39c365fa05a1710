"""Tests for config loading and prompt rendering."""

import pytest
from jinja2 import UndefinedError

from storyscape.config import Config, load_config
from storyscape.prompts import PROMPTS_DIR, prompt_version, render_prompt, split_system


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml")
        assert config == Config()
        assert config.quota.daily_limit == 5
        assert config.feed.page_size == 9

    def test_partial_override(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("llm:\n  max_attempts: 3\nquota:\n  daily_limit: 10\n")
        config = load_config(path)
        assert config.llm.max_attempts == 3
        assert config.llm.model == "gemini-2.5-flash"
        assert config.quota.daily_limit == 10

    def test_relative_db_path_resolved(self):
        assert Config(db_path="data/x.db").resolved_db_path.is_absolute()


class TestPrompts:
    def test_story_prompt_renders(self):
        messages = render_prompt(
            PROMPTS_DIR / "story_completion.yaml",
            location="Kyoto", min_words=150, max_words=200, insights=["Old fact"],
        )
        system, user = split_system(messages)
        assert "storyteller" in system
        assert "set in Kyoto" in user
        assert "150-200 words" in user
        assert "- Old fact" in user

    def test_missing_variable_is_error(self):
        with pytest.raises(UndefinedError):
            render_prompt(PROMPTS_DIR / "story_completion.yaml", location="Kyoto")

    def test_version(self):
        assert prompt_version(PROMPTS_DIR / "story_completion.yaml") == "story_completion_v2"

    def test_user_only_prompt_has_no_system(self):
        messages = render_prompt(PROMPTS_DIR / "cultural_insights.yaml", location="Lisbon", count=3)
        system, user = split_system(messages)
        assert system is None
        assert "Lisbon" in user
