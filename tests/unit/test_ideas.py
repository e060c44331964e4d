"""Tests for merchstudio.core.ideas: the T-shirt idea generator."""

from __future__ import annotations

import json

import pytest
from conftest import chat_response

from merchstudio.core.exceptions import ConfigurationError, ProviderError
from merchstudio.core.ideas import IdeaGenerator, build_instruction, parse_idea


@pytest.fixture
def ideas(test_config, settings_store, http_client) -> IdeaGenerator:
    return IdeaGenerator(test_config, settings_store, client=http_client)


class TestParseIdea:
    def test_valid(self):
        idea = parse_idea(
            json.dumps(
                {"text": " Hi ", "graphic": "cat", "bg_color": "#000", "design_colors": "#fff"}
            )
        )
        assert idea == {
            "text": "Hi",
            "graphic": "cat",
            "bg_color": "#000",
            "design_colors": ["#fff"],
        }

    @pytest.mark.parametrize(
        "content",
        ["", "not json", "[1, 2]", json.dumps({"text": "a", "graphic": "b", "bg_color": "c"})],
    )
    def test_invalid(self, content):
        with pytest.raises(ProviderError, match="did not return a valid JSON idea"):
            parse_idea(content)


class TestIdeaGenerator:
    def test_theme_is_added_to_instruction(self):
        assert build_instruction("space").endswith(
            "Create a concept inspired by the theme: space."
        )
        assert "theme" not in build_instruction("")

    def test_generate_stores_idea(self, ideas, upstream):
        idea = ideas.generate("  cats  ")
        assert idea["text"] == "Stay Weird"
        assert idea["theme"] == "cats"
        assert idea["id"].startswith("idea_")
        assert ideas.list()[0]["id"] == idea["id"]

        messages = upstream.last_json()["messages"]
        assert messages[0]["role"] == "system"
        assert messages[1]["content"].endswith("inspired by the theme: cats.")

    def test_list_newest_first(self, ideas):
        first = ideas.generate()
        second = ideas.generate()
        assert [i["id"] for i in ideas.list()] == [second["id"], first["id"]]

    def test_invalid_answer_not_stored(self, ideas, upstream):
        upstream.respond("/chat/completions", chat_response("Sure! Here is an idea."))
        with pytest.raises(ProviderError):
            ideas.generate()
        assert ideas.list() == []

    def test_missing_key(self, ideas, settings_store, upstream):
        settings_store.update({"openai_api_key": ""})
        with pytest.raises(ConfigurationError):
            ideas.generate()
        assert upstream.calls == []
