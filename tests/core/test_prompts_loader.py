"""Tests for YAML prompt loading."""

import pytest

from draftwise.core.prompts_loader import load_prompt
from draftwise.core.schemas import EmailTemplate


def test_load_default_version():
    """Test the bundled prompt file has every section."""
    prompts = load_prompt()
    for section in ("templates", "template_user", "training", "slides", "speaker_notes", "notes_fallback"):
        assert section in prompts
    assert set(prompts["templates"]) == {t.value for t in EmailTemplate}


def test_templates_format_cleanly():
    """Test placeholders match what the services pass in."""
    prompts = load_prompt()
    slides = prompts["slides"].format(topic="Solar power", count=3)
    assert "exactly 3 slides" in slides
    assert '"title": "Slide Title"' in slides
    training = prompts["training"].format(training_input="a", training_output="b", prompt="c")
    assert 'Input Email: "c"' in training


def test_unknown_version_raises():
    """Test a helpful KeyError for missing versions."""
    with pytest.raises(KeyError, match="not found"):
        load_prompt("v999")


def test_missing_file_raises(tmp_path):
    """Test FileNotFoundError when the directory has no prompt file."""
    with pytest.raises(FileNotFoundError):
        load_prompt("v1", str(tmp_path))


def test_missing_sections_raise(tmp_path):
    """Test a version lacking required sections is rejected."""
    (tmp_path / "prompt_versions.yaml").write_text("versions:\n  v1:\n    templates: {}\n")
    with pytest.raises(KeyError, match="missing sections"):
        load_prompt("v1", str(tmp_path))
