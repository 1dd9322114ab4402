"""Tests for the Gradio handlers (no browser needed)."""

import warnings
from unittest.mock import AsyncMock, patch

import pytest

from draftwise.app import ui
from draftwise.core.errors import AppError, ErrorCode
from draftwise.core.session import InMemoryStorage, SessionKeyGuard
from draftwise.llm.generate import GenerationResult


def test_build_ui_returns_blocks():
    """Test the interface builds."""
    import gradio as gr

    assert isinstance(ui.build_ui(), gr.Blocks)


def test_build_ui_theme_accepted_without_warning():
    """Test the Blocks theme argument is accepted by the installed Gradio."""
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        ui.build_ui()
    assert not [w for w in caught if "theme" in str(w.message).lower()]


def test_save_and_clear_key(api_key):
    """Test the key panel lifecycle."""
    status, guard, textbox = ui.save_key(api_key, None)
    assert status.startswith("✅ API key configured (AIzaS...nop)")
    assert textbox == ""
    status, guard = ui.clear_key(guard)
    assert "No API key configured" in status


def test_save_invalid_key_keeps_input():
    """Test a malformed key shows an error with recovery hints."""
    status, guard, textbox = ui.save_key("AIabc", None)
    assert "Invalid API key format" in status
    assert "Update API Key" in status
    assert textbox == "AIabc"
    assert not guard.has_key


def test_expired_session_is_distinguished(clock, api_key):
    """Test the status line after the window elapses."""
    guard = SessionKeyGuard(InMemoryStorage(), timeout_seconds=60, clock=clock)
    guard.set_key(api_key)
    clock.advance(61)
    status, guard = ui.refresh_status(guard)
    assert "Session expired" in status


@pytest.mark.asyncio
async def test_enhance_requires_key():
    """Test handlers refuse to run without a key."""
    output, status, _guard = await ui.enhance_email("hello there", "professional", None)
    assert output == ""
    assert "Please add your Gemini API key first." in status


@pytest.mark.asyncio
async def test_enhance_email(api_key):
    """Test a template enhancement through the UI handler."""
    _status, guard, _ = ui.save_key(api_key, None)
    result = GenerationResult("Dear team, please review.", "gemini", "m")
    with patch("draftwise.services.email.generate_text", new=AsyncMock(return_value=result)):
        output, note, _guard = await ui.enhance_email("pls review", "polite", guard)
    assert output == "Dear team, please review."
    assert note == "Generated with gemini"


@pytest.mark.asyncio
async def test_enhance_shows_provider_errors(api_key):
    """Test AppErrors are rendered with their user message."""
    _status, guard, _ = ui.save_key(api_key, None)
    timeout = AppError("slow", code=ErrorCode.TIMEOUT, status_code=408, retryable=True)
    with patch("draftwise.services.email.generate_text", new=AsyncMock(side_effect=timeout)):
        output, status, _guard = await ui.enhance_email("pls review", "direct", guard)
    assert output == ""
    assert "Request timed out" in status
    assert "Reduce Content" in status


@pytest.mark.asyncio
async def test_create_slides_validation_error(api_key):
    """Test an oversize topic is reported, not raised."""
    _status, guard, _ = ui.save_key(api_key, None)
    markdown, _guard = await ui.create_slides("x" * 400, "modern", guard)
    assert "topic" in markdown
