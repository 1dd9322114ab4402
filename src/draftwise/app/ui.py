"""Draftwise - Gradio UI

API key panel on top, then one tab per tool:
Template Enhancer, Trainer (learn from an example) and Slides.
Each browser session holds its own SessionKeyGuard in gr.State.
"""

from typing import Optional, Tuple

import gradio as gr
from pydantic import ValidationError

from draftwise.core.errors import AppError, ErrorCode, InvalidInputError, recovery_actions
from draftwise.core.logging import get_logger
from draftwise.core.schemas import EmailRequest, EmailTemplate, SlideRequest, TrainingData
from draftwise.core.security import mask_key
from draftwise.core.session import SessionKeyGuard, SessionState
from draftwise.services.email import generate_email, suggest_training_tips, verify_api_key
from draftwise.services.slides import generate_presentation

logger = get_logger(__name__)

TEMPLATE_CHOICES = [
    ("Professional", EmailTemplate.PROFESSIONAL.value),
    ("Friendly", EmailTemplate.FRIEND.value),
    ("Polite", EmailTemplate.POLITE.value),
    ("Direct", EmailTemplate.DIRECT.value),
    ("Follow-up", EmailTemplate.FOLLOWUP.value),
    ("Reminder", EmailTemplate.REMINDER.value),
]


def _guard(guard: Optional[SessionKeyGuard]) -> SessionKeyGuard:
    return guard if guard is not None else SessionKeyGuard()


def key_status(guard: SessionKeyGuard) -> str:
    """Status line for the key panel; runs the expiry check first."""
    state = guard.check()
    if state is SessionState.ACTIVE:
        return f"✅ API key configured ({mask_key(guard.get_key())})"
    if guard.session_expired:
        return "⏰ Session expired. Please enter your API key again."
    return "⚠️ No API key configured. Add your Gemini API key to get started."


def format_error(error: AppError) -> str:
    logger.info(f"ui request failed code={error.code.value}")
    actions = " · ".join(a["label"] for a in recovery_actions(error.code))
    return f"❌ **Error**\n\n{error.user_message}\n\n_Next steps: {actions}_"


def _invalid(error: ValidationError) -> AppError:
    first = error.errors()[0] if error.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()))
    return InvalidInputError(f"{field}: {first.get('msg', 'invalid value')}")


def _require_key(guard: SessionKeyGuard) -> str:
    state = guard.check()
    if state is SessionState.ACTIVE:
        return guard.get_key()
    if guard.session_expired:
        raise AppError("session expired", code=ErrorCode.SESSION_EXPIRED, status_code=401)
    raise AppError(
        "no api key",
        "Please add your Gemini API key first.",
        ErrorCode.INVALID_API_KEY,
        status_code=401,
    )


def save_key(candidate: str, guard: Optional[SessionKeyGuard]) -> Tuple[str, SessionKeyGuard, str]:
    guard = _guard(guard)
    try:
        guard.set_key(candidate or "")
    except AppError as e:
        return format_error(e), guard, candidate
    return key_status(guard), guard, ""


def clear_key(guard: Optional[SessionKeyGuard]) -> Tuple[str, SessionKeyGuard]:
    guard = _guard(guard)
    guard.clear()
    return key_status(guard), guard


def refresh_status(guard: Optional[SessionKeyGuard]) -> Tuple[str, SessionKeyGuard]:
    guard = _guard(guard)
    return key_status(guard), guard


async def probe_saved_key(guard: Optional[SessionKeyGuard]) -> Tuple[str, SessionKeyGuard]:
    guard = _guard(guard)
    try:
        result = await verify_api_key(_require_key(guard))
    except AppError as e:
        return format_error(e), guard
    return f"✅ {result.message}", guard


async def enhance_email(
    prompt: str, template: str, guard: Optional[SessionKeyGuard]
) -> Tuple[str, str, SessionKeyGuard]:
    guard = _guard(guard)
    if not prompt or not prompt.strip():
        return "", "⚠️ Please enter the email you want to enhance", guard
    try:
        request = EmailRequest(prompt=prompt, template=EmailTemplate(template))
        response = await generate_email(request, _require_key(guard))
    except ValidationError as e:
        return "", format_error(_invalid(e)), guard
    except AppError as e:
        return "", format_error(e), guard

    note = "Served from cache" if response.cached else f"Generated with {response.provider}"
    if response.used_fallback:
        note += " (fallback provider)"
    return response.data, note, guard


async def train_email(
    example_input: str,
    example_output: str,
    test_input: str,
    guard: Optional[SessionKeyGuard],
) -> Tuple[str, str, SessionKeyGuard]:
    guard = _guard(guard)
    if not test_input or not test_input.strip():
        return "", "⚠️ Please enter a new email to transform", guard
    try:
        training = TrainingData(input=example_input or "", output=example_output or "")
        request = EmailRequest(prompt=test_input, training_data=training)
        response = await generate_email(request, _require_key(guard))
    except ValidationError as e:
        return "", format_error(_invalid(e)), guard
    except AppError as e:
        return "", format_error(e), guard

    tips = suggest_training_tips(training, test_input)
    notes = "\n".join(f"- {tip}" for tip in tips) or "Pattern applied."
    return response.data, notes, guard


def render_presentation(presentation) -> str:
    md = f"# {presentation.topic}\n\n_Theme: {presentation.theme}_\n\n"
    for slide in presentation.slides:
        md += f"---\n\n### {slide.slide_number}. {slide.title}\n\n"
        md += "".join(f"- {point}\n" for point in slide.content)
        md += f"\n> 🎤 {slide.speaker_notes}\n\n"
    return md


async def create_slides(
    topic: str, theme: str, guard: Optional[SessionKeyGuard]
) -> Tuple[str, SessionKeyGuard]:
    guard = _guard(guard)
    if not topic or not topic.strip():
        return "⚠️ Please enter a presentation topic", guard
    try:
        request = SlideRequest(topic=topic, theme=theme or "default", api_key=_require_key(guard))
        response = await generate_presentation(request)
    except ValidationError as e:
        return format_error(_invalid(e)), guard
    except AppError as e:
        return format_error(e), guard
    return render_presentation(response.data), guard


def build_ui() -> gr.Blocks:
    with gr.Blocks(title="Draftwise", theme=gr.themes.Soft()) as demo:
        guard_state = gr.State(None)

        gr.Markdown("""
        # ✉️ Draftwise

        Rewrite emails in the tone you need, teach the assistant your own style
        from one example, or draft a slide deck with speaker notes.

        **Your API key is kept only for this browser session and expires after 30 minutes.**
        """)

        with gr.Row():
            with gr.Column(scale=3):
                api_key_input = gr.Textbox(
                    label="🔑 Gemini API Key",
                    placeholder="AIza...",
                    type="password",
                )
            with gr.Column(scale=2):
                with gr.Row():
                    save_btn = gr.Button("Save", variant="primary")
                    test_btn = gr.Button("Test")
                    clear_btn = gr.Button("Clear")
        key_status_md = gr.Markdown()

        with gr.Tab("Template Enhancer"):
            template_dropdown = gr.Dropdown(
                choices=TEMPLATE_CHOICES,
                value=EmailTemplate.PROFESSIONAL.value,
                label="Template",
            )
            email_input = gr.Textbox(label="Your email", lines=8)
            enhance_btn = gr.Button("✨ Enhance", variant="primary")
            enhanced_output = gr.Textbox(label="Enhanced email", lines=10, interactive=False)
            enhance_status = gr.Markdown()

        with gr.Tab("Trainer"):
            with gr.Row():
                example_in = gr.Textbox(label="Example input", lines=6)
                example_out = gr.Textbox(label="Example output", lines=6)
            test_in = gr.Textbox(label="New email to transform", lines=6)
            train_btn = gr.Button("🧠 Apply pattern", variant="primary")
            trained_output = gr.Textbox(label="Result", lines=10, interactive=False)
            train_notes = gr.Markdown()

        with gr.Tab("Slides"):
            with gr.Row():
                topic_input = gr.Textbox(label="Topic", scale=3)
                theme_input = gr.Textbox(label="Theme", value="modern", scale=1)
            slides_btn = gr.Button("📊 Generate presentation", variant="primary")
            slides_output = gr.Markdown()

        save_btn.click(
            fn=save_key,
            inputs=[api_key_input, guard_state],
            outputs=[key_status_md, guard_state, api_key_input],
        )
        clear_btn.click(fn=clear_key, inputs=[guard_state], outputs=[key_status_md, guard_state])
        test_btn.click(fn=probe_saved_key, inputs=[guard_state], outputs=[key_status_md, guard_state])
        enhance_btn.click(
            fn=enhance_email,
            inputs=[email_input, template_dropdown, guard_state],
            outputs=[enhanced_output, enhance_status, guard_state],
        )
        train_btn.click(
            fn=train_email,
            inputs=[example_in, example_out, test_in, guard_state],
            outputs=[trained_output, train_notes, guard_state],
        )
        slides_btn.click(
            fn=create_slides,
            inputs=[topic_input, theme_input, guard_state],
            outputs=[slides_output, guard_state],
        )
        demo.load(fn=refresh_status, inputs=[guard_state], outputs=[key_status_md, guard_state])

    return demo
