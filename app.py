"""
Entry point for Draftwise (local runs and Hugging Face Spaces).
Serves the JSON API under /api and the Gradio UI at /.
"""
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from draftwise.api.app import main  # noqa: E402

if __name__ == "__main__":
    main()
