import sys
import os

# Make the repository root importable so the 'src.*' packages resolve.
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, ROOT_DIR)

from src.aeai.app.assistant_app import AssistantApp  # noqa: E402


if __name__ == "__main__":
    """
    Main entry point for the AE Assistant application.
    """
    app = AssistantApp()
    app.run()
