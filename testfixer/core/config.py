"""
Configuration
=============
Loads environment variables from .env file using python-dotenv.

Environment Variables:
    CIRCLE_CI_TOKEN           — CircleCI personal API token (test-result source)
    GITHUB_TOKEN              — Required for reading files and opening pull requests
    GITHUB_OWNER / GITHUB_REPO — Repository the failing tests live in
    OPENAI_API_KEY            — Generative backend key (OPENAI_TOKEN accepted too)
    OPENAI_MODEL              — Chat model used for AI fixes (default: gpt-4)
    OPENAI_BASE_URL           — OpenAI-compatible endpoint (default: api.openai.com)
    FIX_CONFIDENCE_THRESHOLD  — Classifier confidence below which no fix is attempted (default: 0.5)
    HTTP_TIMEOUT_SECONDS      — Timeout for every outbound HTTP call (default: 30)
    LOG_DIR                   — Directory for the daily log file (default: logs)

Confidence Threshold:
    The threshold gates dispatch, not strategy output. A failure classified
    below it is reported as "Low confidence" without any strategy being run.
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()

CIRCLE_CI_TOKEN = os.getenv("CIRCLE_CI_TOKEN", "")
GITHUB_TOKEN = os.getenv("GITHUB_TOKEN", "")
GITHUB_OWNER = os.getenv("GITHUB_OWNER", "")
GITHUB_REPO = os.getenv("GITHUB_REPO", "")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY") or os.getenv("OPENAI_TOKEN", "")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")

FIX_CONFIDENCE_THRESHOLD = float(os.getenv("FIX_CONFIDENCE_THRESHOLD", 0.5))

# Applies to CircleCI, GitHub and OpenAI calls alike
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 30))

LOG_DIR = os.getenv("LOG_DIR", "logs")


@dataclass
class FixerConfig:
    """Per-run settings for the orchestrator."""
    circleci_token: str = ""
    github_token: str = ""
    github_owner: str = ""
    github_repo: str = ""
    openai_api_key: str = ""
    openai_model: str = "gpt-4"
    openai_base_url: str = "https://api.openai.com/v1"
    fix_confidence_threshold: float = 0.5

    @classmethod
    def from_env(cls) -> "FixerConfig":
        return cls(
            circleci_token=CIRCLE_CI_TOKEN,
            github_token=GITHUB_TOKEN,
            github_owner=GITHUB_OWNER,
            github_repo=GITHUB_REPO,
            openai_api_key=OPENAI_API_KEY,
            openai_model=OPENAI_MODEL,
            openai_base_url=OPENAI_BASE_URL,
            fix_confidence_threshold=FIX_CONFIDENCE_THRESHOLD,
        )
