"""GitHub token lookup: config value, then GITHUB_TOKEN, then a gitignored local file."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import List, Optional

LOCAL_TOKENS_FILENAME = "local_secrets.json"
TOKEN_ENV_VAR = "GITHUB_TOKEN"


def local_tokens_path() -> Path:
    override = os.getenv("LOCAL_SECRETS_FILE")
    if override:
        return Path(override).expanduser()
    return Path(__file__).resolve().parents[1] / LOCAL_TOKENS_FILENAME


def read_local_tokens(path: Optional[str | Path] = None) -> List[str]:
    """Non-empty `github_tokens` entries from the local file; [] when it is absent or unreadable."""
    tokens_path = Path(path).expanduser() if path else local_tokens_path()
    try:
        with tokens_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError):
        return []
    raw = data.get("github_tokens") if isinstance(data, dict) else None
    if isinstance(raw, str):
        raw = [raw]
    return [str(token) for token in raw or [] if token]


def resolve_token(configured: Optional[str] = None) -> Optional[str]:
    if configured:
        return configured
    from_env = os.getenv(TOKEN_ENV_VAR)
    if from_env:
        return from_env
    tokens = read_local_tokens()
    return tokens[0] if tokens else None


__all__ = ["LOCAL_TOKENS_FILENAME", "TOKEN_ENV_VAR", "local_tokens_path", "read_local_tokens", "resolve_token"]
