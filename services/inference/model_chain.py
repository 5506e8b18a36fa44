"""Model priority tables and fallback chain selection."""

from typing import List, Optional, Sequence

# Ordered from most capable to most available. When a model fails
# (rate limit, error), the next one in the table is tried.
MODEL_FALLBACK_ORDER: List[str] = [
    "gpt-5",
    "gpt-5-mini",
    "gpt-4.1",
    "gpt-4.1-mini",
]

TRANSCRIPTION_MODEL_ORDER: List[str] = [
    "gpt-4o-transcribe",
    "gpt-4o-mini-transcribe",
    "whisper-1",
]

DEFAULT_MODEL = MODEL_FALLBACK_ORDER[0]
DEFAULT_TRANSCRIPTION_MODEL = TRANSCRIPTION_MODEL_ORDER[0]

MODEL_DISPLAY_NAMES = {
    "gpt-5": "GPT-5",
    "gpt-5-mini": "GPT-5 mini",
    "gpt-4.1": "GPT-4.1",
    "gpt-4.1-mini": "GPT-4.1 mini",
    "gpt-4o-transcribe": "GPT-4o Transcribe",
    "gpt-4o-mini-transcribe": "GPT-4o mini Transcribe",
    "whisper-1": "Whisper",
}


def chain_from(preferred: Optional[str], table: Sequence[str] = MODEL_FALLBACK_ORDER) -> List[str]:
    """Return the fallback chain starting at `preferred`.

    Models ranked above the preferred one are skipped. An unknown model
    starts the chain from the top of the table.
    """
    try:
        start = list(table).index(preferred)
    except ValueError:
        return list(table)
    return list(table[start:])


def display_name(model_id: str) -> str:
    return MODEL_DISPLAY_NAMES.get(model_id, model_id)
