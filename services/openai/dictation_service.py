"""Audio transcription helper built on OpenAI's transcription models."""

import io
import logging
from typing import Optional

from openai import AsyncOpenAI

from services.inference.errors import EmptyResponseError, MissingCredentialError

LOGGER = logging.getLogger(__name__)

AUDIO_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/mpeg": "mp3",
    "audio/mp3": "mp3",
    "audio/mp4": "mp4",
    "audio/aac": "m4a",
    "audio/ogg": "oga",
    "audio/opus": "ogg",
    "audio/flac": "flac",
    "audio/x-flac": "flac",
}


def filename_for_mime(mime_type: str) -> str:
    """Return an upload filename whose extension matches the audio MIME type.

    Raises:
        ValueError: If the MIME type is not a supported audio format.
    """
    # Strip any MIME parameters (e.g. 'audio/webm;codecs=opus') and normalize
    mime = (mime_type or "").lower().split(";", 1)[0].strip()
    suffix = AUDIO_EXTENSIONS.get(mime)
    if suffix is None:
        raise ValueError(f"Unsupported or unknown audio MIME type: '{mime_type}'")
    return f"voice.{suffix}"


class DictationService:
    """Create text transcriptions from audio recordings."""

    def __init__(self, client: Optional[AsyncOpenAI]) -> None:
        self.client = client

    async def transcribe(self, audio_bytes: bytes, model: str, *, mime_type: str = "audio/webm") -> str:
        """Transcribe audio bytes into text with the given model.

        Raises:
            MissingCredentialError: No OpenAI client is configured.
            EmptyResponseError: The model returned no text.
        """
        if self.client is None:
            raise MissingCredentialError("OpenAI API key is not configured.")
        if not audio_bytes:
            raise ValueError("audio_bytes must contain data for transcription.")

        audio_file = io.BytesIO(audio_bytes)
        audio_file.name = filename_for_mime(mime_type)

        response = await self.client.audio.transcriptions.create(model=model, file=audio_file)
        transcript = (getattr(response, "text", None) or "").strip()
        if not transcript:
            raise EmptyResponseError(f"Transcription with {model} returned no text.")
        LOGGER.info("Transcribed %d audio bytes with %s", len(audio_bytes), model)
        return transcript
