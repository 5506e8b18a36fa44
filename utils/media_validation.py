"""Validation helpers for uploaded screenshots and voice recordings."""

from fastapi import HTTPException, UploadFile

ALLOWED_IMAGE_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/bmp",
}

ALLOWED_AUDIO_TYPES = {
    "audio/wav",
    "audio/x-wav",
    "audio/webm",
    "audio/mpeg",
    "audio/mp3",
    "audio/mp4",
    "audio/aac",
    "audio/ogg",
    "audio/opus",
    "audio/flac",
    "audio/x-flac",
}


def normalize_content_type(content_type: str | None) -> str:
    """Lower-case a content type and strip parameters such as `;codecs=opus`."""
    return (content_type or "").lower().split(";", 1)[0].strip()


async def read_image_bytes(image_file: UploadFile) -> tuple[bytes, str]:
    """Read an uploaded screenshot, returning its bytes and MIME type.

    A missing content type is treated as PNG, the format screenshots are
    captured in.
    """
    content_type = normalize_content_type(image_file.content_type) or "image/png"
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=415, detail=f"Unsupported image content type: {image_file.content_type}")
    image_bytes = await image_file.read()
    if not image_bytes:
        raise HTTPException(status_code=400, detail="Uploaded image is empty.")
    return image_bytes, content_type


def validate_audio_file(audio_file: UploadFile) -> str:
    """Validate that the uploaded audio is a supported format and return its MIME type.

    The browser recorder sends `audio/webm;codecs=opus`; other containers
    (wav, mp3, mp4, ogg, flac) are accepted as well. When the content type
    is missing, the filename extension decides.
    """
    content_type = normalize_content_type(audio_file.content_type)
    if content_type:
        if content_type not in ALLOWED_AUDIO_TYPES:
            raise HTTPException(status_code=415, detail=f"Unsupported audio content type: {audio_file.content_type}")
        return content_type

    filename = (audio_file.filename or "").lower()
    for ext, mime in ((".wav", "audio/wav"), (".webm", "audio/webm"), (".mp3", "audio/mpeg"), (".mp4", "audio/mp4"),
                      (".m4a", "audio/aac"), (".ogg", "audio/ogg"), (".flac", "audio/flac")):
        if filename.endswith(ext):
            return mime
    raise HTTPException(status_code=415, detail="Unsupported or missing audio content type.")


async def read_audio_bytes(audio_file: UploadFile) -> tuple[bytes, str]:
    """Read validated audio bytes, ensuring the upload is not empty."""
    mime_type = validate_audio_file(audio_file)
    audio_bytes = await audio_file.read()
    if not audio_bytes:
        raise HTTPException(status_code=400, detail="Uploaded audio file is empty.")
    return audio_bytes, mime_type
