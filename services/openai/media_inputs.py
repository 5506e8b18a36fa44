"""Utilities to build multimodal input payloads for the Responses API."""

import base64
from typing import Any, Dict, List, Optional, Sequence, Tuple

ImagePart = Tuple[bytes, str]


def to_image_data_url(image_bytes: bytes, mime_type: str = "image/png") -> str:
    """Convert raw image bytes into a data URL suitable for vision input."""
    if not image_bytes:
        raise ValueError("Image bytes must not be empty.")
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def text_message(role: str, text: str) -> Dict[str, Any]:
    return {"type": "message", "role": role, "content": [{"type": "input_text", "text": text}]}


def build_inputs(
    system_prompt: Optional[str],
    user_prompt: str,
    *,
    images: Sequence[ImagePart] = (),
    extra_text: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Build the Responses API input array with each modality separated."""
    inputs: List[Dict[str, Any]] = []
    if system_prompt:
        inputs.append(text_message("system", system_prompt))
    inputs.append(text_message("user", user_prompt))
    if extra_text:
        inputs.append(text_message("user", extra_text))
    for image_bytes, mime_type in images:
        inputs.append(
            {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_image", "image_url": to_image_data_url(image_bytes, mime_type)}],
            }
        )
    return inputs
