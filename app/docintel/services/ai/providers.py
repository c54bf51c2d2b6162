"""
Provider adapters for text generation.

Both OpenAI (chat completions) and Google Gemini (google-genai) are reduced
to one call: system instruction + alternating user/assistant turns (+ an
optional image on the last turn) in, generated text out.
"""

import logging
from typing import Any

from .exceptions import AIServiceError

logger = logging.getLogger(__name__)

OPENAI = "openai"
GEMINI = "gemini"
SUPPORTED_PROVIDERS = (OPENAI, GEMINI)


def create_client(provider: str, api_key: str) -> Any:
    """Instantiate the SDK client for a provider."""
    if provider == OPENAI:
        from openai import OpenAI

        return OpenAI(api_key=api_key)
    if provider == GEMINI:
        from google import genai

        return genai.Client(api_key=api_key)
    raise AIServiceError(
        f"Unknown AI provider '{provider}'. Choose from: {list(SUPPORTED_PROVIDERS)}"
    )


def _openai_generate(
    client: Any,
    model: str,
    system: str | None,
    turns: list[dict[str, str]],
    json_mode: bool,
    image_base64: str | None,
    max_tokens: int | None,
) -> str:
    messages: list[dict[str, Any]] = []
    if system:
        messages.append({"role": "system", "content": system})
    for i, turn in enumerate(turns):
        is_last = i == len(turns) - 1
        if is_last and image_base64:
            messages.append({
                "role": turn["role"],
                "content": [
                    {"type": "text", "text": turn["content"]},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:image/png;base64,{image_base64}"},
                    },
                ],
            })
        else:
            messages.append({"role": turn["role"], "content": turn["content"]})

    kwargs: dict[str, Any] = {"model": model, "messages": messages}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    if max_tokens:
        kwargs["max_tokens"] = max_tokens

    response = client.chat.completions.create(**kwargs)
    return response.choices[0].message.content or ""


def _gemini_generate(
    client: Any,
    model: str,
    system: str | None,
    turns: list[dict[str, str]],
    json_mode: bool,
    image_base64: str | None,
    max_tokens: int | None,
) -> str:
    import base64

    from google.genai import types

    contents = []
    for i, turn in enumerate(turns):
        parts = [types.Part.from_text(text=turn["content"])]
        if i == len(turns) - 1 and image_base64:
            parts.append(
                types.Part.from_bytes(data=base64.b64decode(image_base64), mime_type="image/png")
            )
        # Gemini calls the assistant side "model"
        role = "model" if turn["role"] == "assistant" else "user"
        contents.append(types.Content(role=role, parts=parts))

    config = types.GenerateContentConfig(
        system_instruction=system,
        response_mime_type="application/json" if json_mode else None,
        max_output_tokens=max_tokens,
    )
    response = client.models.generate_content(model=model, contents=contents, config=config)
    return response.text or ""


def generate_text(
    client: Any,
    provider: str,
    model: str,
    turns: list[dict[str, str]],
    system: str | None = None,
    json_mode: bool = False,
    image_base64: str | None = None,
    max_tokens: int | None = None,
) -> str:
    """
    Run one generation request.

    Args:
        client: SDK client from `create_client`.
        provider: "openai" or "gemini".
        model: Model name for the provider.
        turns: Conversation as {"role": "user"|"assistant", "content": str}.
        system: Optional system instruction.
        json_mode: Ask the model for a JSON object.
        image_base64: Optional PNG attached to the last turn.
        max_tokens: Optional output limit.

    Returns:
        Generated text, stripped.

    Raises:
        AIServiceError: If the request fails or returns nothing.
    """
    if not turns:
        raise AIServiceError("At least one message is required")

    if provider == OPENAI:
        generate = _openai_generate
    elif provider == GEMINI:
        generate = _gemini_generate
    else:
        raise AIServiceError(f"Unknown AI provider '{provider}'")

    try:
        text = generate(client, model, system, turns, json_mode, image_base64, max_tokens)
    except AIServiceError:
        raise
    except Exception as e:
        logger.error("%s request failed (model=%s): %s", provider, model, e)
        raise AIServiceError(f"{provider} request failed: {e}") from e

    text = text.strip()
    if not text:
        raise AIServiceError(f"Empty response from {provider}")
    return text
