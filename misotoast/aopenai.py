import os

import openai


DEFAULT_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4-turbo-preview")
TIMEOUT = 60 * 2


def openai_client_factory(token: str | None = None) -> openai.AsyncClient:
    token = os.environ.get("OPENAI_API_KEY") if token is None else token
    return openai.AsyncClient(api_key=token, timeout=TIMEOUT)


def strip_fences(text: str) -> str:
    """Drop a markdown code fence wrapped around a JSON reply."""
    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]
    return text.strip()


async def quick_chat(
    msg: str,
    *,
    system: str | None = None,
    openai_client: openai.AsyncClient | None = None,
    model: str | None = None,
) -> str:
    openai_client = openai_client_factory() if openai_client is None else openai_client
    model = DEFAULT_MODEL if model is None else model
    messages: list[dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": msg})
    resp = await openai_client.chat.completions.create(
        model=model,
        messages=messages,  # pyright: ignore[reportArgumentType]
    )
    ans = resp.choices[0].message.content or ""
    return ans.strip()
