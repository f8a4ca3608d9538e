"""
Ollama LLM integration for local page understanding.
Turns the text of a search-results page into JSON that follows the
extraction schema. Output is parsed leniently (markdown fences, stray prose).
"""

import json
import logging
import re
from typing import Any, Dict, Optional

import httpx
import ollama
from bs4 import BeautifulSoup

from quickcompare.core.settings import LOG_FORMAT, LOG_DATEFMT, OLLAMA_MODEL, OLLAMA_HOST, MAX_PAGE_CHARS
from quickcompare.core.retry_utils import TransientError, PermanentError

logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    datefmt=LOG_DATEFMT
)
logger = logging.getLogger(__name__)

EXTRACTION_SYSTEM_PROMPT = """You are a product data extraction assistant for grocery delivery websites.
You receive the visible text of a search results page and an instruction.
Extract only products that are actually listed on the page. Never invent products or prices.
Return ONLY valid JSON that follows the given schema, no markdown, no explanation."""


def html_to_text(page_html: str, max_chars: int = MAX_PAGE_CHARS) -> str:
    """Reduce an HTML document to its visible text, one text node per line."""
    soup = BeautifulSoup(page_html, "html.parser")

    # Remove elements that never carry product text
    for tag in soup.find_all(["head", "script", "style", "noscript", "svg"]):
        # nested matches are already gone with their parent
        if not tag.decomposed:
            tag.decompose()

    text = soup.get_text(separator="\n", strip=True)
    return text[:max_chars]


def build_page_prompt(instruction: str, page_text: str, target: str) -> str:
    return f"""{instruction}

Page URL: {target}

Page text:
\"\"\"
{page_text}
\"\"\""""


def parse_json_from_llm_output(text: str) -> Optional[Any]:
    """
    Extract JSON from LLM output, handling markdown code blocks.
    """
    # Normalize and remove simple LLM thinking tags
    text = text.strip()
    text = re.sub(r'^<think>[\s\S]*?</think>\s*', '', text)
    text = re.sub(r'^<[^>]+>\s*', '', text)

    # 1) Try to extract JSON from markdown code block
    json_match = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
    candidate = json_match.group(1).strip() if json_match else text

    def try_parse(s: str) -> Optional[Any]:
        try:
            return json.loads(s)
        except ValueError:
            return None

    parsed = try_parse(candidate)
    if parsed is not None:
        return parsed

    # 2) Walk from the first brace/bracket to its matching close
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        if start == -1:
            continue
        depth = 0
        for i in range(start, len(text)):
            if text[i] == open_ch:
                depth += 1
            elif text[i] == close_ch:
                depth -= 1
                if depth == 0:
                    parsed = try_parse(text[start:i + 1])
                    if parsed is not None:
                        return parsed
                    break

    logger.error("Failed to parse JSON from LLM output (no valid JSON found).")
    logger.info(f"Output (truncated): {text[:500]}")
    return None


def call_ollama(
    prompt: str,
    system_prompt: str,
    json_schema: Optional[Dict[str, Any]] = None,
    client: Optional[ollama.Client] = None,
    model: str = OLLAMA_MODEL
) -> Any:
    """
    Call Ollama and return the parsed JSON answer.

    Args:
        prompt: User prompt
        system_prompt: System context
        json_schema: JSON schema the answer must follow (passed as Ollama's format)
        client: Ollama client; a default one for OLLAMA_HOST is created when omitted

    Raises:
        TransientError: Ollama unreachable, timed out or returned a server error
        PermanentError: the model answered with something that is not JSON
    """
    client = client or ollama.Client(host=OLLAMA_HOST)
    logger.info(f"[OLLAMA] Calling {model} with prompt: {prompt[:100]}")

    try:
        response = client.chat(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": prompt}
            ],
            stream=False,
            format=json_schema or "json",
            options={
                "temperature": 0,  # Deterministic extraction
            }
        )
    except ollama.ResponseError as e:
        if e.status_code >= 500:
            raise TransientError(f"Ollama server error: {e.error}") from e
        raise PermanentError(f"Ollama rejected the request: {e.error}") from e
    except (ConnectionError, httpx.TransportError) as e:
        raise TransientError(f"Ollama unreachable: {e}") from e

    output_text = response['message']['content'].strip()
    logger.info(f"[OLLAMA] Response: {output_text[:300]}")

    json_data = parse_json_from_llm_output(output_text)
    if json_data is None:
        raise PermanentError("Ollama returned a malformed payload")
    return json_data
