"""
Model-chain client for notation interpretation.

Models are tried in order (LLM_PRIMARY_MODEL, then LLM_FALLBACK_MODEL). Only the
first model gets the provider-level JSON response format; later ones are asked
for JSON in the prompt, since not every provider accepts response_format.
"""
import logging
from typing import Optional, Sequence

import litellm

from panelops.config import LLM_FALLBACK_MODEL, LLM_PRIMARY_MODEL

logger = logging.getLogger("panelops-ai")

litellm.set_verbose = False

_JSON_ONLY = "Respond with a single valid JSON object and nothing else."


def _with_json_instruction(messages: list) -> list:
    copied = [dict(m) for m in messages]
    if copied and copied[0].get("role") == "system":
        copied[0]["content"] = f"{copied[0]['content']}\n\n{_JSON_ONLY}"
        return copied
    return [{"role": "system", "content": _JSON_ONLY}] + copied


class LLMClient:
    """Calls each configured model in turn until one answers."""

    def __init__(self, models: Optional[Sequence[str]] = None):
        chain = models if models is not None else (LLM_PRIMARY_MODEL, LLM_FALLBACK_MODEL)
        # Blank and repeated model names are skipped
        self.models = [m for i, m in enumerate(chain) if m and m not in chain[:i]]

    async def complete(
        self,
        messages: list,
        temperature: float = 0.1,
        json_mode: bool = False,
        max_tokens: int = 1024,
    ) -> str:
        """Content of the first successful completion; RuntimeError when every model fails."""
        last_error: Optional[Exception] = None
        for position, model in enumerate(self.models):
            request = {"model": model, "temperature": temperature, "max_tokens": max_tokens}
            if json_mode and position == 0:
                request["messages"] = messages
                request["response_format"] = {"type": "json_object"}
            elif json_mode:
                request["messages"] = _with_json_instruction(messages)
            else:
                request["messages"] = messages

            try:
                response = await litellm.acompletion(**request)
            except litellm.RateLimitError as e:
                logger.warning(f"{model} rate limited, trying next model")
                last_error = e
            except litellm.AuthenticationError as e:
                logger.warning(f"{model} rejected credentials, trying next model")
                last_error = e
            except Exception as e:
                logger.warning(f"{model} failed ({type(e).__name__}: {e})")
                last_error = e
            else:
                return response.choices[0].message.content

        logger.error(f"No model produced an answer ({len(self.models)} tried)")
        raise RuntimeError(f"All LLM providers failed. Last error: {last_error}")
