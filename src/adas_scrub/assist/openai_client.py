"""Client construction for the estimate assist.

Azure OpenAI wins when ``AZURE_OPENAI_API_KEY`` and an endpoint
(``AZURE_OPENAI_ENDPOINT`` or ``AZURE_OPENAI_BASE_URL``) are both set;
otherwise ``OPENAI_API_KEY`` is used.
"""

import logging
import os
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_API_VERSION = "2024-02-15-preview"


def _azure_credentials() -> Optional[Tuple[str, str]]:
    api_key = os.getenv("AZURE_OPENAI_API_KEY")
    endpoint = os.getenv("AZURE_OPENAI_ENDPOINT") or os.getenv("AZURE_OPENAI_BASE_URL")
    if not api_key or not endpoint:
        return None
    # The SDK appends /openai itself
    endpoint = endpoint.rstrip("/")
    for suffix in ("/openai/v1", "/openai"):
        if endpoint.endswith(suffix):
            endpoint = endpoint[: -len(suffix)]
            break
    return api_key, endpoint


def has_openai_credentials() -> bool:
    return _azure_credentials() is not None or bool(os.getenv("OPENAI_API_KEY"))


def get_openai_client(timeout: Optional[float] = None):
    """Build an ``AzureOpenAI`` or ``OpenAI`` client with retries disabled.

    Raises:
        ValueError: when neither credential set is present.
    """
    options = {"max_retries": 0}
    if timeout is not None:
        options["timeout"] = timeout

    azure = _azure_credentials()
    if azure is not None:
        from openai import AzureOpenAI

        api_key, endpoint = azure
        logger.debug(f"Assist using Azure OpenAI at {endpoint}")
        return AzureOpenAI(
            api_key=api_key,
            api_version=os.getenv("AZURE_OPENAI_API_VERSION", DEFAULT_API_VERSION),
            azure_endpoint=endpoint,
            **options,
        )

    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        from openai import OpenAI

        logger.debug("Assist using OpenAI")
        return OpenAI(api_key=api_key, **options)

    raise ValueError(
        "No OpenAI credentials found: set OPENAI_API_KEY, or AZURE_OPENAI_API_KEY "
        "with AZURE_OPENAI_ENDPOINT"
    )
