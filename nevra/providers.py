"""
Static provider list, ordered by preference.

The orchestrator walks this list when a provider fails with a recoverable
error. The free-tier default is always the last rung of a ladder.
"""

from typing import Dict, List, Tuple

from nevra.schemas import ProviderDescriptor


FREE_DEFAULT_PROVIDER_ID = "deepseek"

# Fraction of a provider's ceiling used when retrying after a quota rejection
AGGRESSIVE_BUDGET_RATIO = 0.75

# Usage units charged per served request
REQUEST_COST = 10


DEFAULT_PROVIDERS: Tuple[ProviderDescriptor, ...] = (
    ProviderDescriptor(
        id="anthropic",
        display_name="GPT OSS 20B",
        model="openai/gpt-oss-20b:free",
        prompt_token_ceiling=2000,
        supports_images=False,
        cost_class="credit",
        timeout_seconds=45.0,
    ),
    ProviderDescriptor(
        id="openai",
        display_name="GPT-5-Nano",
        model="openai/gpt-5-nano",
        prompt_token_ceiling=2000,
        supports_images=True,
        cost_class="credit",
        timeout_seconds=45.0,
    ),
    ProviderDescriptor(
        id="gemini",
        display_name="GPT OSS 20B (alt)",
        model="openai/gpt-oss-20b:free",
        prompt_token_ceiling=2000,
        supports_images=False,
        cost_class="credit",
        timeout_seconds=45.0,
    ),
    ProviderDescriptor(
        id=FREE_DEFAULT_PROVIDER_ID,
        display_name="Mistral Devstral",
        model="mistralai/devstral-2512:free",
        prompt_token_ceiling=6000,
        supports_images=True,
        cost_class="free",
        timeout_seconds=90.0,
    ),
)

PROVIDER_IDS: Tuple[str, ...] = tuple(p.id for p in DEFAULT_PROVIDERS)


def providers_by_id(providers=DEFAULT_PROVIDERS) -> Dict[str, ProviderDescriptor]:
    return {p.id: p for p in providers}


def get_provider(provider_id: str, providers=DEFAULT_PROVIDERS) -> ProviderDescriptor:
    """
    Look up a provider descriptor.

    Raises:
        KeyError: If the id is unknown
    """
    for provider in providers:
        if provider.id == provider_id:
            return provider
    raise KeyError(f"Unknown provider: {provider_id}")


def list_providers(providers=DEFAULT_PROVIDERS) -> List[ProviderDescriptor]:
    return list(providers)
