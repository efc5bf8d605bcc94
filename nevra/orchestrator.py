"""
Provider Orchestrator - issue a generation request and walk the fallback
ladder on recoverable failures.

The ladder is an explicit state machine:

    ATTEMPTING(provider, standard budget)
        -> RETRYING(provider, aggressive budget)   on a quota rejection
        -> FAILING_OVER(next provider, standard)   on any other recoverable failure,
                                                   or when the retry fails too
        -> TERMINAL                                on a non-recoverable failure, when the
                                                   free-tier default fails, or when no
                                                   provider is left

Every rung is attempted at most once, so a call makes at most
2 + len(failover chain) backend requests.
"""

import logging
import threading
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Tuple

from nevra.budget import truncate
from nevra.errors import GenerationCancelledError, UpstreamError, UpstreamQuotaError
from nevra.extractor import extract
from nevra.providers import AGGRESSIVE_BUDGET_RATIO, DEFAULT_PROVIDERS, FREE_DEFAULT_PROVIDER_ID
from nevra.schemas import (
    Attempt,
    BackendCall,
    BackendPayload,
    GenerationMode,
    GenerationOutcome,
    GenerationRequest,
    ProviderDescriptor,
)
from nevra.system_prompts import build_system_prompt, decorate_prompt


logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = {
    GenerationMode.BUILDER: 8192,
    GenerationMode.TUTOR: 4096,
}

TEMPERATURES = {
    GenerationMode.TUTOR: 0.7,
    GenerationMode.BUILDER: 0.5,
}


class LadderState(str, Enum):
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    FAILING_OVER = "failing_over"
    TERMINAL = "terminal"


class BudgetLevel(str, Enum):
    STANDARD = "standard"
    AGGRESSIVE = "aggressive"


class ChatBackend(Protocol):
    """Anything that can serve one prepared backend call."""

    def complete(self, call: BackendCall) -> BackendPayload:
        ...


class CancellationToken:
    """Cooperative cancellation, checked between ladder attempts."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def next_state(state: LadderState, error: UpstreamError, provider_id: str,
               free_default_id: str = FREE_DEFAULT_PROVIDER_ID) -> LadderState:
    """
    Ladder transition after a failed attempt.

    Args:
        state: State the failed attempt was made in
        error: The failure
        provider_id: Provider that failed
        free_default_id: Id of the free-tier default provider

    Returns:
        The next LadderState. FAILING_OVER means "move to the next provider
        if one is left".
    """
    if not error.recoverable:
        return LadderState.TERMINAL
    if state == LadderState.ATTEMPTING:
        if isinstance(error, UpstreamQuotaError):
            return LadderState.RETRYING
        return LadderState.FAILING_OVER
    if state == LadderState.RETRYING:
        return LadderState.FAILING_OVER
    if provider_id == free_default_id:
        return LadderState.TERMINAL
    return LadderState.FAILING_OVER


class ProviderOrchestrator:
    """Runs generation requests across the provider ladder."""

    def __init__(
        self,
        backend: ChatBackend,
        providers: Iterable[ProviderDescriptor] = DEFAULT_PROVIDERS,
        free_default_id: str = FREE_DEFAULT_PROVIDER_ID,
        max_tokens: Optional[dict] = None,
    ):
        self.backend = backend
        self.providers: List[ProviderDescriptor] = list(providers)
        self.free_default_id = free_default_id
        self.max_tokens = dict(DEFAULT_MAX_TOKENS)
        self.max_tokens.update(max_tokens or {})

    def get_provider(self, provider_id: str) -> ProviderDescriptor:
        for provider in self.providers:
            if provider.id == provider_id:
                return provider
        raise KeyError(f"Unknown provider: {provider_id}")

    def failover_chain(self, primary: ProviderDescriptor, needs_images: bool = False) -> List[ProviderDescriptor]:
        """
        Providers tried after the primary, in preference order.

        Only providers after the primary that support the request's modality
        are included. The free-tier default is always the last rung, and
        nothing comes after it.
        """
        if primary.id == self.free_default_id:
            return []

        index = next(i for i, p in enumerate(self.providers) if p.id == primary.id)
        chain = []
        for provider in self.providers[index + 1:]:
            if needs_images and not provider.supports_images:
                continue
            chain.append(provider)
            if provider.id == self.free_default_id:
                return chain

        free_default = next((p for p in self.providers if p.id == self.free_default_id), None)
        if free_default is not None and (free_default.supports_images or not needs_images):
            chain.append(free_default)
        return chain

    def plan_ladder(self, request: GenerationRequest) -> Tuple[ProviderDescriptor, List[ProviderDescriptor]]:
        """
        First provider to attempt and the failover chain behind it.

        An image request whose selected provider cannot read images starts
        at the first image-capable rung instead.
        """
        primary = self.get_provider(request.provider)
        needs_images = bool(request.images)
        chain = self.failover_chain(primary, needs_images)
        if needs_images and not primary.supports_images and chain:
            start = chain.pop(0)
            logger.info("Provider %s cannot read images; starting at %s", primary.id, start.id)
            return start, chain
        return primary, chain

    def ladder_length(self, request: GenerationRequest) -> int:
        """Maximum number of backend calls a request can make."""
        _, chain = self.plan_ladder(request)
        return 2 + len(chain)

    def build_call(self, request: GenerationRequest, provider: ProviderDescriptor,
                   budget: BudgetLevel) -> BackendCall:
        ceiling = self._ceiling(provider, budget)
        mode = GenerationMode(request.mode)
        return BackendCall(
            provider=provider,
            system_prompt=build_system_prompt(mode, request.framework, bool(request.images)),
            prompt=decorate_prompt(request.prompt, mode, request.framework),
            history=truncate(request.history, ceiling),
            images=list(request.images),
            mode=mode,
            max_tokens=self.max_tokens[mode],
            temperature=TEMPERATURES[mode],
        )

    @staticmethod
    def _ceiling(provider: ProviderDescriptor, budget: BudgetLevel) -> int:
        if budget == BudgetLevel.AGGRESSIVE:
            return int(provider.prompt_token_ceiling * AGGRESSIVE_BUDGET_RATIO)
        return provider.prompt_token_ceiling

    def generate(self, request: GenerationRequest,
                 cancel_token: Optional[CancellationToken] = None) -> GenerationOutcome:
        """
        Generate a response, retrying and failing over per the ladder.

        Args:
            request: The generation request
            cancel_token: Optional token checked before every attempt

        Returns:
            GenerationOutcome naming the provider that served the response

        Raises:
            UpstreamError: The last failure once the ladder is exhausted;
                its ``attempts`` lists every attempt made
            GenerationCancelledError: If the token was cancelled
        """
        primary = self.get_provider(request.provider)
        start, chain = self.plan_ladder(request)
        attempts: List[Attempt] = []

        state = LadderState.ATTEMPTING
        provider, budget = start, BudgetLevel.STANDARD
        last_error: Optional[UpstreamError] = None

        while state != LadderState.TERMINAL:
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = GenerationCancelledError()
                cancelled.attempts = attempts
                raise cancelled

            call = self.build_call(request, provider, budget)
            ceiling = self._ceiling(provider, budget)
            logger.info(
                "Attempt %d: provider=%s budget=%s ceiling=%d history=%d/%d turns",
                len(attempts) + 1, provider.id, budget.value, ceiling,
                len(call.history), len(request.history),
            )

            try:
                payload = self.backend.complete(call)
            except UpstreamError as e:
                attempts.append(Attempt(
                    provider=provider.id, budget=budget.value, ceiling=ceiling,
                    outcome=e.category, detail=str(e),
                ))
                last_error = e
                state = next_state(state, e, provider.id, self.free_default_id)
                logger.warning("Provider %s failed (%s): %s -> %s", provider.id, e.category, e, state.value)

                if state == LadderState.RETRYING:
                    budget = BudgetLevel.AGGRESSIVE
                elif state == LadderState.FAILING_OVER:
                    if not chain:
                        state = LadderState.TERMINAL
                    else:
                        provider, budget = chain.pop(0), BudgetLevel.STANDARD
                continue

            attempts.append(Attempt(provider=provider.id, budget=budget.value, ceiling=ceiling, outcome="ok"))
            if provider.id != primary.id:
                logger.info("Served by fallback provider %s (requested %s)", provider.id, primary.id)
            return GenerationOutcome(
                result=extract(payload, request.mode),
                provider=provider.id,
                requested_provider=primary.id,
                attempts=attempts,
            )

        logger.error("Fallback ladder exhausted after %d attempt(s)", len(attempts))
        last_error.attempts = attempts
        raise last_error


# Global orchestrator instance
_orchestrator: Optional[ProviderOrchestrator] = None


def get_orchestrator() -> ProviderOrchestrator:
    """Get the global orchestrator, wired to the configured backend."""
    global _orchestrator
    if _orchestrator is None:
        from nevra.config import get_config

        config = get_config()
        if config.backend == "echo":
            from nevra.llm.echo_client import EchoClient
            backend = EchoClient()
        else:
            from nevra.llm.openrouter_client import OpenRouterClient
            backend = OpenRouterClient()

        _orchestrator = ProviderOrchestrator(
            backend,
            max_tokens={mode: config.max_tokens_for(mode.value) for mode in GenerationMode},
        )
    return _orchestrator
