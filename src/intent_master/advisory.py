"""Advisory oracle port, OpenAI adapter and the analyzer/reviewer/consensus protocol."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from openai import AsyncOpenAI, OpenAIError

from .analysis import AnalysisSnapshot
from .decision import Decision, decision_from_text, reconcile_decisions
from .errors import AdvisoryUnavailable
from .prompts import build_consensus_prompt, build_initial_prompt, build_review_prompt
from .specifics import Specifics

if TYPE_CHECKING:
    from .utils.config import OracleConfig

LOGGER = logging.getLogger(__name__)

DEFAULT_API_KEY_ENV = "OPENAI_API_KEY"


class AdvisoryOracle(Protocol):
    """Port for an external text-generation service."""

    async def complete(self, prompt: str) -> str:
        """Return the raw reply text; raise AdvisoryUnavailable on failure."""


def resolve_api_key(passed_key: str | None = None, env_var: str = DEFAULT_API_KEY_ENV) -> str | None:
    """Priority: explicit argument > environment variable."""

    if passed_key and passed_key.strip():
        return passed_key.strip()
    key = os.environ.get(env_var, "")
    return key.strip() or None


@dataclass(slots=True)
class OpenAIAdvisoryOracle:
    """Chat-completions backed oracle asking for a single JSON object."""

    model: str
    api_key: str | None = None
    api_key_env: str = DEFAULT_API_KEY_ENV
    base_url: str | None = None
    temperature: float = 0.2
    _client: AsyncOpenAI | None = field(default=None, init=False, repr=False)

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            key = resolve_api_key(self.api_key, self.api_key_env)
            if not key:
                raise AdvisoryUnavailable(f"{self.api_key_env} not found (arg/env).")
            self._client = AsyncOpenAI(api_key=key, base_url=self.base_url)
        return self._client

    async def complete(self, prompt: str) -> str:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            raise AdvisoryUnavailable(f"Oracle '{self.model}' request failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise AdvisoryUnavailable(f"Oracle '{self.model}' returned an empty reply.")
        return content.strip()


@dataclass(frozen=True, slots=True)
class DecisionResolution:
    """Final decision, the raw text it came from, and which protocol steps ran."""

    decision: Decision
    raw_text: str
    steps: tuple[str, ...]


async def resolve_decision(
    snapshot: AnalysisSnapshot,
    specifics: Specifics,
    primary: AdvisoryOracle,
    reviewer: AdvisoryOracle | None = None,
) -> DecisionResolution:
    """Run the analyzer → reviewer → consensus protocol.

    A primary failure propagates. Without a reviewer, or when the review
    fails, the primary's solo decision is used. When the consensus query
    fails, the initial and review decisions are reconciled locally.
    """

    initial_text = await primary.complete(build_initial_prompt(snapshot, specifics))
    initial = decision_from_text(initial_text)

    if reviewer is None:
        return DecisionResolution(decision=initial, raw_text=initial_text, steps=("initial",))

    try:
        review_text = await reviewer.complete(build_review_prompt(snapshot, specifics, initial))
    except AdvisoryUnavailable as exc:
        LOGGER.warning("advisory_review_failed", extra={"error": exc.message})
        return DecisionResolution(decision=initial, raw_text=initial_text, steps=("initial",))
    review = decision_from_text(review_text)

    try:
        consensus_text = await primary.complete(build_consensus_prompt(specifics, initial, review))
    except AdvisoryUnavailable as exc:
        LOGGER.warning("advisory_consensus_failed", extra={"error": exc.message})
        reconciled = reconcile_decisions(initial, review)
        return DecisionResolution(
            decision=reconciled,
            raw_text=review_text,
            steps=("initial", "review", "local_reconcile"),
        )

    consensus = decision_from_text(consensus_text)
    return DecisionResolution(
        decision=reconcile_decisions(consensus, review),
        raw_text=consensus_text,
        steps=("initial", "review", "consensus"),
    )


def oracles_from_config(config: OracleConfig) -> tuple[AdvisoryOracle | None, AdvisoryOracle | None]:
    """Build the ``(primary, reviewer)`` pair described by an oracle config."""

    if not config.enabled:
        return None, None
    primary = OpenAIAdvisoryOracle(
        model=config.primary_model,
        api_key_env=config.api_key_env,
        base_url=config.base_url,
        temperature=config.temperature,
    )
    reviewer = None
    if config.reviewer_model:
        reviewer = OpenAIAdvisoryOracle(
            model=config.reviewer_model,
            api_key_env=config.api_key_env,
            base_url=config.base_url,
            temperature=config.temperature,
        )
    return primary, reviewer
