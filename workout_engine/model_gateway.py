"""
Cost-aware client for the external generative model.

Every call goes through the same pipeline: cache lookup, rate limit, budget
reservation, provider call with bounded retries, JSON parsing and shape
validation. Each invocation leaves exactly one audit record, and failures come
back as AIError values instead of exceptions.
"""

import hashlib
import json
import random
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

import anthropic
from pydantic import ValidationError

from workout_engine.audit_log import AuditRecord
from workout_engine.logging_config import get_logger


logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5"

FENCE_START_RE = re.compile(r"^```\w*\n?")
FENCE_END_RE = re.compile(r"\n?```$")


@dataclass
class AIRequest:
    request_type: str
    user_message: str
    system_prompt: str = ""
    user_id: str = "anonymous"
    max_tokens: int = 4096
    temperature: float = 0.7
    response_schema: object = None


@dataclass
class AIResponse:
    payload: dict
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    from_cache: bool = False
    latency_ms: int = 0
    request_id: str = ""
    attempts: int = 0


@dataclass
class AIError:
    code: str
    message: str
    retryable: bool = False
    attempts: int = 0
    request_id: str = ""


@dataclass
class ProviderResult:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


class ProviderError(Exception):
    """Failure from the provider call, tagged with whether a retry may help."""

    def __init__(self, code, message, retryable=False, status_code=None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.retryable = retryable
        self.status_code = status_code


class AnthropicProvider:
    """Messages API adapter. Retries are left to the gateway."""

    def __init__(self, api_key, model=DEFAULT_MODEL, timeout=60, client=None):
        """
        Initialize the provider.

        Args:
            api_key: Anthropic API key
            model: Claude model to use
            timeout: Default client timeout in seconds
            client: Pre-built anthropic.Anthropic client (tests inject a mock)
        """
        self.client = client or anthropic.Anthropic(api_key=api_key, timeout=timeout, max_retries=0)
        self.model = model

    def complete(self, system, prompt, max_tokens, temperature, timeout):
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout,
        }
        if system:
            kwargs["system"] = system

        try:
            message = self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as exc:
            raise ProviderError("TIMEOUT", str(exc) or "Provider timed out", retryable=True) from exc
        except anthropic.APIConnectionError as exc:
            raise ProviderError("CONNECTION_ERROR", str(exc), retryable=True) from exc
        except anthropic.RateLimitError as exc:
            raise ProviderError("PROVIDER_RATE_LIMITED", str(exc), retryable=True, status_code=429) from exc
        except anthropic.APIStatusError as exc:
            status = exc.status_code
            retryable = status >= 500 or status in (408, 409)
            raise ProviderError(f"HTTP_{status}", str(exc), retryable=retryable, status_code=status) from exc
        except anthropic.APIError as exc:
            raise ProviderError("PROVIDER_ERROR", str(exc) or type(exc).__name__, retryable=False) from exc

        text = ""
        if message.content:
            text = getattr(message.content[0], "text", "") or ""
        usage = getattr(message, "usage", None)
        return ProviderResult(
            text=text,
            input_tokens=getattr(usage, "input_tokens", 0) or 0,
            output_tokens=getattr(usage, "output_tokens", 0) or 0,
            model=getattr(message, "model", self.model) or self.model,
        )


def _collapse(text):
    return re.sub(r"\s+", " ", str(text or "")).strip()


def request_cache_key(request, model):
    """Stable sha256 of the normalized request."""
    normalized = {
        "model": model,
        "request_type": request.request_type,
        "system": _collapse(request.system_prompt),
        "prompt": _collapse(request.user_message),
        "max_tokens": request.max_tokens,
        "temperature": round(float(request.temperature), 3),
    }
    encoded = json.dumps(normalized, sort_keys=True).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _hash_text(text):
    return hashlib.sha256(str(text).encode("utf-8")).hexdigest()


def parse_json_payload(text):
    """
    Extract a JSON object from model output, tolerating markdown fences.

    Raises:
        ValueError: when no JSON object can be decoded
    """
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        cleaned = FENCE_START_RE.sub("", cleaned)
        cleaned = FENCE_END_RE.sub("", cleaned)
        cleaned = cleaned.strip()

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError:
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("Response did not contain a JSON object")
        try:
            payload = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as exc:
            raise ValueError(f"Malformed JSON in response: {exc}") from exc

    if not isinstance(payload, dict):
        raise ValueError("Response JSON is not an object")
    return payload


def _estimate_input_tokens(request):
    # Roughly four characters per token for English prompts.
    return (len(request.system_prompt or "") + len(request.user_message or "")) // 4 + 1


@dataclass
class _CallState:
    attempts: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0
    response_text: str = ""
    errors: list = field(default_factory=list)


class ModelGateway:
    """Stateful client wrapping the provider with cache, limits, retries and audit."""

    def __init__(
        self,
        provider,
        cache,
        rate_limiter,
        cost_tracker,
        audit_log,
        model=DEFAULT_MODEL,
        max_attempts=3,
        backoff_base_seconds=1.0,
        backoff_max_seconds=8.0,
        attempt_timeout_seconds=60.0,
        total_timeout_seconds=120.0,
        rate_limit_wait_seconds=0.0,
        clock=time.monotonic,
        sleep=time.sleep,
        jitter=random.random,
    ):
        self.provider = provider
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.cost_tracker = cost_tracker
        self.audit_log = audit_log
        self.model = model
        self.max_attempts = max(1, int(max_attempts))
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.attempt_timeout_seconds = attempt_timeout_seconds
        self.total_timeout_seconds = total_timeout_seconds
        self.rate_limit_wait_seconds = rate_limit_wait_seconds
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter

    def complete(self, request):
        """
        Run one request through the gateway pipeline.

        Returns:
            AIResponse on success (possibly from cache), AIError otherwise
        """
        request_id = uuid.uuid4().hex
        started = self._clock()
        key = request_cache_key(request, self.model)

        cached = self.cache.get(key)
        if cached is not None:
            response = replace(
                cached,
                from_cache=True,
                cost_usd=0.0,
                attempts=0,
                request_id=request_id,
                latency_ms=self._elapsed_ms(started),
            )
            self._audit(request, request_id, key, "cache_hit", started, response=response)
            return response

        if not self.rate_limiter.acquire(timeout=self.rate_limit_wait_seconds):
            error = AIError("RATE_LIMITED", "Rate limit reached; try again shortly", request_id=request_id)
            self._audit(request, request_id, key, "rate_limited", started, error=error)
            return error

        estimate = self.cost_tracker.estimate_cost(
            self.model, _estimate_input_tokens(request), request.max_tokens
        )
        reservation = self.cost_tracker.try_reserve(request.user_id, estimate)
        if reservation is None:
            error = AIError("BUDGET_EXCEEDED", "Spend budget for this window is exhausted", request_id=request_id)
            self._audit(request, request_id, key, "budget_exceeded", started, error=error)
            return error

        state = _CallState()
        try:
            outcome = self._call_with_retries(request, started, state)
        except Exception as exc:
            logger.exception("Unexpected provider failure", extra={"ctx_request_id": request_id})
            outcome = AIError("PROVIDER_FAILURE", f"{type(exc).__name__}: {exc}", retryable=False)
        finally:
            self.cost_tracker.commit(reservation, state.cost_usd)

        if isinstance(outcome, AIError):
            outcome.request_id = request_id
            outcome.attempts = state.attempts
            self._audit(request, request_id, key, "error", started, error=outcome, state=state)
            return outcome

        response = AIResponse(
            payload=outcome,
            model=self.model,
            input_tokens=state.input_tokens,
            output_tokens=state.output_tokens,
            cost_usd=round(state.cost_usd, 8),
            from_cache=False,
            latency_ms=self._elapsed_ms(started),
            request_id=request_id,
            attempts=state.attempts,
        )
        self.cache.put(key, response, tokens=state.input_tokens + state.output_tokens)
        self._audit(request, request_id, key, "success", started, response=response, state=state)
        return response

    def _call_with_retries(self, request, started, state):
        last_error = None
        for attempt in range(1, self.max_attempts + 1):
            remaining = self.total_timeout_seconds - (self._clock() - started)
            if remaining <= 0:
                last_error = AIError("TIMEOUT", "Call time budget exhausted before attempt")
                break

            state.attempts = attempt
            try:
                result = self.provider.complete(
                    request.system_prompt,
                    request.user_message,
                    request.max_tokens,
                    request.temperature,
                    min(self.attempt_timeout_seconds, remaining),
                )
            except ProviderError as exc:
                last_error = AIError(exc.code, exc.message, retryable=exc.retryable)
                state.errors.append(exc.code)
                logger.warning(
                    "Provider call failed",
                    extra={"ctx_attempt": attempt, "ctx_code": exc.code, "ctx_retryable": exc.retryable},
                )
                if not exc.retryable:
                    return AIError(exc.code, exc.message, retryable=False)
            else:
                state.input_tokens += result.input_tokens
                state.output_tokens += result.output_tokens
                state.cost_usd += self.cost_tracker.estimate_cost(
                    self.model, result.input_tokens, result.output_tokens
                )
                state.response_text = result.text

                try:
                    payload = parse_json_payload(result.text)
                except ValueError as exc:
                    last_error = AIError("INVALID_JSON", str(exc), retryable=True)
                    state.errors.append("INVALID_JSON")
                    logger.warning("Model returned unparseable JSON", extra={"ctx_attempt": attempt})
                else:
                    return self._check_shape(request, payload)

            if attempt >= self.max_attempts:
                break
            delay = self._backoff(attempt)
            if self._clock() - started + delay >= self.total_timeout_seconds:
                break
            self._sleep(delay)

        detail = last_error.message if last_error else "no attempts made"
        code = last_error.code if last_error else "TIMEOUT"
        return AIError(
            "RETRIES_EXHAUSTED",
            f"Gave up after {state.attempts} attempt(s); last error {code}: {detail}",
            retryable=False,
        )

    def _check_shape(self, request, payload):
        schema = request.response_schema
        if schema is None:
            return payload
        try:
            return schema.model_validate(payload).model_dump()
        except ValidationError as exc:
            logger.warning(
                "Model JSON failed shape validation",
                extra={"ctx_errors": exc.error_count(), "ctx_request_type": request.request_type},
            )
            return AIError("INVALID_SHAPE", f"Response JSON has the wrong shape: {exc.error_count()} error(s)")

    def _backoff(self, attempt):
        """Exponential backoff with equal jitter."""
        delay = min(self.backoff_max_seconds, self.backoff_base_seconds * (2 ** (attempt - 1)))
        return delay / 2.0 + self._jitter() * delay / 2.0

    def _elapsed_ms(self, started):
        return int(round((self._clock() - started) * 1000))

    def _audit(self, request, request_id, key, outcome, started, response=None, error=None, state=None):
        state = state or _CallState()
        if response is not None:
            response_hash = _hash_text(json.dumps(response.payload, sort_keys=True, default=str))
        elif state.response_text:
            response_hash = _hash_text(state.response_text)
        else:
            response_hash = ""

        record = AuditRecord(
            request_id=request_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(request.user_id or "anonymous"),
            request_type=request.request_type,
            model=self.model,
            request_hash=key,
            response_hash=response_hash,
            from_cache=bool(response is not None and response.from_cache),
            outcome=outcome,
            error_code=error.code if error is not None else "",
            attempts=state.attempts,
            input_tokens=state.input_tokens,
            output_tokens=state.output_tokens,
            cost_usd=round(state.cost_usd, 8),
            latency_ms=self._elapsed_ms(started),
        )
        self.audit_log.append(record)
        logger.info(
            "Model gateway call",
            extra={
                "ctx_request_id": request_id,
                "ctx_outcome": outcome,
                "ctx_error_code": record.error_code,
                "ctx_attempts": record.attempts,
                "ctx_cost_usd": record.cost_usd,
                "ctx_latency_ms": record.latency_ms,
            },
        )

    def usage_summary(self, user_id=None):
        return {
            "cost": self.cost_tracker.summary(user_id),
            "cache": self.cache.stats(),
            "rate_limiter": self.rate_limiter.state(),
            "audit": self.audit_log.summary(),
        }
