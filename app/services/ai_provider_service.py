"""
AI Provider Service - priority/fallback selection over AI providers.

FLOW for every operation:
1. Look up the Redis cache (ai:{operation}:{sha256})
2. Pick candidates: the named provider, or every healthy provider
   (when none is healthy, health is reset and all are tried)
3. Call candidates in priority order until one succeeds
4. Cache the result and record usage (tokens + cost per provider per day)

COST OPTIMIZATION:
- Gemini first (cheapest), then OpenAI, then Claude
- Identical requests within ai_cache_ttl are served from Redis
"""

import hashlib
import json
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from app.core.config import get_settings
from app.core.exceptions import AIProviderError, AllProvidersFailedError
from app.db.redis_client import get_redis
from app.services.ai_providers import AIProvider, build_default_providers

logger = logging.getLogger(__name__)

USAGE_TTL_SECONDS = 30 * 24 * 60 * 60
USAGE_OPERATIONS = ["analysis", "text-analysis", "suggestions", "matching"]


def estimate_tokens(text: str) -> int:
    """Rough estimation: ~4 characters per token."""
    return math.ceil(len(text or "") / 4)


def generate_cache_key(operation: str, text: str, options: Optional[dict] = None) -> str:
    content = text + json.dumps(options or {}, sort_keys=True)
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"ai:{operation}:{digest}"


def _decode(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class AIProviderService:
    """
    Routes AI calls across providers with fallback, caching and usage tracking.

    providers/redis_client are injectable so tests can run against fakes
    and fakeredis.
    """

    def __init__(
        self,
        providers: Optional[List[AIProvider]] = None,
        redis_client=None,
        cache_enabled: Optional[bool] = None,
        cache_ttl: Optional[int] = None,
    ):
        settings = get_settings()
        if providers is None:
            providers = build_default_providers(settings)
        self.providers = sorted(providers, key=lambda p: p.priority)
        self._redis = redis_client
        self.cache_enabled = settings.ai_cache_enabled if cache_enabled is None else cache_enabled
        self.cache_ttl = cache_ttl or settings.ai_cache_ttl

        logger.info("Initialized %d AI providers", len(self.providers))
        for provider in self.providers:
            logger.info(
                "  %s: %s (priority %d, $%s/1k tokens)",
                provider.name,
                "healthy" if provider.is_healthy else "unavailable",
                provider.priority,
                provider.cost_per_token,
            )

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis()
        return self._redis

    # ============================================================
    # OPERATIONS
    # ============================================================

    def analyze_resume(self, content: str, file_name: str, provider: Optional[str] = None) -> dict:
        return self._execute(
            operation="analysis",
            cache_text=content,
            cache_options={"file_name": file_name, "provider": provider},
            provider=provider,
            call=lambda p: p.analyze(content, {"file_name": file_name}),
            usage_text=content,
        )

    def analyze_text(
        self,
        prompt: str,
        provider: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> dict:
        return self._execute(
            operation="text-analysis",
            cache_text=prompt,
            cache_options={"provider": provider, "max_tokens": max_tokens},
            provider=provider,
            call=lambda p: {"text": p.complete(prompt, max_tokens)},
            usage_text=prompt,
        )

    def generate_suggestions(
        self,
        resume_text: str,
        job_description: Optional[str] = None,
        options: Optional[dict] = None,
    ) -> List[str]:
        return self._execute(
            operation="suggestions",
            cache_text=resume_text + (job_description or ""),
            cache_options=options,
            provider=(options or {}).get("provider"),
            call=lambda p: p.generate_suggestions(resume_text, job_description, options),
            usage_text=resume_text,
        )

    def match_job_description(
        self,
        resume_text: str,
        job_description: str,
        options: Optional[dict] = None,
    ) -> dict:
        return self._execute(
            operation="matching",
            cache_text=resume_text + job_description,
            cache_options=options,
            provider=(options or {}).get("provider"),
            call=lambda p: p.match_job_description(resume_text, job_description, options),
            usage_text=resume_text + job_description,
        )

    def _execute(
        self,
        operation: str,
        cache_text: str,
        cache_options: Optional[dict],
        provider: Optional[str],
        call: Callable[[AIProvider], Any],
        usage_text: str,
    ) -> Any:
        cache_key = generate_cache_key(operation, cache_text, cache_options)
        if self.cache_enabled:
            cached = self._get_from_cache(cache_key)
            if cached is not None:
                logger.debug("Returning cached %s result", operation)
                return cached

        errors: Dict[str, str] = {}
        for candidate in self._select_providers(provider):
            try:
                logger.info("Attempting %s with %s", operation, candidate.name)
                result = call(candidate)
            except AIProviderError as e:
                logger.warning("%s %s failed: %s", candidate.name, operation, e)
                candidate.is_healthy = False
                errors[candidate.name] = str(e)
                continue

            if self.cache_enabled:
                self._set_cache(cache_key, result)
            self._track_usage(
                candidate.name, operation, estimate_tokens(usage_text), candidate.cost_per_token
            )
            return result

        raise AllProvidersFailedError(operation, errors)

    # ============================================================
    # PROVIDER SELECTION / HEALTH
    # ============================================================

    def _select_providers(self, provider: Optional[str] = None) -> List[AIProvider]:
        if provider:
            return [p for p in self.providers if p.name.lower() == provider.lower()]

        healthy = [p for p in self.providers if p.is_healthy]
        if not healthy:
            logger.warning("No healthy providers available, resetting health status")
            self.reset_provider_health()
            return list(self.providers)
        return healthy

    def get_provider(self, name: str) -> Optional[AIProvider]:
        for provider in self.providers:
            if provider.name.lower() == name.lower():
                return provider
        return None

    def get_provider_health(self) -> Dict[str, dict]:
        now = datetime.utcnow().isoformat()
        return {
            p.name: {
                "is_healthy": p.is_healthy,
                "is_configured": p.is_configured,
                "priority": p.priority,
                "cost_per_token": p.cost_per_token,
                "last_check": now,
            }
            for p in self.providers
        }

    def reset_provider_health(self) -> None:
        logger.info("Resetting all provider health status")
        for provider in self.providers:
            provider.is_healthy = True

    # ============================================================
    # CACHE
    # ============================================================

    def _get_from_cache(self, key: str) -> Any:
        try:
            cached = self.redis.get(key)
            return json.loads(cached) if cached else None
        except Exception as e:
            logger.error("Cache retrieval failed: %s", e)
            return None

    def _set_cache(self, key: str, data: Any) -> None:
        try:
            self.redis.setex(key, self.cache_ttl, json.dumps(data, default=str))
        except Exception as e:
            logger.error("Cache storage failed: %s", e)

    # ============================================================
    # USAGE / COST ANALYTICS
    # ============================================================

    def _track_usage(self, provider: str, operation: str, tokens: int, cost_per_token: float) -> None:
        try:
            cost = (tokens / 1000) * cost_per_token
            usage_key = f"ai:usage:{provider}:{datetime.utcnow().date().isoformat()}"
            pipe = self.redis.pipeline()
            pipe.hincrby(usage_key, "tokens", tokens)
            pipe.hincrbyfloat(usage_key, "cost", cost)
            pipe.hincrby(usage_key, operation, 1)
            pipe.expire(usage_key, USAGE_TTL_SECONDS)
            pipe.execute()
        except Exception as e:
            logger.error("Usage tracking failed: %s", e)

    def get_cost_analytics(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> Dict[str, List[dict]]:
        """
        Daily token/cost usage per provider.
        Defaults to the last 30 days.
        """
        end = (end_date or datetime.utcnow()).date()
        start = (start_date.date() if start_date else end - timedelta(days=30))

        analytics = {}
        try:
            for provider in self.providers:
                costs = []
                current = start
                while current <= end:
                    date_str = current.isoformat()
                    raw = self.redis.hgetall(f"ai:usage:{provider.name}:{date_str}")
                    usage = {_decode(k): _decode(v) for k, v in raw.items()}
                    costs.append({
                        "date": date_str,
                        "tokens": int(usage.get("tokens", 0)),
                        "cost": float(usage.get("cost", 0)),
                        "operations": {op: int(usage.get(op, 0)) for op in USAGE_OPERATIONS},
                    })
                    current += timedelta(days=1)
                analytics[provider.name] = costs
        except Exception as e:
            logger.error("Failed to get cost analytics: %s", e)
            return {}
        return analytics


# Singleton instance
_ai_provider_service: Optional[AIProviderService] = None


def get_ai_provider_service() -> AIProviderService:
    """Get or create AI provider service instance."""
    global _ai_provider_service
    if _ai_provider_service is None:
        _ai_provider_service = AIProviderService()
    return _ai_provider_service
