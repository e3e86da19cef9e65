# decision_engine/core/loader.py
"""
Manifest loader: raw tool manifests -> canonical Tool objects.

Responsibilities:
- Ask the manifest provider for every available slug
- Load + validate each manifest and convert it to an LlmApi, Framework or VectorDb
- Skip (and log) any single manifest that fails, without failing the batch
- Keep the converted list in a short-lived ToolCache

Usage:
  from decision_engine.core.loader import DecisionEngineLoader
  loader = DecisionEngineLoader()
  tools = loader.load_all_tools()

Manifest loads run concurrently on a private event loop. load_all_tools() is
synchronous; async callers use aload_all_tools().
"""

from __future__ import annotations
import asyncio
import datetime
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional, Tuple

from dateutil import parser as dateparser

from decision_engine.config import cfg, Config
from decision_engine.models import (
    DataRetention,
    FeaturedComparison,
    Framework,
    FrameworkCommunity,
    FrameworkDocs,
    FrameworkReliability,
    LlmApi,
    LlmApiModel,
    RateLimits,
    Sdks,
    Source,
    Tool,
    ToolNotes,
    VectorDb,
    VectorDbCommunity,
    VectorDbDocumentation,
    VectorDbPricing,
    VectorDbTechnical,
)
from decision_engine.services.manifest_provider import (
    ManifestProvider,
    create_manifest_provider,
    load_manifest,
)
from decision_engine.services.tool_cache import ToolCache

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# manifest category -> Tool.kind
CATEGORY_TO_KIND = {
    "llm_api": "llm_api",
    "ai_framework": "framework",
    "framework": "framework",
    "vector_db": "vector_db",
}

SUPPORTED_MODALITIES = ("text", "image", "audio")


# --- field helpers ---

def _parse_date(value: Any) -> Optional[datetime.date]:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if not value:
        return None
    try:
        return dateparser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return _int(value)


def _float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        # quoted YAML booleans
        return value.strip().lower() in ("true", "yes", "on", "1")
    return bool(value)


def _optional_str(value: Any) -> Optional[str]:
    # YAML turns bare dates and prices into date/number objects
    return None if value is None else str(value)


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(v) for v in value if v is not None]


def _block(facts: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = facts.get(key)
    return value if isinstance(value, dict) else {}


def _loop_running() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


def extract_sources(raw_sources: Any, pointer: str,
                    provenance: Iterable[Dict[str, Any]]) -> List[Source]:
    """
    Evidence for one fact block.

    Uses the block's own `sources` list when present, otherwise the manifest
    provenance entries at or below `pointer`. Entries without a url or a
    parseable date are dropped; nothing is invented when evidence is missing.
    """
    sources: List[Source] = []
    seen = set()

    def _add(url: Any, observed: Any, content_hash: Any = None, excerpt: Any = None):
        observed_at = _parse_date(observed)
        if not url or observed_at is None:
            return
        key = (str(url), observed_at)
        if key in seen:
            return
        seen.add(key)
        sources.append(Source(url=str(url), observed_at=observed_at,
                              content_hash=_optional_str(content_hash), excerpt=_optional_str(excerpt)))

    if isinstance(raw_sources, list) and raw_sources:
        for s in raw_sources:
            if isinstance(s, dict):
                _add(s.get("url"), s.get("observed_at"), s.get("content_hash"), s.get("excerpt"))
        return sources

    for item in provenance:
        path = item.get("path") or ""
        if path == pointer or path.startswith(pointer + "/"):
            _add(item.get("url"), item.get("captured_at"), excerpt=item.get("quote"))
    return sources


# --- llm_api ---

def _extract_modalities(model: Dict[str, Any]) -> List[str]:
    modalities = ["text"]
    declared = _str_list(model.get("modality") or model.get("modalities"))
    capabilities = _block(model, "capabilities")
    if "image" in declared or capabilities.get("vision"):
        modalities.append("image")
    if "audio" in declared or capabilities.get("audio"):
        modalities.append("audio")
    return [m for m in SUPPORTED_MODALITIES if m in modalities]


def _extract_endpoints(model: Dict[str, Any]) -> List[str]:
    if isinstance(model.get("endpoints"), list):
        return _str_list(model["endpoints"])
    flags = _block(model, "endpoints")
    supports = _block(model, "supports")
    pricing = _block(model, "pricing")
    endpoints = []
    if flags.get("messages"):
        endpoints.append("messages")
    if flags.get("streaming") or supports.get("streaming"):
        endpoints.append("streaming")
    if flags.get("embeddings") or pricing.get("embeddings_per_1k") is not None:
        endpoints.append("embeddings")
    return endpoints


def _extract_rate_limits(facts: Dict[str, Any], models: List[Dict[str, Any]],
                         provenance: List[Dict[str, Any]]) -> RateLimits:
    rate_limits = _block(facts, "rate_limits")
    if rate_limits:
        scope = rate_limits.get("scope")
        return RateLimits(
            rpm=_int(rate_limits.get("rpm")),
            tpm=_int(rate_limits.get("tpm")),
            scope=scope if scope in ("account", "key") else "account",
            sources=extract_sources(rate_limits.get("sources"), "/facts/rate_limits", provenance),
        )

    # no tool-wide limits: take the most generous per-model limits
    rpm = tpm = 0
    sources: List[Source] = []
    for i, model in enumerate(models):
        model_limits = _block(model, "rate_limits")
        if not model_limits:
            continue
        rpm = max(rpm, _int(model_limits.get("rpm")))
        tpm = max(tpm, _int(model_limits.get("tpm")))
        sources.extend(extract_sources(None, f"/facts/models/{i}/rate_limits", provenance))
    return RateLimits(rpm=rpm, tpm=tpm, sources=sources)


def _convert_llm_api(manifest: Dict[str, Any], facts: Dict[str, Any],
                     provenance: List[Dict[str, Any]]) -> LlmApi:
    slug = manifest.get("slug") or manifest.get("id")
    raw_models = [m for m in facts.get("models") or [] if isinstance(m, dict)]

    models = []
    for i, m in enumerate(raw_models):
        pricing = _block(m, "pricing")
        models.append(LlmApiModel(
            id=_optional_str(m.get("id")) or f"{slug}-{m.get('name')}",
            modalities=_extract_modalities(m),
            context_window_tokens=_int(m.get("context_tokens_max")),
            input_price_per_1k=_float(pricing.get("input_per_1k")),
            output_price_per_1k=_float(pricing.get("output_per_1k")),
            endpoints=_extract_endpoints(m),
            sources=extract_sources(m.get("sources"), f"/facts/models/{i}", provenance),
        ))

    retention = _block(facts, "data_retention")
    terms = _block(facts, "terms")
    window_days = retention.get("window_days")
    retention_pointer = "/facts/data_retention"
    if window_days is None and "data_retention_days" in terms:
        window_days = terms.get("data_retention_days")
        retention_pointer = "/facts/terms/data_retention_days"

    sdks = _block(facts, "sdks")
    notes = _block(facts, "notes")

    return LlmApi(
        id=slug,
        name=manifest.get("name") or slug,
        models=models,
        rate_limits=_extract_rate_limits(facts, raw_models, provenance),
        sdks=Sdks(official=_str_list(sdks.get("official")), community=_str_list(sdks.get("community"))),
        data_retention=DataRetention(
            # 0 days and "not published" both mean nothing is retained
            window_days=_int(window_days) or None,
            notes=_optional_str(retention.get("notes")),
            sources=extract_sources(retention.get("sources"), retention_pointer, provenance),
        ),
        notes=ToolNotes(
            strengths=_str_list(facts.get("strengths") or notes.get("strengths")),
            tradeoffs=_str_list(facts.get("tradeoffs") or notes.get("tradeoffs")),
        ),
    )


# --- framework ---

def _convert_framework(manifest: Dict[str, Any], facts: Dict[str, Any],
                       provenance: List[Dict[str, Any]]) -> Framework:
    slug = manifest.get("slug") or manifest.get("id")
    install = {str(k): str(v) for k, v in _block(facts, "install").items() if v}
    docs = _block(facts, "docs")
    community = _block(facts, "community")
    reliability = _block(facts, "reliability")

    return Framework(
        id=slug,
        name=manifest.get("name") or slug,
        licensing=str(facts.get("licensing") or facts.get("license") or ""),
        install=install,
        docs=FrameworkDocs(
            quickstart_examples=_int(docs.get("quickstart_examples")),
            api_coverage_ratio=min(1.0, max(0.0, _float(docs.get("api_coverage_ratio")))),
            last_updated_days=_optional_int(docs.get("last_updated_days")),
            sources=extract_sources(docs.get("sources"), "/facts/docs", provenance),
        ),
        community=FrameworkCommunity(
            github_stars=_int(community.get("github_stars")),
            github_open_issues=_int(community.get("github_open_issues")),
            discord_members=_optional_int(community.get("discord_members")),
            release_cadence_days=_optional_int(community.get("release_cadence_days")),
            sources=extract_sources(community.get("sources"), "/facts/community", provenance),
        ),
        reliability=FrameworkReliability(
            breaking_changes_30d=_int(reliability.get("breaking_changes_30d")),
            deprecations_announced=_bool(reliability.get("deprecations_announced")),
            sources=extract_sources(reliability.get("sources"), "/facts/reliability", provenance),
        ),
    )


# --- vector_db ---

def _convert_vector_db(manifest: Dict[str, Any], facts: Dict[str, Any],
                       provenance: List[Dict[str, Any]]) -> VectorDb:
    slug = manifest.get("slug") or manifest.get("id")
    pricing = _block(facts, "pricing")
    technical = _block(facts, "technical")
    community = _block(facts, "community")
    documentation = _block(facts, "documentation")

    return VectorDb(
        id=slug,
        name=manifest.get("name") or slug,
        pricing=VectorDbPricing(
            model=str(pricing.get("model") or "unknown"),
            free_tier=_bool(pricing.get("free_tier")),
            starting_price=_optional_str(pricing.get("starting_price")),
            pricing_details=_optional_str(pricing.get("pricing_details")),
            sources=extract_sources(pricing.get("sources"), "/facts/pricing", provenance),
        ),
        technical=VectorDbTechnical(
            open_source=_bool(technical.get("open_source")),
            api_access=_bool(technical.get("api_access")),
            setup_complexity=str(technical.get("setup_complexity") or "unknown"),
            languages=_str_list(technical.get("languages")),
            sources=extract_sources(technical.get("sources"), "/facts/technical", provenance),
        ),
        community=VectorDbCommunity(
            github_stars=_int(community.get("github_stars")),
            github_forks=_int(community.get("github_forks")),
            github_issues=_int(community.get("github_issues")),
            release_frequency=str(community.get("release_frequency") or "unknown"),
            last_commit=_optional_str(community.get("last_commit")),
            sources=extract_sources(community.get("sources"), "/facts/community", provenance),
        ),
        documentation=VectorDbDocumentation(
            has_docs=_bool(documentation.get("has_docs")),
            doc_pages=_optional_int(documentation.get("doc_pages")),
            has_tutorials=_bool(documentation.get("has_tutorials")),
            has_examples=_bool(documentation.get("has_examples")),
            quality=str(documentation.get("quality") or "unknown"),
            last_updated=_optional_str(documentation.get("last_updated")),
            sources=extract_sources(documentation.get("sources"), "/facts/documentation", provenance),
        ),
    )


_CONVERTERS = {
    "llm_api": _convert_llm_api,
    "framework": _convert_framework,
    "vector_db": _convert_vector_db,
}


def convert_manifest_to_tool(manifest: Optional[Dict[str, Any]]) -> Optional[Tool]:
    """
    Convert one raw manifest to a canonical tool.

    Returns None when the manifest has no `facts` block or its category has no
    tool shape (e.g. coding_assistant). Missing facts fall back to defaults.
    """
    if not manifest or not manifest.get("facts"):
        return None

    category = manifest.get("category") or "llm_api"
    kind = CATEGORY_TO_KIND.get(category)
    if kind is None:
        logger.debug("No tool shape for category %s (manifest %s)", category, manifest.get("slug"))
        return None

    provenance = [p for p in manifest.get("provenance") or [] if isinstance(p, dict)]
    return _CONVERTERS[kind](manifest, manifest["facts"], provenance)


class DecisionEngineLoader:
    """Loads, converts and caches the tool collection."""

    def __init__(self, provider: Optional[ManifestProvider] = None,
                 cache: Optional[ToolCache] = None,
                 config: Config = cfg,
                 enforce_provenance: Optional[bool] = None):
        self.provider = provider or create_manifest_provider(config)
        self.cache = cache or ToolCache(ttl_seconds=config.MANIFEST_CACHE_TTL_SECONDS)
        self.enforce_provenance = config.ENFORCE_PROVENANCE if enforce_provenance is None else enforce_provenance
        self._refresh_lock = threading.Lock()

    async def _load_one(self, slug: str) -> Optional[Tool]:
        try:
            manifest = await load_manifest(slug, self.provider, enforce_provenance=self.enforce_provenance)
            return convert_manifest_to_tool(manifest)
        except Exception as e:
            logger.exception("Failed to load manifest %s: %s", slug, e)
            return None

    async def _load_all_async(self) -> List[Tool]:
        try:
            slugs = await self.provider.list()
        except Exception as e:
            logger.exception("Failed to list manifests: %s", e)
            return []

        results = await asyncio.gather(*(self._load_one(slug) for slug in slugs))

        tools: List[Tool] = []
        seen_ids = set()
        for tool in results:
            if tool is None:
                continue
            if tool.id in seen_ids:
                logger.warning("Duplicate tool id %s; keeping the first manifest", tool.id)
                continue
            seen_ids.add(tool.id)
            tools.append(tool)

        logger.info("Loaded %d tools from %d manifests", len(tools), len(slugs))
        return tools

    def _run(self, coro):
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(coro)
        finally:
            loop.close()

    def _refresh(self) -> List[Tool]:
        with self._refresh_lock:
            # another thread may have refreshed while we waited
            cached = self.cache.peek()
            if cached is not None:
                return cached
            tools = self._run(self._load_all_async())
            self.cache.set(tools)
            return tools

    def load_all_tools(self) -> List[Tool]:
        """
        Return every loadable tool, served from cache while it is fresh.

        Never raises for data problems: a missing store, an empty slug list or
        all-invalid manifests give an empty list. Safe to call from inside a
        running event loop (the refresh then runs on a worker thread).
        """
        cached = self.cache.get()
        if cached is not None:
            return cached

        if _loop_running():
            # run_until_complete cannot nest inside the caller's loop
            with ThreadPoolExecutor(max_workers=1) as pool:
                return pool.submit(self._refresh).result()
        return self._refresh()

    async def aload_all_tools(self) -> List[Tool]:
        """Async variant of load_all_tools(); the refresh runs off the caller's loop."""
        cached = self.cache.get()
        if cached is not None:
            return cached
        return await asyncio.to_thread(self._refresh)

    def load_tools_by_category(self, category: str) -> List[Tool]:
        kind = CATEGORY_TO_KIND.get(category, category)
        return [t for t in self.load_all_tools() if t.kind == kind]

    def load_tool_by_id(self, tool_id: str) -> Optional[Tool]:
        for tool in self.load_all_tools():
            if tool.id == tool_id:
                return tool
        return None

    def load_tools_for_comparison(self, tool1_id: str, tool2_id: str) -> Tuple[Optional[Tool], Optional[Tool]]:
        return self.load_tool_by_id(tool1_id), self.load_tool_by_id(tool2_id)

    def get_featured_comparisons(self) -> List[FeaturedComparison]:
        """Pair the first two loaded tools; a placeholder until real ranking exists."""
        tools = self.load_all_tools()
        if len(tools) < 2:
            return []
        tool1, tool2 = tools[0], tools[1]
        return [FeaturedComparison(
            id=f"{tool1.id}-vs-{tool2.id}",
            title=f"{tool1.name} vs {tool2.name}",
            description="Compare pricing, features, and capabilities",
            tools=[tool1.name, tool2.name],
            href=f"/comparisons/{tool1.id}/vs/{tool2.id}",
        )]
