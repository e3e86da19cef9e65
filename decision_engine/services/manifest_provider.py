# decision_engine/services/manifest_provider.py
"""
Manifest providers and raw manifest loading.

A provider knows where manifests live and hands back raw text:
- list()       -> available manifest slugs
- read(slug)   -> raw manifest text (YAML; JSON parses as YAML too)

load_manifest(slug, provider) reads, parses and validates one manifest:
1) envelope shape (schema_version, slug, name, category, ... provenance)
2) provenance coverage: every fact leaf must be traceable to a provenance entry

Notes:
- Providers are async so the loader can read many manifests concurrently.
- The manifest wire format is owned by whoever authors manifests; this module
  only checks the envelope the engine relies on.
"""
from __future__ import annotations
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

import httpx
import yaml
from pydantic import ValidationError

from decision_engine.config import cfg, Config
from decision_engine.models import ToolManifest

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

MANIFEST_EXTENSIONS = (".yaml", ".yml")
# leaves under these keys may be covered by their parent's provenance entry
OPTIONAL_FACT_FIELDS = ("notes", "community", "burst")


class ManifestError(ValueError):
    """Raised when a manifest cannot be read, parsed or validated."""


class ManifestProvider(Protocol):
    async def list(self) -> List[str]:
        ...

    async def read(self, slug: str) -> str:
        ...


class FileSystemProvider:
    """Reads `<slug>.yaml` / `<slug>.yml` files from one directory."""

    def __init__(self, base_path: str):
        self.base_path = base_path

    def _list_sync(self) -> List[str]:
        try:
            files = sorted(os.listdir(self.base_path))
        except OSError as e:
            logger.error("Error listing manifest files in %s: %s", self.base_path, e)
            return []
        slugs = []
        for f in files:
            stem, ext = os.path.splitext(f)
            if ext in MANIFEST_EXTENSIONS and stem not in slugs:
                slugs.append(stem)
        return slugs

    def _read_sync(self, slug: str) -> str:
        for ext in MANIFEST_EXTENSIONS:
            path = os.path.join(self.base_path, f"{slug}{ext}")
            if os.path.exists(path):
                with open(path, "r", encoding="utf-8") as fh:
                    return fh.read()
        raise FileNotFoundError(f"No manifest file for {slug} in {self.base_path}")

    async def list(self) -> List[str]:
        return await asyncio.to_thread(self._list_sync)

    async def read(self, slug: str) -> str:
        return await asyncio.to_thread(self._read_sync, slug)


class HttpManifestProvider:
    """
    Reads manifests from a static HTTP location:
      GET {base_url}/index.json   -> ["slug-a", "slug-b", ...]
      GET {base_url}/{slug}.yaml  -> manifest text
    """

    def __init__(self, base_url: str, timeout: float = 10.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def list(self) -> List[str]:
        url = f"{self.base_url}/index.json"
        try:
            async with self._client() as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except Exception as e:
            logger.error("Error listing manifests from %s: %s", url, e)
            return []
        if isinstance(data, dict):
            data = data.get("manifests", [])
        return [str(s) for s in data if s]

    async def read(self, slug: str) -> str:
        async with self._client() as client:
            resp = await client.get(f"{self.base_url}/{slug}.yaml")
            resp.raise_for_status()
            return resp.text


def create_manifest_provider(config: Config = cfg) -> ManifestProvider:
    """HTTP provider when MANIFEST_URL is set, otherwise the manifest directory."""
    if config.MANIFEST_URL:
        return HttpManifestProvider(config.MANIFEST_URL, timeout=config.HTTP_TIMEOUT)
    return FileSystemProvider(config.MANIFEST_PATH)


# JSON Pointer helpers

def escape_json_pointer(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def collect_json_pointers(obj: Any, base: str = "") -> List[str]:
    """Return the JSON pointer of every non-null leaf under obj."""
    if obj is None:
        return []
    if isinstance(obj, list):
        out: List[str] = []
        for i, v in enumerate(obj):
            out.extend(collect_json_pointers(v, f"{base}/{i}"))
        return out
    if isinstance(obj, dict):
        out = []
        for k, v in obj.items():
            out.extend(collect_json_pointers(v, f"{base}/{escape_json_pointer(str(k))}"))
        return out
    return [base]


def enforce_provenance_coverage(doc: Dict[str, Any]) -> None:
    """
    Raise ManifestError for the first fact leaf without provenance.

    A leaf is covered by an entry for its own path, by an entry for its parent
    array (array elements), or by its parent object when the leaf is one of
    OPTIONAL_FACT_FIELDS.
    """
    paths = [f"/facts{p}" for p in collect_json_pointers(doc.get("facts"))]
    covered = {item.get("path") for item in doc.get("provenance") or [] if isinstance(item, dict)}

    for p in paths:
        if p in covered:
            continue
        parts = p.split("/")
        parent = "/".join(parts[:-1])
        if parts[-1].isdigit() and parent in covered:
            continue
        if parts[-1] in OPTIONAL_FACT_FIELDS and parent in covered:
            continue
        raise ManifestError(f"Missing provenance for {p}")


def parse_manifest(slug: str, text: str, enforce_provenance: bool = True) -> Dict[str, Any]:
    try:
        doc = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ManifestError(f"Failed to load manifest {slug}: invalid YAML: {e}") from e
    if not isinstance(doc, dict):
        raise ManifestError(f"Failed to load manifest {slug}: document is not a mapping")

    try:
        ToolManifest.model_validate(doc)
    except ValidationError as e:
        raise ManifestError(f"Failed to load manifest {slug}: base schema validation failed: {e}") from e

    if enforce_provenance:
        try:
            enforce_provenance_coverage(doc)
        except ManifestError as e:
            raise ManifestError(f"Failed to load manifest {slug}: {e}") from e
    return doc


async def load_manifest(slug: str, provider: ManifestProvider,
                        enforce_provenance: bool = True) -> Dict[str, Any]:
    """
    Read and validate one manifest.

    Returns:
        The raw manifest mapping (envelope + facts + provenance).
    Raises:
        ManifestError if the manifest cannot be read or fails validation.
    """
    try:
        text = await provider.read(slug)
    except Exception as e:
        raise ManifestError(f"Failed to load manifest {slug}: {e}") from e
    return parse_manifest(slug, text, enforce_provenance=enforce_provenance)
