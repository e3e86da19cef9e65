import asyncio
import json

import httpx
import pytest
import yaml

from builders import framework_manifest, llm_manifest
from decision_engine.config import Config
from decision_engine.services.manifest_provider import (
    FileSystemProvider,
    HttpManifestProvider,
    ManifestError,
    collect_json_pointers,
    create_manifest_provider,
    enforce_provenance_coverage,
    escape_json_pointer,
    load_manifest,
    parse_manifest,
)


def _prov(*paths):
    return [{"path": p, "url": "https://example.com", "captured_at": "2025-05-01"} for p in paths]


class TestJsonPointers:
    """Test JSON pointer collection"""

    def test_escape(self):
        assert escape_json_pointer("a/b~c") == "a~1b~0c"

    def test_leaves_only(self):
        doc = {"a": {"b": 1, "c": [10, {"d": "x"}]}, "e": None, "f/g": True}
        assert collect_json_pointers(doc) == ["/a/b", "/a/c/0", "/a/c/1/d", "/f~1g"]

    def test_empty(self):
        assert collect_json_pointers(None) == []
        assert collect_json_pointers({}) == []


class TestProvenanceCoverage:
    """Test provenance coverage rules"""

    def test_exact_paths(self):
        doc = {"facts": {"licensing": "MIT", "docs": {"quickstart_examples": 3}},
               "provenance": _prov("/facts/licensing", "/facts/docs/quickstart_examples")}
        enforce_provenance_coverage(doc)

    def test_array_items_covered_by_parent(self):
        doc = {"facts": {"sdks": {"official": ["python", "go"]}},
               "provenance": _prov("/facts/sdks/official")}
        enforce_provenance_coverage(doc)

    def test_optional_fields_covered_by_parent(self):
        doc = {"facts": {"rate_limits": {"burst": 20}},
               "provenance": _prov("/facts/rate_limits")}
        enforce_provenance_coverage(doc)

    def test_missing_leaf(self):
        doc = {"facts": {"licensing": "MIT", "docs": {"quickstart_examples": 3}},
               "provenance": _prov("/facts/licensing")}
        with pytest.raises(ManifestError, match="/facts/docs/quickstart_examples"):
            enforce_provenance_coverage(doc)

    def test_parent_does_not_cover_ordinary_leaf(self):
        doc = {"facts": {"docs": {"quickstart_examples": 3}}, "provenance": _prov("/facts/docs")}
        with pytest.raises(ManifestError):
            enforce_provenance_coverage(doc)


class TestParseManifest:
    """Test parsing and envelope validation"""

    def test_valid_without_enforcement(self):
        doc = parse_manifest("acme-api", yaml.safe_dump(llm_manifest()), enforce_provenance=False)
        assert doc["slug"] == "acme-api"

    def test_json_text_is_accepted(self):
        doc = parse_manifest("acme-api", json.dumps(llm_manifest()), enforce_provenance=False)
        assert doc["category"] == "llm_api"

    def test_missing_provenance_fails(self):
        with pytest.raises(ManifestError, match="Failed to load manifest acme-api"):
            parse_manifest("acme-api", yaml.safe_dump(llm_manifest()))

    def test_invalid_yaml(self):
        with pytest.raises(ManifestError, match="invalid YAML"):
            parse_manifest("x", "slug: [unclosed")

    def test_not_a_mapping(self):
        with pytest.raises(ManifestError, match="not a mapping"):
            parse_manifest("x", "- a\n- b\n")

    def test_unknown_envelope_key(self):
        manifest = framework_manifest()
        manifest["rating"] = 5
        with pytest.raises(ManifestError, match="base schema validation failed"):
            parse_manifest("fastchain", yaml.safe_dump(manifest), enforce_provenance=False)

    def test_unknown_category(self):
        manifest = framework_manifest()
        manifest["category"] = "spreadsheet"
        with pytest.raises(ManifestError):
            parse_manifest("fastchain", yaml.safe_dump(manifest), enforce_provenance=False)

    def test_unquoted_dates(self):
        text = yaml.safe_dump(framework_manifest()).replace("'2025-05-30'", "2025-05-30")
        doc = parse_manifest("fastchain", text, enforce_provenance=False)
        assert str(doc["as_of"]) == "2025-05-30"


class TestFileSystemProvider:
    """Test directory-backed provider"""

    def test_list_and_read(self, tmp_path):
        (tmp_path / "b.yml").write_text("b", encoding="utf-8")
        (tmp_path / "a.yaml").write_text("a", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
        provider = FileSystemProvider(str(tmp_path))
        assert asyncio.run(provider.list()) == ["a", "b"]
        assert asyncio.run(provider.read("b")) == "b"

    def test_read_missing(self, tmp_path):
        provider = FileSystemProvider(str(tmp_path))
        with pytest.raises(FileNotFoundError):
            asyncio.run(provider.read("nope"))

    def test_load_manifest_wraps_read_errors(self, tmp_path):
        provider = FileSystemProvider(str(tmp_path))
        with pytest.raises(ManifestError, match="Failed to load manifest nope"):
            asyncio.run(load_manifest("nope", provider))


class TestHttpManifestProvider:
    """Test HTTP-backed provider with a mock transport"""

    def _provider(self, routes):
        def handler(request: httpx.Request) -> httpx.Response:
            body = routes.get(request.url.path)
            if body is None:
                return httpx.Response(404)
            if isinstance(body, str):
                return httpx.Response(200, text=body)
            return httpx.Response(200, json=body)

        return HttpManifestProvider("https://manifests.example.com/", transport=httpx.MockTransport(handler))

    def test_list_plain_index(self):
        provider = self._provider({"/index.json": ["acme-api", "fastchain"]})
        assert asyncio.run(provider.list()) == ["acme-api", "fastchain"]

    def test_list_wrapped_index(self):
        provider = self._provider({"/index.json": {"manifests": ["acme-api"]}})
        assert asyncio.run(provider.list()) == ["acme-api"]

    def test_list_failure_is_empty(self):
        provider = self._provider({})
        assert asyncio.run(provider.list()) == []

    def test_load_manifest(self):
        provider = self._provider({"/acme-api.yaml": yaml.safe_dump(llm_manifest())})
        doc = asyncio.run(load_manifest("acme-api", provider, enforce_provenance=False))
        assert doc["name"] == "Acme API"

    def test_read_failure(self):
        provider = self._provider({})
        with pytest.raises(ManifestError):
            asyncio.run(load_manifest("acme-api", provider, enforce_provenance=False))


class TestCreateProvider:
    """Test provider selection from configuration"""

    def test_directory_by_default(self, monkeypatch):
        monkeypatch.delenv("MANIFEST_URL", raising=False)
        monkeypatch.setenv("MANIFEST_PATH", "/srv/manifests")
        provider = create_manifest_provider(Config())
        assert isinstance(provider, FileSystemProvider)
        assert provider.base_path == "/srv/manifests"

    def test_http_when_url_set(self, monkeypatch):
        monkeypatch.setenv("MANIFEST_URL", "https://manifests.example.com")
        provider = create_manifest_provider(Config())
        assert isinstance(provider, HttpManifestProvider)
