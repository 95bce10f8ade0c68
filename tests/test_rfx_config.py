"""Tests for RfX configuration loading and resolution."""

import json

import pytest

from rfx_config import (
    DEFAULT_RFX_CONFIG,
    ExclusionRules,
    RfxConfigError,
    RfxConfigResolver,
    RfxConfiguration,
    get_resolver,
    load_store,
)

ENTRY = {
    "sections": ["Support", "Oppose", "Neutral"],
    "date_regexp": r"ending (.*?) \(UTC\)",
    "rfx_namespace": 4,
    "pages": ["Requests_for_adminship"],
    "excluded_title": ["Requests_for_adminship/Header"],
    "excluded_regex": ["RfA_analysis"],
}


@pytest.fixture(autouse=True)
def fresh_resolver():
    get_resolver.cache_clear()
    yield
    get_resolver.cache_clear()


class TestRfxConfiguration:
    def test_from_mapping(self):
        cfg = RfxConfiguration.from_mapping(ENTRY)
        assert cfg.section_names == ("Support", "Oppose", "Neutral")
        assert cfg.end_date_regex == r"ending (.*?) \(UTC\)"
        assert cfg.namespace_id == 4
        assert cfg.page_prefixes == ("Requests_for_adminship",)
        assert cfg.excluded_titles == frozenset({"Requests_for_adminship/Header"})
        assert cfg.excluded_title_patterns == frozenset({"RfA_analysis"})

    def test_exclusion_rules(self):
        rules = RfxConfiguration.from_mapping(ENTRY).exclusion_rules
        assert rules == ExclusionRules(
            frozenset({"Requests_for_adminship/Header"}), frozenset({"RfA_analysis"})
        )

    def test_exclusions_are_optional(self):
        raw = {k: v for k, v in ENTRY.items() if not k.startswith("excluded")}
        cfg = RfxConfiguration.from_mapping(raw)
        assert cfg.exclusion_rules == ExclusionRules()

    def test_duplicate_section_names_collapse_in_order(self):
        cfg = RfxConfiguration.from_mapping({**ENTRY, "sections": ["Support", "Oppose", "Support"]})
        assert cfg.section_names == ("Support", "Oppose")

    def test_missing_key(self):
        raw = dict(ENTRY)
        del raw["pages"]
        with pytest.raises(RfxConfigError, match="pages"):
            RfxConfiguration.from_mapping(raw)

    def test_invalid_date_pattern(self):
        with pytest.raises(RfxConfigError, match="invalid end date pattern"):
            RfxConfiguration.from_mapping({**ENTRY, "date_regexp": "(unclosed"})

    def test_string_instead_of_list(self):
        with pytest.raises(RfxConfigError):
            RfxConfiguration.from_mapping({**ENTRY, "sections": "Support"})

    def test_no_sections(self):
        with pytest.raises(RfxConfigError):
            RfxConfiguration.from_mapping({**ENTRY, "sections": []})

    def test_bad_namespace(self):
        with pytest.raises(RfxConfigError):
            RfxConfiguration.from_mapping({**ENTRY, "rfx_namespace": "project"})

    def test_is_frozen(self):
        cfg = RfxConfiguration.from_mapping(ENTRY)
        with pytest.raises(AttributeError):
            cfg.namespace_id = 5  # type: ignore[misc]


class TestResolver:
    def test_configured_project(self):
        resolver = RfxConfigResolver({"en.wikipedia.org": ENTRY})
        assert resolver.is_configured("en.wikipedia.org")
        assert resolver.config_for("en.wikipedia.org").page_prefixes == ("Requests_for_adminship",)

    def test_unconfigured_project_is_not_an_error(self):
        resolver = RfxConfigResolver({"en.wikipedia.org": ENTRY})
        assert not resolver.is_configured("de.wikipedia.org")
        assert resolver.config_for("de.wikipedia.org") is None

    def test_domain_is_case_insensitive(self):
        resolver = RfxConfigResolver({"EN.wikipedia.org": ENTRY})
        assert resolver.config_for("en.WIKIPEDIA.org") is not None

    def test_config_is_cached(self):
        resolver = RfxConfigResolver({"en.wikipedia.org": ENTRY})
        assert resolver.config_for("en.wikipedia.org") is resolver.config_for("en.wikipedia.org")

    def test_domains(self):
        assert RfxConfigResolver({"a.org": ENTRY, "b.org": ENTRY}).domains() == ("a.org", "b.org")


class TestStore:
    def test_builtin_entries_are_valid(self):
        for domain, raw in DEFAULT_RFX_CONFIG.items():
            assert RfxConfiguration.from_mapping(raw).section_names, domain

    def test_load_store(self, tmp_path):
        path = tmp_path / "rfx.json"
        path.write_text(json.dumps({"fr.wikipedia.org": ENTRY}), encoding="utf-8")
        assert load_store(str(path)) == {"fr.wikipedia.org": ENTRY}

    def test_load_store_rejects_lists(self, tmp_path):
        path = tmp_path / "rfx.json"
        path.write_text("[]", encoding="utf-8")
        with pytest.raises(RfxConfigError):
            load_store(str(path))

    def test_get_resolver_defaults(self, monkeypatch):
        monkeypatch.delenv("RFX_CONFIG_FILE", raising=False)
        resolver = get_resolver()
        assert resolver.is_configured("en.wikipedia.org")
        assert get_resolver() is resolver

    def test_get_resolver_merges_file(self, monkeypatch, tmp_path):
        path = tmp_path / "rfx.json"
        path.write_text(json.dumps({"fr.wikipedia.org": ENTRY}), encoding="utf-8")
        monkeypatch.setenv("RFX_CONFIG_FILE", str(path))
        resolver = get_resolver()
        assert resolver.is_configured("fr.wikipedia.org")
        assert resolver.is_configured("en.wikipedia.org")
