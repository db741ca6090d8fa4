"""
Tests for the public cleaner: detector gate, policies, cache and fallbacks.
"""

import pytest

import cleaner as cleaner_module
from cleaner import WordMarkupCleaner, clean
from debug_log import MemorySink
from policy import CleaningPolicy, StaticPolicyStore
from settings import CleanerSettings

IDEMPOTENCE_SAMPLES = (
    '<p class="MsoNormal">a<span><span style="mso-x:1"></span></span>b</p>',
    '<span class="MsoNormal"><span><span style="mso-x:1"></span></span></span>',
    '<p class="MsoNormal"><span lang="EN-US" style="font-size:11pt;mso-bidi-font-size:12pt"> </span>text</p>',
)

IDEMPOTENCE_POLICIES = (
    CleaningPolicy(),
    CleaningPolicy(mso_classes=False),
    CleaningPolicy(strip_all_styles=True),
    CleaningPolicy(empty_elements=False),
)


class DictCache:
    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, ttl):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def flush(self):
        self.data.clear()


class BrokenCache:
    def get(self, key):
        raise ConnectionError("down")

    def set(self, key, value, ttl):
        raise ConnectionError("down")

    def delete(self, key):
        raise ConnectionError("down")

    def flush(self):
        raise ConnectionError("down")


@pytest.fixture
def cleaner():
    return WordMarkupCleaner()


class TestCleaning:
    """End-to-end behaviour of clean()."""

    def test_attribute_stripping(self, cleaner):
        html = '<p class="MsoNormal highlight" style="mso-margin-top-alt:auto;color:red;">x</p>'
        assert cleaner.clean(html, "post") == '<p class="highlight" style="color:red;">x</p>'

    def test_office_namespace_tags(self, cleaner):
        assert cleaner.clean("<p>Hello<o:p></o:p> World</p>", "post") == "<p>Hello World</p>"

    def test_conditional_comment(self, cleaner):
        html = "<!--[if gte mso 9]><xml><w:WordDocument></w:WordDocument></xml><![endif]-->Visible"
        assert cleaner.clean(html, "post") == "Visible"

    @pytest.mark.parametrize("use_tree", [True, False])
    def test_escaped_quotes_not_restored(self, use_tree):
        cleaner = WordMarkupCleaner(CleanerSettings(use_tree_processing=use_tree))
        html = '<p class=\\"x\\" style=\\"mso-a:1\\">Hi</p>'
        assert cleaner.clean(html, "post") == '<p class="x">Hi</p>'

    def test_word_table_keeps_every_cell(self, cleaner, word_table):
        cleaned = cleaner.clean(word_table, "post")
        assert cleaned.count("<tr>") == 2
        assert cleaned.count("<td") == 4
        for text in ("A1", "B1", "A2", "B2"):
            assert f"<p>{text}</p>" in cleaned

    def test_excerpt_becomes_plain_text(self, cleaner):
        assert cleaner.clean_excerpt('<p class="MsoNormal">Hello <b>world</b></p>') == "Hello world"

    def test_excerpt_without_word_markup_still_stripped(self, cleaner):
        assert cleaner.clean("<p>Hello <b>world</b></p>", "excerpt") == "Hello world"

    def test_excerpt_cleaned_twice_is_stable(self, cleaner):
        once = cleaner.clean("<p>Use &lt;b&gt; for bold &amp; more</p>", "excerpt")
        assert once == "Use &lt;b&gt; for bold &amp; more"
        assert "<" not in once
        assert cleaner.clean(once, "excerpt") == once

    def test_text_field_keeps_font_size(self, cleaner):
        html = '<span class="MsoNormal" style="font-size:12pt;mso-bidi-font-size:11pt">Hi</span>'
        assert cleaner.clean(html, "acf_text") == '<span style="font-size:12pt;">Hi</span>'

    def test_module_level_clean(self):
        assert clean('<p class="MsoNormal">x</p>') == "<p>x</p>"


class TestNoOp:
    """Content without Word markup comes back untouched."""

    def test_plain_html_unchanged(self, cleaner):
        html = '<p style="color:red">Plain <strong>text</strong></p>'
        assert cleaner.clean(html, "post") is html

    def test_non_string_and_empty(self, cleaner):
        assert cleaner.clean(None) is None
        assert cleaner.clean(42) == 42
        assert cleaner.clean("") == ""

    def test_cleaning_disabled(self):
        cleaner = WordMarkupCleaner(CleanerSettings(enable_cleaning=False))
        html = '<p class="MsoNormal">x</p>'
        assert cleaner.clean(html) == html

    def test_skip_logged(self):
        sink = MemorySink()
        WordMarkupCleaner(sink=sink).clean("<p>x</p>", "post")
        assert "No Word markup in post, skipping" in sink


class TestIdempotence:
    """Cleaning cleaned output changes nothing."""

    @pytest.mark.parametrize("use_tree", [True, False])
    def test_default_policy(self, word_document, use_tree):
        settings = CleanerSettings(use_tree_processing=use_tree)
        once = WordMarkupCleaner(settings).clean(word_document, "post")
        assert once != word_document
        assert WordMarkupCleaner(settings).clean(once, "post") == once

    def test_with_classes_kept(self, word_document):
        policy = CleaningPolicy(mso_classes=False)
        once = WordMarkupCleaner().clean(word_document, "post", policy)
        assert 'class="MsoNormal"' in once
        assert WordMarkupCleaner().clean(once, "post", policy) == once

    def test_strip_all_styles(self, word_document):
        policy = CleaningPolicy(strip_all_styles=True)
        once = WordMarkupCleaner().clean(word_document, "post", policy)
        assert "style=" not in once
        assert WordMarkupCleaner().clean(once, "post", policy) == once

    @pytest.mark.parametrize("use_tree", [True, False])
    @pytest.mark.parametrize("policy", IDEMPOTENCE_POLICIES)
    @pytest.mark.parametrize("html", IDEMPOTENCE_SAMPLES)
    def test_samples_for_each_policy(self, html, policy, use_tree):
        cleaner = WordMarkupCleaner(CleanerSettings(use_tree_processing=use_tree))
        once = cleaner.clean(html, "post", policy)
        assert cleaner.clean(once, "post", policy) == once

    @pytest.mark.parametrize("use_tree", [True, False])
    def test_nested_empty_spans_removed_on_both_paths(self, use_tree):
        cleaner = WordMarkupCleaner(CleanerSettings(use_tree_processing=use_tree))
        assert cleaner.clean(IDEMPOTENCE_SAMPLES[0], "post") == "<p>ab</p>"


class TestStripStylesOnly:
    """strip_all_styles on content the detector does not flag."""

    def test_styles_removed(self, cleaner):
        policy = CleaningPolicy(strip_all_styles=True)
        html = '<p style="color:red">Hi <span style="font-weight:bold">there</span></p>'
        assert cleaner.clean(html, "post", policy) == "<p>Hi <span>there</span></p>"

    def test_escaping_restored(self, cleaner):
        html = '<p class=\\"intro\\" style=\\"color:red\\">Hi</p>'
        assert cleaner.strip_styles_only(html) == '<p class=\\"intro\\">Hi</p>'


class TestPolicies:
    """Stored overrides and explicit policies."""

    def test_settings_overrides(self):
        settings = CleanerSettings(content_type_overrides={"acf_text": {"mso_classes": False}})
        cleaner = WordMarkupCleaner(settings)
        html = '<span class="MsoNormal">x</span>'
        assert cleaner.clean(html, "acf_text") == html

    def test_policy_store(self):
        store = StaticPolicyStore()
        store.set_override("page", "lang_attributes", False)
        cleaner = WordMarkupCleaner(policy_store=store)
        html = '<span lang="EN-US" class="MsoNormal">x</span>'
        assert cleaner.clean(html, "page") == '<span lang="EN-US">x</span>'

    def test_policy_override_argument(self, cleaner):
        html = '<p class="MsoNormal">x<o:p></o:p></p>'
        policy = CleaningPolicy(xml_namespaces=False)
        assert cleaner.clean(html, "post", policy) == "<p>x<o:p></o:p></p>"


class TestCache:
    """Cached results match fresh results."""

    def test_second_call_hits_memory(self, cleaner, word_document):
        first = cleaner.clean(word_document, "post")
        second = cleaner.clean(word_document, "post")
        assert first == second
        stats = cleaner.cache_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["current_entries"] == 1

    def test_external_tier_shared(self, word_document):
        external = DictCache()
        first = WordMarkupCleaner(external_cache=external).clean(word_document, "post")
        assert len(external.data) == 1

        other = WordMarkupCleaner(external_cache=external)
        assert other.clean(word_document, "post") == first
        assert other.cache_stats()["hits"] == 1
        assert other.cache_stats()["current_entries"] == 1

    def test_policy_change_misses(self, cleaner):
        html = '<p class="MsoNormal" lang="EN-US">x</p>'
        cleaner.clean(html, "post")
        kept = cleaner.clean(html, "post", CleaningPolicy(lang_attributes=False))
        assert kept == '<p lang="EN-US">x</p>'
        assert cleaner.cache_stats()["misses"] == 2

    def test_broken_external_cache(self):
        cleaner = WordMarkupCleaner(external_cache=BrokenCache())
        assert cleaner.clean('<p class="MsoNormal">x</p>', "post") == "<p>x</p>"
        assert cleaner.clean('<p class="MsoNormal">x</p>', "post") == "<p>x</p>"

    def test_disabled_cache(self, cleaner):
        cleaner.set_cache_enabled(False)
        cleaner.clean('<p class="MsoNormal">x</p>', "post")
        cleaner.clean('<p class="MsoNormal">x</p>', "post")
        stats = cleaner.cache_stats()
        assert stats["enabled"] is False
        assert stats["hits"] == 0
        assert stats["current_entries"] == 0

    def test_clear_and_limits(self, cleaner):
        cleaner.clean('<p class="MsoNormal">x</p>', "post")
        cleaner.clear_content_cache()
        assert cleaner.cache_stats()["current_entries"] == 0
        cleaner.set_max_cache_entries(5)
        assert cleaner.cache_stats()["max_entries"] == 10
        assert cleaner.cleanup_cache() == 0


class TestFallbacks:
    """Failures degrade instead of raising."""

    def test_parse_failure_uses_pattern_cleaner(self):
        sink = MemorySink()
        cleaner = WordMarkupCleaner(CleanerSettings(parse_error_tolerance=-1), sink=sink)
        assert cleaner.clean('<p class="MsoNormal">x<o:p></o:p></p>', "post") == "<p>x</p>"
        assert "using pattern cleaner" in sink

    def test_internal_error_returns_input(self, monkeypatch):
        cleaner = WordMarkupCleaner()

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(cleaner, "_run_pipeline", explode)
        html = '<p class="MsoNormal">x</p>'
        assert cleaner.clean(html, "post") == html

    def test_legacy_clean_content(self, cleaner):
        assert cleaner.legacy_clean_content('<p class="MsoNormal">x</p>', "post") == "<p>x</p>"


class TestChunkedCleaning:
    """Large posts on the pattern path are split into chunks."""

    def test_chunks_cleaned_through_cleaner(self):
        content = "".join(
            f'<p class="MsoNormal" style="mso-bidi-font-size:11pt">Paragraph {i}</p>\n' for i in range(50)
        )
        sink = MemorySink()
        settings = CleanerSettings(use_tree_processing=False, chunk_size=500)
        cleaner = WordMarkupCleaner(settings, sink=sink)
        cleaned = cleaner.clean(content, "post")
        assert "Splitting" in sink
        assert "Cleaning post_chunk" in sink
        assert cleaned.count("<p>") == 50
        assert "Mso" not in cleaned
        assert "mso-" not in cleaned

    def test_large_table_stays_one_table(self):
        rows = "".join(
            f'<tr><td width="100" style="mso-border-alt:solid"><p class="MsoNormal">Row {i}</p></td></tr>\n'
            for i in range(300)
        )
        content = (
            '<p class="MsoNormal">Intro</p>\n<table class="MsoTableGrid">'
            + rows
            + '</table>\n<p class="MsoNormal">Outro</p>'
        )
        settings = CleanerSettings(use_tree_processing=False, chunk_size=2000)
        cleaned = WordMarkupCleaner(settings).clean(content, "post")
        table = cleaned[cleaned.index("<table"):cleaned.index("</table>")]
        assert cleaned.count("<table") == 1
        assert table.count("<tr>") == 300
        assert cleaned.count("<tr>") == 300
        assert cleaned.endswith("<p>Outro</p>")

    def test_chunk_statistics_kept_for_whole_run(self):
        content = "".join(
            f'<p class="MsoNormal" style="mso-bidi-font-size:11pt">Paragraph {i}</p>\n' for i in range(50)
        )
        settings = CleanerSettings(use_tree_processing=False, chunk_size=500)
        cleaner = WordMarkupCleaner(settings)
        cleaner.clean(content, "post")
        stats = cleaner.pattern_cleaner.statistics
        assert stats.chunks > 1
        assert stats.rule_counts["mso_classes"] == 50


class TestDebug:

    def test_detailed_changes_logged(self):
        sink = MemorySink()
        cleaner = WordMarkupCleaner(CleanerSettings(debug=True), sink=sink)
        cleaner.clean('<p class="MsoNormal">x</p>', "post")
        assert "=== DETAILED CHANGES FOR post ===" in sink

    def test_statistics_exposed(self, cleaner):
        cleaner.clean('<p class="MsoNormal">x</p>', "post")
        assert cleaner.last_statistics.elements_cleaned == 1


def test_default_cleaner_created_once(monkeypatch):
    monkeypatch.setattr(cleaner_module, "_default_cleaner", None)
    clean('<p class="MsoNormal">x</p>')
    created = cleaner_module._default_cleaner
    clean('<p class="MsoNormal">y</p>')
    assert cleaner_module._default_cleaner is created
