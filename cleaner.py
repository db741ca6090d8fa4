"""
WordCleanse Cleaner

Public entry point. ``WordMarkupCleaner.clean`` composes detection, policy
resolution, caching and one of the two cleaning paths, and never raises: on
any internal failure the input comes back unchanged.
"""

import re
from typing import Optional

from content_cache import ContentCache, ExternalCache, make_cache_key
from debug_log import ConsoleSink, DebugSink, NullSink, log_detailed_changes
from detection import contains_word_markup, has_complex_html
from html_tree import ParseFailure, strip_all_tags
from pattern_cleaner import PatternCleaner
from patterns import OPEN_TAG, STYLE_ATTR, add_slashes, has_escaped_quotes, strip_slashes
from policy import SIMPLE_TEXT_TYPES, CleaningPolicy, PolicyStore, StaticPolicyStore, resolve_policy
from processor import ProcessingStatistics, TreeProcessor
from protection import ProtectedRegions
from reconstruction import Reconstructor
from settings import CleanerSettings, clamp_cache_entries


class WordMarkupCleaner:
    """
    Removes Word-specific markup from HTML fragments.

    Flow of one call:
    detector (bail out) -> cache lookup -> tree or pattern path -> cache store
    """

    def __init__(self, settings: CleanerSettings = None, policy_store: PolicyStore = None,
                 external_cache: ExternalCache = None, sink: DebugSink = None):
        self.settings = settings or CleanerSettings()
        self.policy_store = policy_store or StaticPolicyStore(self.settings.content_type_overrides)
        if sink is None:
            sink = ConsoleSink() if self.settings.debug else NullSink()
        self.sink = sink
        self.cache = ContentCache(
            external=external_cache,
            max_entries=self.settings.max_cache_entries,
            ttl=self.settings.cache_ttl,
            enabled=self.settings.cache_enabled,
            version=self.settings.engine_version,
            sink=self.sink,
        )
        self.tree_processor = TreeProcessor(self.sink, self.settings.parse_error_tolerance)
        self.pattern_cleaner = PatternCleaner(
            self.sink,
            chunk_size=self.settings.chunk_size,
            tolerance=self.settings.parse_error_tolerance,
            chunk_cleaner=self._clean_chunk,
        )

    def resolve_policy(self, content_type: str) -> CleaningPolicy:
        return resolve_policy(content_type, self.policy_store.get_overrides(content_type))

    # =========================================================================
    # CLEANING
    # =========================================================================

    def clean(self, content: str, content_type: str = "default",
              policy_override: Optional[CleaningPolicy] = None) -> str:
        """
        Clean ``content`` for ``content_type``.

        Args:
            content: HTML fragment
            content_type: Selects the default policy and stored overrides
            policy_override: Use this policy instead of resolving one

        Returns:
            Cleaned fragment, or ``content`` unchanged when nothing applies
            or anything fails
        """
        return self.clean_content(content, content_type, policy_override)

    def clean_content(self, content: str, content_type: str = "default",
                      policy: Optional[CleaningPolicy] = None) -> str:
        if not isinstance(content, str) or not content or not self.settings.enable_cleaning:
            return content

        try:
            if policy is None:
                policy = self.resolve_policy(content_type)

            if policy.strip_all_html:
                return strip_all_tags(content) if "<" in content or "&" in content else content

            if not contains_word_markup(content):
                if policy.strip_all_styles:
                    return self.strip_styles_only(content)
                self.sink.log(f"No Word markup in {content_type}, skipping")
                return content

            key = make_cache_key(content, policy, content_type, self.settings.engine_version)
            cached = self.cache.lookup(key)
            if cached is not None:
                return cached

            self.sink.log(f"Cleaning {content_type} ({len(content)} chars) with {policy}")
            cleaned = self._run_pipeline(content, content_type, policy)
            self.cache.store(key, cleaned)

            if self.settings.debug:
                log_detailed_changes(self.sink, content, cleaned, content_type)
            return cleaned
        except Exception as e:
            self.sink.log(f"Cleaning {content_type} failed, content returned unchanged: {e!r}")
            return content

    def _use_tree(self, content: str, content_type: str, policy: CleaningPolicy) -> bool:
        if not (self.settings.use_tree_processing and policy.use_tree_processing):
            return False
        return not (content_type in SIMPLE_TEXT_TYPES and not has_complex_html(content))

    def _run_pipeline(self, content: str, content_type: str, policy: CleaningPolicy) -> str:
        reconstructor = Reconstructor(self.sink, self.settings.parse_error_tolerance)
        if self._use_tree(content, content_type, policy):
            try:
                return self.tree_processor.process(content, policy, reconstructor)
            except ParseFailure as e:
                self.sink.log(f"Tree processing failed, using pattern cleaner: {e}")
                return self.pattern_cleaner.clean(
                    e.content, content_type, policy, regions=e.regions, reconstructor=reconstructor
                )
        return self.pattern_cleaner.clean(content, content_type, policy, reconstructor=reconstructor)

    def _clean_chunk(self, chunk: str, chunk_type: str, policy: CleaningPolicy) -> str:
        return self.clean_content(chunk, chunk_type, policy)

    def clean_excerpt(self, excerpt: str) -> str:
        return self.clean(excerpt, "excerpt")

    def legacy_clean_content(self, content: str, content_type: str = "default",
                             policy: Optional[CleaningPolicy] = None,
                             regions: Optional[ProtectedRegions] = None) -> str:
        """
        Run only the pattern cleaner.

        With ``regions``, ``content`` is expected to already hold their
        placeholders; the regions are rebuilt and substituted back.
        """
        if policy is None:
            policy = self.resolve_policy(content_type)
        try:
            return self.pattern_cleaner.clean(content, content_type, policy, regions=regions)
        except Exception as e:
            self.sink.log(f"Legacy cleaning failed, content returned unchanged: {e!r}")
            return content

    def strip_styles_only(self, content: str) -> str:
        """Remove every style attribute, leaving everything else alone."""
        escaped = has_escaped_quotes(content)
        if escaped:
            content = strip_slashes(content)
        content = re.sub(OPEN_TAG, lambda m: STYLE_ATTR.sub("", m.group(0)), content)
        return add_slashes(content) if escaped else content

    @property
    def last_statistics(self) -> ProcessingStatistics:
        return self.tree_processor.statistics

    # =========================================================================
    # CACHE
    # =========================================================================

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def clear_content_cache(self):
        self.cache.clear()
        self.sink.log("Content cache cleared")

    def cleanup_cache(self) -> int:
        return self.cache.cleanup(self.settings.cache_max_age)

    def set_cache_enabled(self, enabled: bool):
        self.settings.cache_enabled = enabled
        self.cache.enabled = enabled

    def set_max_cache_entries(self, max_entries: int):
        self.settings.max_cache_entries = clamp_cache_entries(max_entries)
        self.cache.set_max_entries(self.settings.max_cache_entries)


_default_cleaner: Optional[WordMarkupCleaner] = None


def clean(content: str, content_type: str = "default",
          policy_override: Optional[CleaningPolicy] = None) -> str:
    """Clean with a shared default-configured cleaner."""
    global _default_cleaner
    if _default_cleaner is None:
        _default_cleaner = WordMarkupCleaner()
    return _default_cleaner.clean(content, content_type, policy_override)
