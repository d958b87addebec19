"""Tests for title variant deduplication."""

from types import SimpleNamespace

import pytest
from checkpoint_catalog.catalog.dedup import DeduplicationResolver


@pytest.fixture
def resolver() -> DeduplicationResolver:
    return DeduplicationResolver()


class TestCanonicalize:
    """Tests for canonical title keys."""

    @pytest.mark.parametrize(
        "variant",
        [
            "Clair Obscur: Expedition 33 – Deluxe Edition",
            "Clair Obscur: Expedition 33 - Deluxe Edition",
            "Clair Obscur: Expedition 33: Deluxe Edition",
            "Clair Obscur: Expedition 33 Deluxe Edition",
            "CLAIR OBSCUR: EXPEDITION 33 — deluxe edition",
        ],
    )
    def test_edition_suffix_stripped(self, resolver: DeduplicationResolver, variant: str) -> None:
        """Test every separator style reduces to the base title."""
        assert resolver.canonicalize(variant) == resolver.canonicalize(
            "Clair Obscur: Expedition 33"
        )

    def test_stacked_suffixes(self, resolver: DeduplicationResolver) -> None:
        """Test suffixes are stripped repeatedly."""
        assert resolver.canonicalize("Foo Remastered - Deluxe Edition") == "foo"

    @pytest.mark.parametrize(
        "variant",
        [
            "It Takes Two - Friend's Pass",
            "It Takes Two: Friend’s Pass",
            "It Takes Two Director's Cut",
            "It Takes Two - GOTY Edition",
            "It Takes Two: Season Pass",
        ],
    )
    def test_pass_and_cut_variants(self, resolver: DeduplicationResolver, variant: str) -> None:
        """Test passes and cuts, with either apostrophe."""
        assert resolver.canonicalize(variant) == "it takes two"

    def test_whitespace_and_case(self, resolver: DeduplicationResolver) -> None:
        """Test keys are case-folded with collapsed whitespace."""
        assert resolver.canonicalize("  Hollow   KNIGHT ") == "hollow knight"

    def test_suffix_alone_is_kept(self, resolver: DeduplicationResolver) -> None:
        """Test a title made only of a suffix word is not emptied."""
        assert resolver.canonicalize("Remake") == "remake"

    def test_suffix_inside_word_untouched(self, resolver: DeduplicationResolver) -> None:
        """Test suffixes only match as whole trailing words."""
        assert resolver.canonicalize("Outer Wilds Expansionist") == "outer wilds expansionist"

    def test_custom_table(self) -> None:
        """Test the suffix table can be replaced."""
        resolver = DeduplicationResolver(suffixes=["edición deluxe"])

        assert resolver.canonicalize("Foo - Edición Deluxe") == "foo"
        assert resolver.canonicalize("Foo - Deluxe Edition") == "foo - deluxe edition"


class TestDedupe:
    """Tests for ordered deduplication."""

    def test_keeps_first_of_each_group(self, resolver: DeduplicationResolver) -> None:
        """Test the best-ranked variant survives and order is preserved."""
        games = [
            {"title": "A", "rating": 90},
            {"title": "A: Deluxe Edition", "rating": 85},
            {"title": "B", "rating": 80},
        ]

        result = resolver.dedupe(games)

        assert [g["title"] for g in result] == ["A", "B"]

    def test_variant_ranked_first_wins(self, resolver: DeduplicationResolver) -> None:
        """Test whichever variant the caller ranked first is kept."""
        games = [
            {"title": "Elden Ring - Deluxe Edition"},
            {"title": "Elden Ring"},
        ]

        assert resolver.dedupe(games) == [{"title": "Elden Ring - Deluxe Edition"}]

    def test_objects_with_title(self, resolver: DeduplicationResolver) -> None:
        """Test objects exposing .title are supported."""
        games = [
            SimpleNamespace(title="Tunic"),
            SimpleNamespace(title="Tunic Remastered"),
            SimpleNamespace(title="Celeste"),
        ]

        assert [g.title for g in resolver.dedupe(games)] == ["Tunic", "Celeste"]

    def test_name_key_fallback(self, resolver: DeduplicationResolver) -> None:
        """Test mappings keyed by name work too."""
        games = [{"name": "Hades"}, {"name": "Hades DLC"}]

        assert resolver.dedupe(games) == [{"name": "Hades"}]

    def test_custom_accessor(self, resolver: DeduplicationResolver) -> None:
        """Test an explicit title accessor."""
        games = [("Hades", 1), ("Hades: Bundle", 2)]

        assert resolver.dedupe(games, title_of=lambda g: g[0]) == [("Hades", 1)]

    def test_unknown_variants_stay_separate(self, resolver: DeduplicationResolver) -> None:
        """Test variants outside the table are not grouped."""
        games = [{"title": "Foo"}, {"title": "Foo: Hyper Edition Zero"}]

        assert len(resolver.dedupe(games)) == 2


class TestGroup:
    """Tests for the grouping view."""

    def test_group(self, resolver: DeduplicationResolver) -> None:
        """Test members are listed per canonical key in input order."""
        games = [
            {"title": "A"},
            {"title": "B"},
            {"title": "A - Ultimate Edition"},
        ]

        groups = resolver.group(games)

        assert list(groups) == ["a", "b"]
        assert [g["title"] for g in groups["a"]] == ["A", "A - Ultimate Edition"]
