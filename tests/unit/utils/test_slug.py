from app.utils import generate_slug
from app.utils.slug import MAX_SLUG_LENGTH, with_suffix


class TestSlug:
    def test_basic(self):
        assert generate_slug("Acme Corp") == "acme-corp"

    def test_accents_and_symbols(self):
        assert generate_slug("Čokolada & Kava d.o.o.") == "cokolada-kava-doo"

    def test_underscores_and_repeated_separators(self):
        assert generate_slug("  my__team -- sales ") == "my-team-sales"

    def test_empty_result_has_fallback(self):
        assert generate_slug("!!!") == "organization"

    def test_length_limit(self):
        assert len(generate_slug("a" * 80)) == MAX_SLUG_LENGTH

    def test_suffix_keeps_limit(self):
        slug = with_suffix("a" * MAX_SLUG_LENGTH, 12)
        assert slug.endswith("-12")
        assert len(slug) == MAX_SLUG_LENGTH
