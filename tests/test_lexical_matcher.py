"""Keyword scoring, synonym expansion and negative-keyword veto."""

from skuMatchModel.mainModelLayer.lexical_matcher import (
    W_NEGATIVE,
    expand_with_synonyms,
    keyword_match,
    normalize_text,
    score_service,
    service_tokens,
)
from tests.fakes import TAP, TOILET, TV, make_service, seed_services, token_service, token_text


# ------------------------------------------------------------------ #
# Text helpers
# ------------------------------------------------------------------ #


class TestNormalisation:
    def test_strips_punctuation_and_case(self):
        assert normalize_text("  My TAP's   dripping!! ") == "my taps dripping"

    def test_expansion_runs_both_directions(self):
        expanded = expand_with_synonyms("the loo keeps dripping")
        assert "toilet" in expanded      # synonym -> canonical
        assert "leaking" in expanded     # canonical -> synonym
        assert expanded[:4] == ["the", "loo", "keeps", "dripping"]

    def test_expansion_has_no_duplicates(self):
        expanded = expand_with_synonyms("tap tap faucet")
        assert len(expanded) == len(set(expanded))

    def test_service_tokens_include_phrases_words_and_name(self):
        toks = service_tokens(TAP)
        assert "leaking tap" in toks
        assert "leaking" in toks
        assert "repair" in toks


# ------------------------------------------------------------------ #
# Scoring
# ------------------------------------------------------------------ #


class TestKeywordMatch:
    def test_best_match_first(self):
        hits = keyword_match("my tap keeps dripping", seed_services())
        assert hits[0].service.sku_code == "PLUMB-TAP-REPAIR"
        assert hits[0].score > 0

    def test_negative_keyword_vetoes_service(self):
        # plenty of positives, but "shower" is a negative keyword for the tap SKU
        text = "tap faucet dripping washer in the shower"
        assert all(h.service.sku_code != "PLUMB-TAP-REPAIR" for h in keyword_match(text, seed_services()))

    def test_veto_holds_even_when_positives_outweigh_penalty(self):
        big = make_service("BIGTAP", "Tap", [f"tok{i}" for i in range(20)], negative_keywords=["shower"])
        text = " ".join(f"tok{i}" for i in range(20)) + " shower"
        assert score_service(big, expand_with_synonyms(text), text) == 20 + W_NEGATIVE
        assert keyword_match(text, [big]) == []

    def test_score_counts_each_exact_token(self):
        svc = token_service("SYNX", 12)
        hits = keyword_match(token_text(svc), [svc])
        assert hits[0].score == 12

    def test_ties_keep_catalog_order(self):
        a = make_service("A", "Alpha", ["widget"])
        b = make_service("B", "Beta", ["widget"])
        hits = keyword_match("widget", [a, b])
        assert [h.service.sku_code for h in hits] == ["A", "B"]

    def test_top_k_limit(self):
        services = [make_service(f"S{i}", f"Svc{i}", ["widget"]) for i in range(8)]
        assert len(keyword_match("widget", services, top_k=3)) == 3

    def test_dripping_tap_keyword_found_through_synonyms(self):
        svc = make_service("DRIP", "Drips", ["dripping tap"])
        hits = keyword_match("my faucet is leaking", [svc])
        assert [h.service.sku_code for h in hits] == ["DRIP"]
        assert keyword_match("my tap keeps dripping", [svc])[0].score >= 2

    def test_no_hits_for_unrelated_text_or_empty_catalog(self):
        assert keyword_match("quantum chromodynamics", [TAP, TOILET, TV]) == []
        assert keyword_match("dripping tap", []) == []
