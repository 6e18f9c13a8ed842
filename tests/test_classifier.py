import pytest

from pricing_strategy.engine.classifier import CategoryClassifier, is_rolled
from pricing_strategy.engine.models import Category


@pytest.fixture(scope="module")
def classifier(settings):
    return CategoryClassifier(settings)


@pytest.mark.parametrize("name, group", [
    ("FC36", "Large Rolled Panel"),
    ("37 7/8 Corrugated", "Large Rolled Panel"),
    ('12" Interloc', "Small Rolled Panels"),
    ('1" Nail Strip 16"', "Small Rolled Panels"),
    ("ShipLap", "Cladding Series"),
    ('6" Box Rib Reverse', "Cladding Series"),
    ("Clips", "Parts"),
    ("Fasteners", "Parts"),
    ("Something Nobody Listed", "Parts"),
])
def test_classify_known_names(classifier, name, group):
    assert classifier.classify(name) == group


@pytest.mark.parametrize("name", ["", None, "   "])
def test_classify_is_total(classifier, name):
    assert classifier.classify(name) == "Parts"


def test_classify_trims_whitespace(classifier):
    assert classifier.classify("  FC36 ") == "Large Rolled Panel"


def test_classify_is_case_sensitive_like_the_lists(classifier):
    # Lists hold exact names; near-misses fall through to Parts
    assert classifier.classify("fc36") == "Parts"


@pytest.mark.parametrize("name, fastener", [
    ("Pancake", "Pancake"),
    ("pancake head", "Pancake"),
    ("Pan Socket Type S", "Pan Socket Type S"),
    ("Type S", "Type S"),
    ("Driller #3", "Driller"),
    ("Lap Stitch", "Lap Stitch"),
    ("Type 17", "Type 17"),
    ("General Fasteners", "General Fasteners"),
    ("Fasteners", "General Fasteners"),
    ("FC36", None),
    ("Clips", None),
    ("Type Shingle", None),
    ("Type Alpha Trim", None),
    ("Pancakes", None),
    ("", None),
])
def test_fastener_type(classifier, name, fastener):
    assert classifier.fastener_type(name) == fastener


def test_rolled_groups():
    assert is_rolled("Large Rolled Panel")
    assert is_rolled("Small Rolled Panels")
    assert not is_rolled("Cladding Series")
    assert not is_rolled("Parts")


def test_category_group_is_derived_from_name():
    category = Category(id="1", name="FC36")
    assert category.group == "Large Rolled Panel"

    category.name = "Clips"
    assert category.group == "Parts"
