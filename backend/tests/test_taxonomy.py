import pytest

from app.services.errors import TaxonomyConflictError
from app.services.taxonomy import CategoryRef, SubcategoryRef, TaxonomyIndex, conflicting_entry, slugify


@pytest.mark.parametrize("value", ["Rings", "rings", "RINGS", "  Rings  "])
def test_category_lookup_ignores_case(taxonomy, value):
    assert taxonomy.category(value).id == "c1"


def test_category_lookup_by_slug():
    index = TaxonomyIndex([CategoryRef(id="c9", name="Nose Pins", slug="nose-pins")], [])
    assert index.category("NOSE-PINS").id == "c9"
    assert index.category("nose pins").id == "c9"
    assert index.category("earrings") is None


def test_subcategory_lookup_returns_parent(taxonomy):
    sub = taxonomy.subcategory("gold rings")
    assert sub.id == "s1"
    assert sub.category_id == "c1"


def test_shared_subcategory_name_resolved_by_parent():
    index = TaxonomyIndex(
        [CategoryRef("c1", "Rings", "rings"), CategoryRef("c2", "Necklaces", "necklaces")],
        [SubcategoryRef("s1", "Gold", "gold", "c1"), SubcategoryRef("s2", "Gold", "gold", "c2")],
    )
    assert index.subcategory("Gold", "c2").id == "s2"
    assert index.subcategory("Gold", "c1").id == "s1"
    # no candidate under the category: hand back one so the caller can report the mismatch
    assert index.subcategory("Gold", "c7").id == "s1"


def test_colliding_categories_are_rejected():
    with pytest.raises(TaxonomyConflictError):
        TaxonomyIndex(
            [CategoryRef("c1", "Rings", "rings"), CategoryRef("c2", "RINGS", "rings-2")],
            [],
        )


def test_colliding_subcategories_in_one_category_are_rejected():
    with pytest.raises(TaxonomyConflictError):
        TaxonomyIndex(
            [CategoryRef("c1", "Rings", "rings")],
            [SubcategoryRef("s1", "Gold", "gold", "c1"), SubcategoryRef("s2", "Plain", "GOLD", "c1")],
        )


def test_slugify():
    assert slugify("  Gold & Diamond Rings ") == "gold-diamond-rings"
    assert slugify("Nose_Pins--New") == "nose-pins-new"


def test_conflicting_entry_checks_names_and_slugs():
    existing = [CategoryRef("1", "Rings", "rings"), CategoryRef("2", "Bangles", "bangles")]
    assert conflicting_entry(existing, "rings", "rings").id == "1"
    assert conflicting_entry(existing, "Kadas", "bangles").id == "2"
    assert conflicting_entry(existing, "Rings", "rings", exclude_id=1) is None
    assert conflicting_entry(existing, "Anklets", "anklets") is None
