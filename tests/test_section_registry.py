import pytest

from site_composer.errors import UnsupportedSectionKind
from site_composer.models.section import Section, SectionCategory, SectionKind
from site_composer.section_registry import (
    DEFAULT_SECTIONS,
    category_of,
    defaults_for,
    is_supported,
    kinds_in_category,
    normalize_kind,
    validate_section,
)


@pytest.mark.parametrize("kind", [kind.value for kind in SectionKind])
def test_defaults_are_fully_populated(kind):
    section = defaults_for(kind)

    assert section.kind == kind
    assert section.heading, "heading should never be empty"
    assert section.id is None
    assert section.background_color == "bg-background"
    assert section.heading_font_size == "text-3xl"
    assert section.content_font_family == "font-poppins"
    validate_section(section)


def test_defaults_are_fresh_objects():
    first = defaults_for("features")
    second = defaults_for("features")

    assert first == second
    first.items.append({"title": "Extra"})
    assert len(second.items) == 1
    assert len(defaults_for("features").items) == 1


def test_defaults_seed_collections_per_kind():
    assert [field["id"] for field in defaults_for("forms").fields] == ["name", "email", "message"]
    assert defaults_for("contact").fields[1]["type"] == "email"
    footer = defaults_for("footer")
    assert footer.company_name == "Your Company"
    assert [link["label"] for link in footer.links][0] == "Privacy Policy"
    custom = defaults_for("custom")
    assert custom.html == "" and custom.css == ""
    assert defaults_for("skills").items[0]["level"] == 80


def test_unknown_kind_is_rejected():
    with pytest.raises(UnsupportedSectionKind):
        defaults_for("marquee")
    with pytest.raises(UnsupportedSectionKind):
        category_of("marquee")
    assert not is_supported("marquee")


def test_categories_group_header_body_footer():
    assert category_of("hero") == SectionCategory.header
    assert category_of("navigation") == SectionCategory.header
    assert category_of("footer") == SectionCategory.footer
    assert category_of("gallery") == SectionCategory.body
    assert set(kinds_in_category(SectionCategory.header)) == {SectionKind.hero, SectionKind.navigation}
    assert len(DEFAULT_SECTIONS) == len(SectionKind)


def test_legacy_kinds_are_normalised():
    assert normalize_kind("raw-html") == "custom"
    assert normalize_kind("form") == "forms"
    assert validate_section({"type": "raw-html", "html": "<p>hi</p>"}).kind == "custom"
    assert category_of("text") == SectionCategory.body


def test_validate_section_checks_item_shapes():
    with pytest.raises(ValueError):
        validate_section({"type": "skills", "items": [{"name": "Python", "level": 150}]})
    with pytest.raises(ValueError):
        validate_section({"type": "navigation", "items": [{"label": "Home"}]})
    with pytest.raises(UnsupportedSectionKind):
        validate_section({"heading": "No kind"})


def test_persisted_shape_uses_type_and_camel_case():
    section = Section.model_validate(
        {"type": "hero", "heading": "Hi", "backgroundColor": "bg-primary", "legacyFlag": True}
    )

    assert section.kind == "hero"
    assert section.background_color == "bg-primary"
    record = section.to_record()
    assert record["type"] == "hero"
    assert record["backgroundColor"] == "bg-primary"
    assert record["legacyFlag"] is True
