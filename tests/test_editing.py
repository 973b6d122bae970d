import pytest

from site_composer.editing import EditBuffer, EditorSession
from site_composer.errors import PageNotFound, PersistenceWriteFailed, SectionIndexOutOfRange


def test_effective_content_falls_back_to_persisted(session, three_section_page):
    loaded = session.load(three_section_page.id)

    assert session.effective_content(three_section_page.id) == loaded
    assert not session.has_unsaved_changes(three_section_page.id), "load must not create a buffer entry"


def test_effective_content_prefers_buffer(session, three_section_page, make_section):
    replacement = [make_section("cta", "Call us")]
    session.mutate(three_section_page.id, replacement)

    assert session.effective_content(three_section_page.id) == replacement
    assert session.load(three_section_page.id) != replacement
    assert session.has_unsaved_changes(three_section_page.id)


def test_mutate_replaces_wholesale(session, three_section_page, make_section):
    session.mutate(three_section_page.id, [make_section("hero", "One"), make_section("footer", "Two")])
    session.mutate(three_section_page.id, [make_section("cta", "Only")])

    assert [section.heading for section in session.effective_content(three_section_page.id)] == ["Only"]


def test_save_persists_and_clears_buffer(store, session, three_section_page, make_section):
    session.mutate(three_section_page.id, [make_section("cta", "Saved")])

    assert session.save(three_section_page.id) is True
    assert not session.has_unsaved_changes(three_section_page.id)
    assert [section.heading for section in store.get_page(three_section_page.id).content] == ["Saved"]


def test_save_without_changes_is_a_noop(store, session, three_section_page):
    assert session.save(three_section_page.id) is False
    assert store.page_writes == 0


def test_failed_save_keeps_buffer_for_retry(store, session, three_section_page, make_section):
    edits = [make_section("cta", "Keep me")]
    session.mutate(three_section_page.id, edits)
    store.fail_writes = True

    with pytest.raises(PersistenceWriteFailed) as excinfo:
        session.save(three_section_page.id)

    assert excinfo.value.retryable
    assert session.effective_content(three_section_page.id) == edits
    assert len(store.get_page(three_section_page.id).content) == 3

    store.fail_writes = False
    assert session.save(three_section_page.id) is True
    assert store.get_page(three_section_page.id).content[0].heading == "Keep me"


def test_switching_pages_keeps_other_buffers(store, session, make_page, make_section):
    home = make_page([make_section("hero", "Home hero")])
    about = make_page([make_section("about", "About")], title="About", slug="about", is_homepage=False)

    session.select_page(home.id)
    session.mutate(home.id, [make_section("hero", "Edited home")])
    session.select_page(about.id)
    session.mutate(about.id, [make_section("about", "Edited about")])
    session.select_page(home.id)

    assert session.has_unsaved_changes(home.id)
    assert session.has_unsaved_changes(about.id)
    session.save(about.id)
    assert session.has_unsaved_changes(home.id)
    assert store.get_page(home.id).content[0].heading == "Home hero"
    assert store.get_page(about.id).content[0].heading == "Edited about"


def test_select_page_resets_section_selection(session, three_section_page):
    session.select_page(three_section_page.id)
    session.select_section(2)
    assert session.editing_index == 2

    session.select_page(three_section_page.id)
    assert session.editing_index is None


def test_select_page_rejects_unknown_and_foreign_pages(store, session, three_section_page):
    session.select_page(three_section_page.id)
    session.select_section(1)

    with pytest.raises(PageNotFound):
        session.select_page("missing")
    assert (session.selected_page_id, session.editing_index) == (three_section_page.id, 1)

    scoped = EditorSession(store, website_id="another-site")
    with pytest.raises(PageNotFound):
        scoped.select_page(three_section_page.id)
    assert scoped.selected_page_id is None

    own = EditorSession(store, website_id=three_section_page.website_id)
    own.select_page(three_section_page.id)
    assert own.selected_page_id == three_section_page.id


def test_select_section_validates_index(session, three_section_page):
    with pytest.raises(ValueError):
        session.select_section(0)

    session.select_page(three_section_page.id)
    with pytest.raises(SectionIndexOutOfRange):
        session.select_section(3)
    assert session.editing_index is None


def test_discard_drops_unsaved_edits(session, make_page, make_section):
    home = make_page([make_section("hero", "Home")])
    other = make_page([make_section("about", "Other")], slug="other", is_homepage=False)
    session.mutate(home.id, [])
    session.mutate(other.id, [])

    session.discard(home.id)
    assert not session.has_unsaved_changes(home.id)
    assert session.has_unsaved_changes(other.id)

    session.discard()
    assert not session.has_unsaved_changes(other.id)
    assert session.effective_content(home.id)[0].heading == "Home"


def test_sessions_do_not_share_state(store, three_section_page):
    first = EditorSession(store)
    second = EditorSession(store)

    first.mutate(three_section_page.id, [])

    assert second.effective_content(three_section_page.id) == first.load(three_section_page.id)
    assert not second.has_unsaved_changes(three_section_page.id)


def test_buffer_returns_copies_of_the_entry_list():
    buffer = EditBuffer()
    buffer.put("page", [])

    buffer.get("page").append("stray")

    assert buffer.get("page") == []
    assert buffer.dirty_pages() == ["page"]
