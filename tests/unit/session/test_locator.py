"""Unit tests for element predicates and the multi-frame ElementLocator."""

import pytest

from rctv.session.locator import (
    ByAttribute,
    ByTag,
    ByTextContains,
    ElementLocator,
    FirstOf,
    FrameSearch,
)

SIGN_IN = "//a[contains(text(), 'sign in')]"
JOIN_BUTTON = "//button[contains(text(), 'Join')]"
JOIN_INPUT = "//input[@value='Join']"


class TestElementPredicates:
    """Test compilation of predicates to concrete queries."""

    def test_by_text_contains_when_compiled_then_xpath_with_tag(self) -> None:
        queries = ByTextContains("sign in", tag="a").compile()

        assert len(queries) == 1
        assert queries[0].by == "xpath"
        assert queries[0].value == SIGN_IN

    def test_by_text_contains_when_no_tag_then_wildcard(self) -> None:
        assert ByTextContains("Leave").compile()[0].value == "//*[contains(text(), 'Leave')]"

    def test_by_text_contains_when_text_has_quote_then_double_quoted(self) -> None:
        value = ByTextContains("Don't", tag="span").compile()[0].value

        assert value == '//span[contains(text(), "Don\'t")]'

    def test_by_attribute_when_compiled_then_attribute_xpath(self) -> None:
        value = ByAttribute("aria-label", "Sign in with Google", tag="a").compile()[0].value

        assert value == "//a[@aria-label='Sign in with Google']"

    def test_by_tag_when_compiled_then_tag_name_query(self) -> None:
        query = ByTag("iframe").compile()[0]

        assert query.by == "tag name"
        assert query.value == "iframe"

    def test_first_of_when_compiled_then_queries_in_order(self) -> None:
        queries = FirstOf((JOIN_BUTTON, JOIN_INPUT)).compile()

        assert [q.value for q in queries] == [JOIN_BUTTON, JOIN_INPUT]

    def test_predicates_when_equal_fields_then_equal_and_hashable(self) -> None:
        assert ByTextContains("Join") == ByTextContains("Join")
        assert len({ByTextContains("Join"), ByTextContains("Join")}) == 1


class TestElementLocator:
    """Test locate() search order, frame handling and visibility filtering."""

    @pytest.fixture
    def locator(self) -> ElementLocator:
        return ElementLocator()

    @pytest.mark.asyncio
    async def test_locate_when_nothing_matches_then_none(self, locator, make_document) -> None:
        document = make_document(frames=[{}, {}])

        found = await locator.locate(
            document, ByTextContains("sign in", tag="a"), frame_search=FrameSearch.ALL_FRAMES
        )

        assert found is None
        assert document.active_frame is None

    @pytest.mark.asyncio
    async def test_locate_when_match_in_main_then_main_document_result(
        self, locator, make_document, make_element
    ) -> None:
        document = make_document()
        element = document.add(SIGN_IN, make_element("sign-in", tag="a"))

        found = await locator.locate(document, ByTextContains("sign in", tag="a"))

        assert found is not None
        assert found.element is element
        assert found.frame_index is None
        assert found.query.value == SIGN_IN

    @pytest.mark.asyncio
    async def test_locate_when_match_only_in_frame_and_no_frame_search_then_none(
        self, locator, make_document, make_element
    ) -> None:
        document = make_document(frames=[{SIGN_IN: [make_element("framed")]}])

        found = await locator.locate(document, ByTextContains("sign in", tag="a"))

        assert found is None
        assert document.frame_entries == []

    @pytest.mark.asyncio
    async def test_locate_when_match_in_second_frame_then_left_in_that_frame(
        self, locator, make_document, make_element
    ) -> None:
        target = make_element("framed")
        document = make_document(frames=[{}, {SIGN_IN: [target]}, {SIGN_IN: [make_element("later")]}])

        found = await locator.locate(
            document, ByTextContains("sign in", tag="a"), frame_search=FrameSearch.ALL_FRAMES
        )

        assert found is not None
        assert found.element is target
        assert found.frame_index == 1
        assert document.active_frame == 1
        assert document.frame_entries == [0, 1]

    @pytest.mark.asyncio
    async def test_locate_when_main_and_frame_match_then_main_wins(
        self, locator, make_document, make_element
    ) -> None:
        main_element = make_element("main")
        document = make_document(main={SIGN_IN: [main_element]}, frames=[{SIGN_IN: [make_element("framed")]}])

        found = await locator.locate(
            document, ByTextContains("sign in", tag="a"), frame_search=FrameSearch.ALL_FRAMES
        )

        assert found.element is main_element
        assert document.frame_entries == []

    @pytest.mark.asyncio
    async def test_locate_when_frame_cannot_be_entered_then_skipped(
        self, locator, make_document, make_element
    ) -> None:
        target = make_element("framed")
        document = make_document(frames=[{SIGN_IN: [make_element("broken")]}, {SIGN_IN: [target]}], broken_frames=[0])

        found = await locator.locate(
            document, ByTextContains("sign in", tag="a"), frame_search=FrameSearch.ALL_FRAMES
        )

        assert found.element is target
        assert found.frame_index == 1

    @pytest.mark.asyncio
    async def test_locate_when_first_of_then_earlier_query_preferred(
        self, locator, make_document, make_element
    ) -> None:
        button = make_element("button")
        document = make_document(main={JOIN_INPUT: [make_element("input")], JOIN_BUTTON: [button]})

        found = await locator.locate(document, FirstOf((JOIN_BUTTON, JOIN_INPUT)))

        assert found.element is button
        assert found.query.value == JOIN_BUTTON

    @pytest.mark.asyncio
    async def test_locate_when_lookup_fails_then_treated_as_no_match(
        self, locator, make_document, make_element
    ) -> None:
        fallback = make_element("input")
        document = make_document(main={JOIN_BUTTON: [make_element("button")], JOIN_INPUT: [fallback]})
        document.failing_queries.add(JOIN_BUTTON)

        found = await locator.locate(document, FirstOf((JOIN_BUTTON, JOIN_INPUT)))

        assert found.element is fallback

    @pytest.mark.asyncio
    async def test_locate_when_visible_only_then_hidden_candidates_skipped(
        self, locator, make_document, make_element
    ) -> None:
        hidden_display = make_element("display-none", css={"display": "none"})
        hidden_visibility = make_element("visibility-hidden", css={"visibility": "hidden"})
        not_displayed = make_element("not-displayed", displayed=False)
        visible = make_element("visible")
        document = make_document(
            main={JOIN_BUTTON: [hidden_display, hidden_visibility, not_displayed, visible]}
        )

        found = await locator.locate(document, FirstOf((JOIN_BUTTON,)), visible_only=True)

        assert found.element is visible

    @pytest.mark.asyncio
    async def test_locate_when_visible_only_and_all_hidden_then_none(
        self, locator, make_document, make_element
    ) -> None:
        document = make_document(main={JOIN_BUTTON: [make_element("hidden", displayed=False)]})

        found = await locator.locate(document, FirstOf((JOIN_BUTTON,)), visible_only=True)

        assert found is None

    @pytest.mark.asyncio
    async def test_locate_when_called_twice_on_unchanged_document_then_same_element(
        self, locator, make_document, make_element
    ) -> None:
        document = make_document(frames=[{}, {SIGN_IN: [make_element("a"), make_element("b")]}])
        predicate = ByTextContains("sign in", tag="a")

        first = await locator.locate(document, predicate, frame_search=FrameSearch.ALL_FRAMES)
        await document.enter_default_frame()
        second = await locator.locate(document, predicate, frame_search=FrameSearch.ALL_FRAMES)

        assert first.element is second.element
        assert first.frame_index == second.frame_index == 1

    @pytest.mark.asyncio
    async def test_locate_when_started_inside_frame_then_main_document_also_searched(
        self, locator, make_document, make_element
    ) -> None:
        main_element = make_element("main")
        document = make_document(main={SIGN_IN: [main_element]}, frames=[{}])
        await document.enter_frame(0)

        found = await locator.locate(
            document, ByTextContains("sign in", tag="a"), frame_search=FrameSearch.ALL_FRAMES
        )

        assert found.element is main_element
        assert found.frame_index is None
