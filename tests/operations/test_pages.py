"""
Tests for page operations against a scripted wiki.
"""

import pytest

from helpers import error_response, token_response, xml_response

from mediawiki_client.operations.pages import (
    PageInfo, edit, get_category_members, get_page_info, normalize_title, upload_file
)
from mediawiki_client.runtime.errors import ErrorKind, WikiError


EDIT_OK = xml_response('<edit result="Success" pageid="1" title="Sandbox" newrevid="100"/>')


class TestNormalizeTitle:

    @pytest.mark.parametrize("raw,expected", [
        ("main_page", "Main page"),
        ("  Main   Page ", "Main Page"),
        ("user:example", "User:example"),
        ("éclair", "Éclair"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_title(raw) == expected

    def test_blank(self):
        with pytest.raises(WikiError):
            normalize_title(" _ ")


class TestPageInfo:
    """Test batched page lookups."""

    def test_results_in_input_order(self, client, transport):
        transport.enqueue(xml_response(
            '<query><normalized><n from="User:example" to="User:Example"/></normalized>'
            "<pages>"
            '<page _idx="1" pageid="1" ns="0" title="Main page" length="120" lastrevid="99"'
            ' touched="2024-01-01T00:00:00Z"/>'
            '<page _idx="-1" ns="0" title="Nonexistent" missing=""/>'
            '<page _idx="7" pageid="7" ns="2" title="User:Example" length="5" lastrevid="3"/>'
            "</pages></query>"
        ))

        infos = get_page_info(client, ["main_page", "Main_page", "Nonexistent", "user:example"])

        assert transport.call_count == 1
        params = transport.params()
        assert params["prop"] == "info"
        assert params["titles"] == ["Main page", "Nonexistent", "User:example"]
        assert infos[0] is infos[1]
        assert infos[0] == PageInfo(title="Main page", exists=True, page_id=1, namespace=0,
                                    length=120, last_revision_id=99, touched="2024-01-01T00:00:00Z")
        assert not infos[2].exists
        assert infos[2].page_id is None
        assert infos[3].title == "User:Example"
        assert infos[3].namespace == 2

    def test_batches_by_session_cap(self, client, transport):
        titles = [f"Page {i}" for i in range(120)]
        transport.enqueue(*[xml_response("<query><pages/></query>") for _ in range(3)])
        infos = get_page_info(client, titles)
        assert transport.call_count == 3
        assert [len(request.query["titles"]) for request in transport.requests] == [50, 50, 20]
        assert infos == [None] * 120

    def test_empty_input(self, client, transport):
        assert get_page_info(client, []) == []
        assert transport.call_count == 0


class TestCategoryMembers:
    """Test paged category listing."""

    def test_paged_listing(self, client, transport):
        transport.enqueue(
            xml_response('<continue cmcontinue="page|2" continue="-||"/>'
                         '<query><categorymembers><cm title="A"/><cm title="B"/></categorymembers></query>'),
            xml_response('<query><categorymembers><cm title="C"/></categorymembers></query>'),
        )
        members = list(get_category_members(client, "living_people"))
        assert members == ["A", "B", "C"]
        first = transport.params(0)
        assert first["list"] == "categorymembers"
        assert first["cmtitle"] == "Category:Living people"
        assert first["cmlimit"] == "max"
        assert first["format"] == "xml"
        assert transport.params(1)["cmcontinue"] == "page|2"

    def test_limit(self, client, transport):
        transport.enqueue(xml_response(
            '<continue cmcontinue="x" continue="-||"/>'
            '<query><categorymembers><cm title="A"/><cm title="B"/></categorymembers></query>'
        ))
        assert list(get_category_members(client, "Category:Foo", limit=2)) == ["A", "B"]
        assert transport.params()["cmlimit"] == 2
        assert transport.call_count == 1


class TestEdit:
    """Test throttled writes."""

    def test_edit_fetches_token_and_throttles(self, client, transport, clock):
        transport.route("query", token_response("csrf", "tok+\\"))
        transport.route("edit", EDIT_OK, EDIT_OK)

        edit(client, "sandbox", "Hello", summary="test", minor=True)
        edit(client, "Sandbox", "Hello again")

        edits = [request for request in transport.requests if request.action == "edit"]
        assert len(edits) == 2
        assert edits[0].method == "POST"
        assert edits[0].body["token"] == "tok+\\"
        assert edits[0].body["title"] == "Sandbox"
        assert edits[0].body["minor"] is True
        assert edits[1].body["minor"] is False
        # one token request for both edits
        assert transport.call_count == 3
        assert clock.sleeps == [10.0]

    def test_edit_conflict(self, client, transport):
        transport.route("query", token_response())
        transport.route("edit", error_response("editconflict", "Edit conflict detected"))
        with pytest.raises(WikiError) as exc_info:
            edit(client, "Sandbox", "text")
        assert exc_info.value.kind == ErrorKind.CONFLICT

    def test_edit_not_saved(self, client, transport):
        transport.route("query", token_response())
        transport.route("edit", xml_response('<edit result="Failure"><captcha type="image"/></edit>'))
        with pytest.raises(WikiError) as exc_info:
            edit(client, "Sandbox", "text")
        assert exc_info.value.code == "edit-failure"


class TestUploadFile:

    def test_strips_file_prefix(self, client, transport):
        transport.route("query", token_response())
        transport.route("upload", xml_response('<upload result="Success" filename="Example.jpg"/>'))
        upload_file(client, b"\xff\xd8\xff", "File:Example.jpg", text="desc")
        params = transport.params()
        assert params["filename"] == "Example.jpg"
        assert params["format"] == "xml"
        assert params["token"] == "abc123+\\"
