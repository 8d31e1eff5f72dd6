import json
from pathlib import Path

from rich.text import Text
from textual.events import Key, Paste

from proof_explore.__main__ import ExploreFriendsTui
from proof_explore.directory import PeopleDirectory
from proof_explore.models import MatchResult


def _directory() -> PeopleDirectory:
    return PeopleDirectory.from_dict(
        {
            "profiles": [
                {"id": "u1", "username": "ayaan_k", "first_name": "Ayaan", "last_name": "Khan"},
                {"id": "u2", "username": "sarah.codes", "first_name": "Sarah", "last_name": "Malik"},
                {"id": "u3", "username": "zaydp", "first_name": "Zayd", "last_name": "Patel"},
                {"id": "u4", "username": "sara_b", "first_name": "Sara", "last_name": "Baker"},
            ],
            "friends": [
                {"user1_id": "u1", "user2_id": "u2", "status": "pending", "requested_by": "u2"},
            ],
        }
    )


def _app(directory: PeopleDirectory | None = None, **kwargs: object) -> ExploreFriendsTui:
    app = ExploreFriendsTui(directory=directory or _directory(), user_id="u1", **kwargs)
    app._refresh_view = lambda **_kwargs: None  # type: ignore[method-assign]
    return app


def _highlight(app: ExploreFriendsTui, monkeypatch, username: str) -> MatchResult:
    result = next(
        result for result in app._results if result.candidate.username == username
    )
    monkeypatch.setattr(app, "_highlighted_result", lambda: result)
    return result


def _capture_notifications(app: ExploreFriendsTui, monkeypatch) -> list[tuple[str, str]]:
    notifications: list[tuple[str, str]] = []

    def _fake_notify(message: str, **kwargs: object) -> None:
        notifications.append((message, str(kwargs.get("severity", "information"))))

    monkeypatch.setattr(app, "notify", _fake_notify)
    return notifications


def test_initial_query_is_ranked_on_start() -> None:
    app = _app(initial_query="sara")

    assert [result.candidate.username for result in app._results] == [
        "sarah.codes",
        "sara_b",
    ]
    assert app._results[0].candidate.pending == "incoming"


def test_empty_query_shows_no_results() -> None:
    app = _app()

    assert app._results == []
    assert app._status_text() == "Start typing to search users."


def test_typing_updates_query_and_results() -> None:
    app = _app()

    for character in "zayd":
        app.on_key(Key(character, character))

    assert app._search_query == "zayd"
    assert [result.candidate.id for result in app._results] == ["u3"]
    assert app._status_text() == "1 match for 'zayd'."


def test_backspace_space_and_escape_edit_the_query() -> None:
    app = _app(initial_query="sara")

    app.on_key(Key("backspace", None))
    app.on_key(Key("space", " "))
    app.on_key(Key("m", "m"))

    assert app._search_query == "sar m"
    assert app._status_text() == "1 match for 'sar m'."

    app.action_clear_query()

    assert app._search_query == ""
    assert app._results == []


def test_non_printable_keys_are_ignored() -> None:
    app = _app(initial_query="sa")

    app.on_key(Key("ctrl+a", "\x01"))
    app.on_key(Key("down", None))

    assert app._search_query == "sa"


def test_on_paste_appends_sanitized_text() -> None:
    app = _app(initial_query="sarah")

    app.on_paste(Paste(" mal\r\n"))

    assert app._search_query == "sarah mal "
    assert [result.candidate.id for result in app._results] == ["u2"]


def test_search_indicator_shows_query() -> None:
    app = _app(initial_query="ay")

    indicator = app._search_indicator_text()

    assert isinstance(indicator, Text)
    assert indicator.plain == "search ay_"


def test_toggle_sends_request_and_saves(monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "people.json"
    app = _app(initial_query="zayd", directory_path=path)
    _highlight(app, monkeypatch, "zaydp")
    notifications = _capture_notifications(app, monkeypatch)

    app._toggle_highlighted_request()

    assert notifications == [("Sent friend request to @zaydp.", "information")]
    assert app._results[0].candidate.pending == "outgoing"
    saved = json.loads(path.read_text(encoding="utf-8"))
    assert {
        "user1_id": "u1",
        "user2_id": "u3",
        "status": "pending",
        "requested_by": "u1",
    } in saved["friends"]


def test_toggle_twice_cancels_request(monkeypatch) -> None:
    app = _app(initial_query="zayd")
    _capture_notifications(app, monkeypatch)
    _highlight(app, monkeypatch, "zaydp")
    app._toggle_highlighted_request()
    _highlight(app, monkeypatch, "zaydp")

    app._toggle_highlighted_request()

    assert app._results[0].candidate.pending is None
    assert app._directory.friendship("u1", "u3") is None


def test_toggle_on_incoming_request_asks_to_respond(monkeypatch) -> None:
    app = _app(initial_query="sarah")
    _highlight(app, monkeypatch, "sarah.codes")
    notifications = _capture_notifications(app, monkeypatch)

    app._toggle_highlighted_request()

    assert len(notifications) == 1
    assert "Ctrl+A to accept" in notifications[0][0]
    assert app._directory.pending_kind("u1", "u2") == "incoming"


def test_accept_request_removes_new_friend_from_results(monkeypatch) -> None:
    app = _app(initial_query="sara")
    _highlight(app, monkeypatch, "sarah.codes")
    notifications = _capture_notifications(app, monkeypatch)

    app.action_accept_request()

    assert notifications == [("You and @sarah.codes are now friends.", "information")]
    assert [result.candidate.id for result in app._results] == ["u4"]


def test_decline_request_clears_pending_state(monkeypatch) -> None:
    app = _app(initial_query="sarah")
    _highlight(app, monkeypatch, "sarah.codes")
    _capture_notifications(app, monkeypatch)

    app.action_decline_request()

    assert app._results[0].candidate.pending is None
    assert app._directory.friendship("u1", "u2") is None


def test_respond_without_incoming_request_warns(monkeypatch) -> None:
    app = _app(initial_query="zayd")
    _highlight(app, monkeypatch, "zaydp")
    notifications = _capture_notifications(app, monkeypatch)

    app.action_accept_request()

    assert notifications == [
        ("There is no incoming request to respond to.", "warning")
    ]
    assert app._directory.friendship("u1", "u3") is None


def test_save_failure_keeps_directory_and_view_in_step(monkeypatch, tmp_path: Path) -> None:
    app = _app(initial_query="zayd", directory_path=tmp_path)
    _highlight(app, monkeypatch, "zaydp")
    notifications = _capture_notifications(app, monkeypatch)

    app._toggle_highlighted_request()

    assert len(notifications) == 1
    assert notifications[0][0].startswith(f"Could not write {tmp_path}")
    assert notifications[0][1] == "error"
    assert app._directory.pending_kind("u1", "u3") is None
    assert app._results[0].candidate.pending is None
    assert app._working_id is None

    app._reload_candidates()

    assert app._results[0].candidate.pending is None


def test_failed_accept_is_rolled_back(monkeypatch, tmp_path: Path) -> None:
    app = _app(initial_query="sarah", directory_path=tmp_path)
    _highlight(app, monkeypatch, "sarah.codes")
    notifications = _capture_notifications(app, monkeypatch)

    app.action_accept_request()

    assert [severity for _message, severity in notifications] == ["error"]
    assert app._directory.pending_kind("u1", "u2") == "incoming"
    assert app._results[0].candidate.id == "u2"
    assert app._results[0].candidate.pending == "incoming"


def test_highlighted_result_reads_option_list(monkeypatch) -> None:
    app = _app(initial_query="sara")

    class _FakeOptionList:
        highlighted = 1

    def _fake_query_one(selector: str, _widget_type: object = None) -> _FakeOptionList:
        assert selector == "#sidebar-list"
        return _FakeOptionList()

    monkeypatch.setattr(app, "query_one", _fake_query_one)

    result = app._highlighted_result()

    assert result is not None
    assert result.candidate.id == "u4"


def test_update_status_reports_match_count(monkeypatch) -> None:
    app = _app(initial_query="a")
    updates: list[str] = []

    class _FakeStatus:
        def update(self, value: str) -> None:
            updates.append(value)

    def _fake_query_one(selector: str, _widget_type: object = None) -> _FakeStatus:
        assert selector == "#status"
        return _FakeStatus()

    monkeypatch.setattr(app, "query_one", _fake_query_one)
    app._update_status()

    assert updates == ["3 matches for 'a'."]


def _directory_with_friends() -> PeopleDirectory:
    directory = _directory()
    directory.accept_request("u1", "u2")
    directory.send_request("u4", "u1")
    directory.accept_request("u1", "u4")
    return directory


def test_friends_view_lists_everyone_until_a_query_is_typed() -> None:
    app = _app(_directory_with_friends(), view="friends")

    assert [result.candidate.id for result in app._results] == ["u2", "u4"]
    assert all(result.score == 0 for result in app._results)
    assert app._status_text() == "2 friends."

    for character in "baker":
        app.on_key(Key(character, character))

    assert [result.candidate.id for result in app._results] == ["u4"]
    assert app._results[0].score == 90
    assert app._status_text() == "1 match for 'baker'."


def test_show_view_switches_lists_and_keeps_query() -> None:
    app = _app(initial_query="sara")

    app.action_show_view("requests")

    assert app._view == "requests"
    assert [result.candidate.id for result in app._results] == ["u2"]
    assert app._results[0].candidate.pending == "incoming"

    app.action_clear_query()

    assert app._status_text() == "1 pending request."


def test_remove_friend_unfriends_highlighted_user(monkeypatch, tmp_path: Path) -> None:
    path = tmp_path / "people.json"
    app = _app(_directory_with_friends(), view="friends", directory_path=path)
    _highlight(app, monkeypatch, "sarah.codes")
    notifications = _capture_notifications(app, monkeypatch)

    app.action_remove_friend()

    assert notifications == [("Removed @sarah.codes from your friends.", "information")]
    assert [result.candidate.id for result in app._results] == ["u4"]
    assert app._directory.friendship("u1", "u2") is None
    saved = PeopleDirectory.load(path)
    assert [profile.id for profile in saved.friends("u1")] == ["u4"]


def test_remove_friend_warns_for_non_friends(monkeypatch) -> None:
    app = _app(initial_query="zayd")
    _highlight(app, monkeypatch, "zaydp")
    notifications = _capture_notifications(app, monkeypatch)

    app.action_remove_friend()

    assert notifications == [
        ("Only friends can be removed. Press Ctrl+F to list them.", "warning")
    ]


def test_enter_on_friend_points_to_removal(monkeypatch) -> None:
    app = _app(_directory_with_friends(), view="friends")
    _highlight(app, monkeypatch, "sara_b")
    notifications = _capture_notifications(app, monkeypatch)

    app._toggle_highlighted_request()

    assert notifications == [
        ("Press Ctrl+X to remove @sara_b from your friends.", "information")
    ]
    assert app._directory.friendship("u1", "u4") is not None


def test_requests_view_cancels_outgoing_request(monkeypatch) -> None:
    directory = _directory()
    directory.send_request("u1", "u3")
    app = _app(directory, view="requests")
    assert [result.candidate.id for result in app._results] == ["u2", "u3"]
    _highlight(app, monkeypatch, "zaydp")
    notifications = _capture_notifications(app, monkeypatch)

    app._toggle_highlighted_request()

    assert notifications == [("Cancelled request to @zaydp.", "information")]
    assert [result.candidate.id for result in app._results] == ["u2"]
