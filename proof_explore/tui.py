from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from rich.markup import escape
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Key, Paste, Resize
from textual.widgets import OptionList, Static

from proof_explore.directory import DirectoryError, PeopleDirectory
from proof_explore.models import MatchResult, RequestAction, UserProfile, ViewMode
from proof_explore.rendering import format_result_label, render_candidate_details
from proof_explore.search import rank_people

EMPTY_QUERY_HINT = "Start typing to search users."

VIEW_TITLES: dict[ViewMode, str] = {
    "explore": "Explore New Friends",
    "friends": "Friends",
    "requests": "Friend Requests",
}

# Singular nouns for the blank-query status line of the listing views.
VIEW_NOUNS: dict[ViewMode, str] = {
    "friends": "friend",
    "requests": "pending request",
}

TOGGLE_MESSAGES: dict[RequestAction, str] = {
    "sent": "Sent friend request to @{username}.",
    "cancelled": "Cancelled request to @{username}.",
}

T = TypeVar("T")


class ExploreFriendsTui(App[None]):
    CSS_PATH = "explore.tcss"
    ENABLE_COMMAND_PALETTE = False
    BINDINGS = [
        Binding("escape", "clear_query", "Clear"),
        Binding("ctrl+e", "show_view('explore')", "Explore"),
        Binding("ctrl+f", "show_view('friends')", "Friends"),
        Binding("ctrl+r", "show_view('requests')", "Requests"),
        Binding("ctrl+a", "accept_request", "Accept"),
        Binding("ctrl+d", "decline_request", "Decline"),
        Binding("ctrl+x", "remove_friend", "Unfriend"),
        Binding("ctrl+q", "quit", "Quit"),
        Binding("ctrl+c", "quit", show=False),
    ]

    def __init__(
        self,
        *,
        directory: PeopleDirectory,
        user_id: str,
        directory_path: Path | None = None,
        initial_query: str = "",
        view: ViewMode = "explore",
    ) -> None:
        super().__init__()
        self.theme = "rose-pine"
        self._directory = directory
        self._user_id = user_id
        self._directory_path = directory_path
        self._search_query = initial_query
        self._view: ViewMode = view
        self._candidates: list[UserProfile] = directory.people(user_id, view)
        self._results: list[MatchResult] = self._rank()
        self._working_id: str | None = None

    def compose(self) -> ComposeResult:
        with Horizontal(id="body"):
            with Vertical(id="sidebar"):
                yield Static(VIEW_TITLES[self._view], id="sidebar-title")
                yield OptionList(id="sidebar-list")
                yield Static(EMPTY_QUERY_HINT, id="status")
            with Vertical(id="main-panel"):
                yield Static(
                    "Search by name or @handle to find people.",
                    id="main-placeholder",
                )

    def on_mount(self) -> None:
        self.query_one("#sidebar-list", OptionList).focus()
        self._refresh_view()

    def _rank(self) -> list[MatchResult]:
        return rank_people(
            self._candidates,
            self._search_query,
            list_all_when_blank=self._view != "explore",
        )

    def _set_query(self, query: str) -> None:
        self._search_query = query
        self._results = self._rank()
        self._refresh_view()

    def _reload_candidates(self) -> None:
        self._candidates = self._directory.people(self._user_id, self._view)
        self._results = self._rank()
        self._refresh_view(preserve_position=True)

    def _refresh_view(self, *, preserve_position: bool = False) -> None:
        self.query_one("#sidebar-title", Static).update(VIEW_TITLES[self._view])
        self._render_result_options(preserve_position=preserve_position)
        self._update_status()
        self._update_search_indicator()
        highlighted = self._highlighted_result()
        if highlighted is not None:
            self._show_details(highlighted)
        elif self._results:
            self._show_details(self._results[0])
        else:
            self._show_placeholder()

    def _row_width(self) -> int:
        result_list = self.query_one("#sidebar-list", OptionList)
        return max(16, result_list.size.width - 4)

    def _main_panel_content_width(self) -> int:
        main_panel = self.query_one("#main-panel", Vertical)
        return max(40, main_panel.size.width - 4)

    def _render_result_options(self, *, preserve_position: bool = False) -> None:
        result_list = self.query_one("#sidebar-list", OptionList)
        previous_highlight = result_list.highlighted
        previous_scroll_y = result_list.scroll_y
        result_list.clear_options()
        if not self._results:
            if self._search_query.strip():
                result_list.add_option("No users found")
            elif self._view == "friends":
                result_list.add_option("No friends yet")
            elif self._view == "requests":
                result_list.add_option("No pending requests")
            return

        row_width = self._row_width()
        result_list.add_options(
            [
                format_result_label(result.candidate, row_width)
                for result in self._results
            ]
        )
        if preserve_position and previous_highlight is not None:
            result_list.highlighted = min(previous_highlight, len(self._results) - 1)
            result_list.scroll_to(y=previous_scroll_y, animate=False)
        else:
            result_list.action_first()

    def _status_text(self) -> str:
        query = self._search_query.strip()
        count = len(self._results)
        if not query:
            if self._view == "explore":
                return EMPTY_QUERY_HINT
            return f"{count:,} {VIEW_NOUNS[self._view]}{'s' if count != 1 else ''}."
        return f"{count:,} match{'es' if count != 1 else ''} for {query!r}."

    def _update_status(self) -> None:
        self.query_one("#status", Static).update(self._status_text())

    def _search_indicator_text(self) -> Text:
        indicator = Text()
        indicator.append("search", style="bold red")
        indicator.append(f" {self._search_query}_", style="bold white")
        return indicator

    def _update_search_indicator(self) -> None:
        sidebar = self.query_one("#sidebar", Vertical)
        sidebar.border_title = self._search_indicator_text()
        sidebar.border_subtitle = ""

    def _highlighted_result(self) -> MatchResult | None:
        highlighted = self.query_one("#sidebar-list", OptionList).highlighted
        if highlighted is None or highlighted < 0 or highlighted >= len(self._results):
            return None
        return self._results[highlighted]

    def _highlighted_profile(self) -> UserProfile | None:
        result = self._highlighted_result()
        if result is None:
            return None
        return result.candidate

    def _show_details(self, result: MatchResult) -> None:
        self.query_one("#main-placeholder", Static).update(
            render_candidate_details(
                result,
                self._search_query,
                content_width=self._main_panel_content_width(),
            )
        )

    def _show_placeholder(self) -> None:
        if self._search_query.strip():
            message = (
                f"No users match {escape(self._search_query.strip())!r}.\n\n"
                "Try a shorter query or check the spelling."
            )
        elif self._view == "friends":
            message = "You have no friends yet. Press Ctrl+E to explore."
        elif self._view == "requests":
            message = "No pending friend requests."
        else:
            message = "Search by name or @handle to find people."
        self.query_one("#main-placeholder", Static).update(message)

    def _apply_change(
        self,
        profile: UserProfile,
        change: Callable[[PeopleDirectory], T],
    ) -> T | None:
        """Run ``change`` on a copy and keep it only once it has been saved.

        Returns ``None`` when the change or the save failed, leaving the
        directory and the view as they were.
        """
        if self._working_id is not None:
            return None
        self._working_id = profile.id
        draft = self._directory.copy()
        try:
            outcome = change(draft)
            changed = draft.friendships != self._directory.friendships
            if changed and self._directory_path is not None:
                draft.save(self._directory_path)
        except DirectoryError as exc:
            self.notify(str(exc), title="Friend request", severity="error")
            return None
        finally:
            self._working_id = None
        self._directory = draft
        return outcome

    def _toggle_highlighted_request(self) -> None:
        profile = self._highlighted_profile()
        if profile is None:
            return
        if profile.friend:
            self.notify(
                f"Press Ctrl+X to remove @{profile.username} from your friends.",
                title="Friends",
            )
            return
        action = self._apply_change(
            profile,
            lambda directory: directory.toggle_request(self._user_id, profile.id),
        )
        if action is None:
            return
        if action == "respond":
            self.notify(
                f"{profile.name or profile.username} sent you a request. "
                "Press Ctrl+A to accept or Ctrl+D to decline.",
                title="Respond",
            )
            return
        self.notify(
            TOGGLE_MESSAGES[action].format(username=profile.username),
            title="Friend request",
        )
        self._reload_candidates()

    def _respond_to_highlighted_request(self, *, accept: bool) -> None:
        profile = self._highlighted_profile()
        if profile is None:
            return
        if profile.pending != "incoming":
            self.notify(
                "There is no incoming request to respond to.",
                title="Respond",
                severity="warning",
            )
            return
        if accept:
            outcome = self._apply_change(
                profile,
                lambda directory: directory.accept_request(self._user_id, profile.id),
            )
            message = f"You and @{profile.username} are now friends."
        else:
            outcome = self._apply_change(
                profile,
                lambda directory: directory.decline_request(self._user_id, profile.id),
            )
            message = f"Declined request from @{profile.username}."
        if outcome is None:
            return
        self.notify(message, title="Friend request")
        self._reload_candidates()

    def action_accept_request(self) -> None:
        self._respond_to_highlighted_request(accept=True)

    def action_decline_request(self) -> None:
        self._respond_to_highlighted_request(accept=False)

    def action_remove_friend(self) -> None:
        profile = self._highlighted_profile()
        if profile is None:
            return
        if not profile.friend:
            self.notify(
                "Only friends can be removed. Press Ctrl+F to list them.",
                title="Friends",
                severity="warning",
            )
            return
        outcome = self._apply_change(
            profile,
            lambda directory: directory.remove_friend(self._user_id, profile.id),
        )
        if outcome is None:
            return
        self.notify(f"Removed @{profile.username} from your friends.", title="Friends")
        self._reload_candidates()

    def action_show_view(self, view: ViewMode) -> None:
        if view == self._view:
            return
        self._view = view
        self._candidates = self._directory.people(self._user_id, view)
        self._results = self._rank()
        self._refresh_view()

    def action_clear_query(self) -> None:
        if self._search_query:
            self._set_query("")

    def on_key(self, event: Key) -> None:
        if event.key == "backspace":
            if self._search_query:
                self._set_query(self._search_query[:-1])
            event.stop()
            return

        if event.key == "space":
            self._set_query(self._search_query + " ")
            event.stop()
            return

        if event.character and event.character.isprintable():
            self._set_query(self._search_query + event.character)
            event.stop()

    def on_paste(self, event: Paste) -> None:
        sanitized = event.text.replace("\r", "").replace("\n", " ")
        if not sanitized:
            return
        self._set_query(self._search_query + sanitized)
        event.stop()

    def on_resize(self, event: Resize) -> None:
        del event
        self.call_after_refresh(self._refresh_view, preserve_position=True)

    def on_option_list_option_highlighted(
        self, event: OptionList.OptionHighlighted
    ) -> None:
        if event.option_list.id != "sidebar-list":
            return
        if event.option_index < 0 or event.option_index >= len(self._results):
            return
        self._show_details(self._results[event.option_index])

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        if event.option_list.id != "sidebar-list":
            return
        if event.option_index < 0 or event.option_index >= len(self._results):
            return
        self._toggle_highlighted_request()
