from __future__ import annotations

import logging
from pathlib import Path

import typer

from proof_explore import __version__
from proof_explore.directory import DirectoryError, PeopleDirectory
from proof_explore.models import VIEW_MODES, MatchResult, UserProfile
from proof_explore.rendering import render_match_table
from proof_explore.search import rank_people
from proof_explore.tui import ExploreFriendsTui

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

__all__ = [
    "ExploreFriendsTui",
    "MatchResult",
    "UserProfile",
    "cli",
    "run",
]


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"proof-explore {__version__}")
    raise typer.Exit()


cli = typer.Typer(
    add_completion=False,
    help="Search for people to befriend in a Textual TUI.",
)


@cli.callback(invoke_without_command=True)
def run(
    directory_path: Path = typer.Option(
        ...,
        "--directory",
        "-d",
        exists=True,
        dir_okay=False,
        help="People directory JSON with profiles and friendships.",
    ),
    user: str = typer.Option(
        ...,
        "--user",
        "-u",
        help="Current user, by id or username.",
    ),
    query: str | None = typer.Option(
        None,
        "--query",
        "-q",
        help="Print ranked matches for this query instead of opening the TUI.",
    ),
    view: str = typer.Option(
        "explore",
        "--view",
        help="List to search: explore, friends or requests.",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        min=1,
        help="Maximum number of matches printed with --query.",
    ),
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level for diagnostic output.",
    ),
    _version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise typer.BadParameter(
            f"expected one of {', '.join(LOG_LEVELS)}", param_hint="--log-level"
        )
    view = view.lower()
    if view not in VIEW_MODES:
        raise typer.BadParameter(
            f"expected one of {', '.join(VIEW_MODES)}", param_hint="--view"
        )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        directory = PeopleDirectory.load(directory_path)
        current_user = directory.resolve_user(user)
    except DirectoryError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc

    if query is not None:
        results = rank_people(
            directory.people(current_user.id, view),
            query,
            list_all_when_blank=view != "explore",
        )
        if not results:
            typer.echo("No users found.")
            return
        for line in render_match_table(results, limit=limit):
            typer.echo(line)
        return

    ExploreFriendsTui(
        directory=directory,
        user_id=current_user.id,
        directory_path=directory_path,
        view=view,
    ).run()


if __name__ == "__main__":
    cli()
