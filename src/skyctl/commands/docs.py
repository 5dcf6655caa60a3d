"""``skyctl docs``: open the documentation, optionally searching it."""

from __future__ import annotations

import argparse
import webbrowser
from urllib.parse import urlencode

from skyctl.domain.commands import OptionSpec, create_command
from skyctl.utils.interactive import is_interactive
from skyctl.utils.logger import log, logger

DOCS_URL = "https://docs.skyctl.dev/"


def docs_url(search: list[str] | None) -> str:
    terms = " ".join(search or []).strip()
    if not terms:
        return DOCS_URL
    return f"{DOCS_URL}search/?{urlencode({'q': terms})}"


def _docs(args: argparse.Namespace, context) -> int:
    url = docs_url(args.search)
    if not args.browser or not is_interactive():
        log(url)
        return 0
    log(f"Opening a link in your default browser: {url}")
    if not webbrowser.open(url):
        logger.warning("Unable to open a browser; visit %s", url)
    return 0


COMMANDS = [
    (
        "skyctl docs",
        create_command(
            "Open the skyctl documentation in your browser",
            _docs,
            args=[
                OptionSpec("search", type="array", positional=True, description="Terms to search the docs for"),
                OptionSpec("browser", type="boolean", default=True, description="Open the link in a browser when possible"),
            ],
        ),
    ),
]

ROOTS = ("docs",)
