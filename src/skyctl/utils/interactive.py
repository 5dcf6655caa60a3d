"""Helpers for commands that may prompt the operator."""

from __future__ import annotations

import os
import sys
from typing import Sequence

from skyctl.settings import truthy


def is_interactive() -> bool:
    if truthy(os.environ.get("CI")):
        return False
    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def select(prompt: str, choices: Sequence[str]) -> str:
    if not choices:
        raise ValueError("Nothing to choose from")
    print(prompt)
    for index, choice in enumerate(choices, start=1):
        print(f"  {index}. {choice}")
    while True:
        answer = input("Select [1]: ").strip()
        if not answer:
            return choices[0]
        if answer.isdigit() and 1 <= int(answer) <= len(choices):
            return choices[int(answer) - 1]
        print(f"Enter a value between 1 and {len(choices)}.")
