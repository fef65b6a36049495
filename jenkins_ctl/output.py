# output.py

import sys

ANSI_RESET = '\033[0m'
ANSI_BOLD = '\033[1m'
ANSI_RED = '\033[31m'


class C:
    """ANSI color codes for stdout; emptied when stdout is not a terminal."""
    RESET = ANSI_RESET
    BOLD = ANSI_BOLD
    RED = ANSI_RED
    GREEN = '\033[32m'
    BBLUE = '\033[94m'

    @staticmethod
    def disable():
        for attr in dir(C):
            if attr.isupper() and not attr.startswith('_'):
                setattr(C, attr, '')


# Disable colors if not a terminal
if not sys.stdout.isatty():
    C.disable()


def red(text: str) -> str:
    return f"{C.RED}{text}{C.RESET}"


def green(text: str) -> str:
    return f"{C.GREEN}{text}{C.RESET}"


def folder(text: str) -> str:
    return f"{C.BBLUE}{C.BOLD}{text}{C.RESET}"


def error_line(kind: str, message: str) -> str:
    """Error line for stderr, colored only when stderr itself is a terminal."""
    if not sys.stderr.isatty():
        return f"error[{kind}]: {message}"
    return f"{ANSI_RED}{ANSI_BOLD}error[{kind}]{ANSI_RESET}: {message}"
