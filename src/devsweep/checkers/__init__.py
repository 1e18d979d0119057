"""Built-in checkers."""

from __future__ import annotations

from devsweep.checkers.custom import CustomPathsChecker
from devsweep.checkers.general import GeneralCachesChecker, TrashChecker
from devsweep.checkers.go import GoChecker
from devsweep.checkers.homebrew import HomebrewChecker
from devsweep.checkers.ide import IdeChecker
from devsweep.checkers.java import JavaChecker
from devsweep.checkers.node import NodeChecker
from devsweep.checkers.python import PythonChecker
from devsweep.checkers.rust import RustChecker
from devsweep.checkers.shell import ShellChecker
from devsweep.models.checker import Checker
from devsweep.settings import Settings


def builtin_checkers(settings: Settings | None = None) -> list[Checker]:
    """One instance of every built-in checker, in display order.

    *settings* is where the custom paths are read from; the shared
    instance is used when omitted.
    """
    return [
        NodeChecker(),
        PythonChecker(),
        RustChecker(),
        GoChecker(),
        JavaChecker(),
        HomebrewChecker(),
        IdeChecker(),
        ShellChecker(),
        GeneralCachesChecker(),
        TrashChecker(),
        CustomPathsChecker(settings),
    ]
