from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Union

import pytest

from installer.context import InstallContext
from installer.errors import CommandError
from installer.models import InstallOptions
from installer.prompts import Prompter
from installer.runner import CommandResult
from installer.settings import Settings, get_settings
from installer.state import InstallState, StateStore

Output = Union[str, list[str]]


class FakeProcess:
    def __init__(self, alive: bool = True, pid: int = 4242):
        self.alive = alive
        self.pid = pid

    def poll(self) -> Optional[int]:
        return None if self.alive else 1


class FakeRunner:
    """Stands in for CommandRunner; answers commands by argument prefix.

    Later registrations win. A list of outputs is consumed one per call and
    the last entry repeats. Unregistered commands succeed with no output.
    """

    def __init__(self):
        self._responses: list[tuple[tuple[str, ...], list[tuple[int, str, str]]]] = []
        self.calls: list[list[str]] = []
        self.inputs: list[Optional[str]] = []
        self.started: list[list[str]] = []
        self.process = FakeProcess()

    def on(self, *prefix: str, stdout: Output = "", returncode: int = 0, stderr: str = "") -> None:
        outputs = stdout if isinstance(stdout, list) else [stdout]
        self._responses.insert(0, (prefix, [(returncode, out, stderr) for out in outputs]))

    def fail(self, *prefix: str, returncode: int = 1, stderr: str = "failed") -> None:
        self.on(*prefix, returncode=returncode, stderr=stderr)

    def run(
        self,
        args,
        check=False,
        input_text=None,
        timeout=None,
        log_output=True,
        logger_name=None,
    ) -> CommandResult:
        args = list(args)
        self.calls.append(args)
        self.inputs.append(input_text)

        result = CommandResult(args=args, returncode=0)
        for prefix, queue in self._responses:
            if tuple(args[: len(prefix)]) == prefix:
                returncode, stdout, stderr = queue.pop(0) if len(queue) > 1 else queue[0]
                result = CommandResult(args=args, returncode=returncode, stdout=stdout, stderr=stderr)
                break

        if check and not result.ok:
            raise CommandError(args, result.returncode, result.stderr)
        return result

    def start(self, args) -> FakeProcess:
        self.started.append(list(args))
        return self.process

    def called(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)

    def calls_with(self, *prefix: str) -> list[list[str]]:
        return [call for call in self.calls if tuple(call[: len(prefix)]) == prefix]


class ScriptedInput:
    """Feeds prepared answers to Prompter and fails loudly when they run out."""

    def __init__(self, answers: Iterable[str]):
        self.answers = list(answers)
        self.questions: list[str] = []

    def __call__(self, question: str) -> str:
        self.questions.append(question)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {question}")
        return self.answers.pop(0)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(opengovernance_home=tmp_path / "home", _env_file=None)


@pytest.fixture
def make_prompter() -> Callable[..., Prompter]:
    def factory(*answers: str) -> Prompter:
        output: list[str] = []
        prompter = Prompter(input_func=ScriptedInput(answers), output=output.append)
        prompter.printed = output
        return prompter

    return factory


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_ctx(runner, settings, make_prompter, sleeps) -> Callable[..., InstallContext]:
    def factory(*answers: str, prompter: Optional[Prompter] = None, **options) -> InstallContext:
        install_options = InstallOptions(**options)
        return InstallContext(
            settings=settings,
            options=install_options,
            runner=runner,
            prompter=prompter or make_prompter(*answers),
            state_store=StateStore(settings.state_file),
            state=InstallState(namespace=install_options.namespace),
            sleep=sleeps.append,
        )

    return factory


@pytest.fixture(autouse=True)
def _restore_installer_loggers():
    """configure_logging() attaches file handlers; keep them from leaking between tests."""
    loggers = [logging.getLogger(name) for name in ("installer", "installer.helm")]
    saved = [(lg.handlers[:], lg.propagate, lg.level) for lg in loggers]
    yield
    for lg, (handlers, propagate, level) in zip(loggers, saved):
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers = handlers
        lg.propagate = propagate
        lg.setLevel(level)
    get_settings.cache_clear()
