"""
Worker dyno registry entries.

A ``Worker`` pairs a Procfile process name with a user-supplied callable
that measures that process type's job queue (typically a size, via one of
the ``hirefire_resource.macro`` helpers).  The callable runs on demand,
each time HireFire polls the info endpoint.
"""

import collections.abc
import inspect
import re
import typing

import hirefire_resource.exceptions

PROCESS_NAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_-]{0,29}$")


class Worker:
    """
    A named job queue metric source.

    The name must match the process name declared in the Procfile (for
    example ``worker`` or ``mailer``): a letter followed by up to 29
    letters, digits, dashes, or underscores.  The callable may be a plain
    function or a coroutine function.
    """

    def __init__(
        self,
        name: str | None,
        fn: collections.abc.Callable[[], typing.Any] | None = None,
    ) -> None:
        _validate(name, fn)
        self.name: str = name  # type: ignore[assignment]
        self._fn: collections.abc.Callable[[], typing.Any] = fn  # type: ignore[assignment]

    async def value(self) -> typing.Any:
        """Invoke the metric callable, awaiting its result when necessary."""
        result = self._fn()
        if inspect.isawaitable(result):
            result = await result
        return result


def _validate(
    name: str | None,
    fn: collections.abc.Callable[[], typing.Any] | None,
) -> None:
    if not isinstance(name, str) or not PROCESS_NAME_PATTERN.fullmatch(name):
        raise hirefire_resource.exceptions.InvalidDynoNameError(
            detail=(
                f"Invalid name for Worker({name!r}, fn). "
                "Ensure it matches the Procfile process name (i.e. web, worker)."
            ),
        )

    if fn is None or not callable(fn):
        raise hirefire_resource.exceptions.MissingDynoFnError(
            detail=(
                f"Missing function for Worker({name!r}, fn). "
                "Ensure that you provide a function that returns the job queue metric."
            ),
        )
