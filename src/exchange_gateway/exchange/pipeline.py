"""
Exchange Pipeline

Ordered, named steps over a browser session. Each step either passes control
on with the (possibly mutated) session or short-circuits with a redirect.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

import structlog
from fastapi import Request

from exchange_gateway.auth.models import BrowserSession

logger = structlog.get_logger()


@dataclass(frozen=True)
class Continue:
    """Pass control to the next step."""

    session: BrowserSession


@dataclass(frozen=True)
class Redirect:
    """Terminate the pipeline with a 302 redirect."""

    url: str


StepResult = Continue | Redirect
Step = Callable[[Request, BrowserSession], Awaitable[StepResult]]


@dataclass(frozen=True)
class NamedStep:
    name: str
    run: Step


class Pipeline:
    """
    Sequential step runner.

    The last step must redirect; a pipeline that falls off the end is a
    programming error.
    """

    def __init__(self, name: str, steps: Sequence[NamedStep]) -> None:
        if not steps:
            raise ValueError("Pipeline requires at least one step")
        self.name = name
        self.steps = tuple(steps)

    async def run(self, request: Request, session: BrowserSession) -> tuple[Redirect, BrowserSession]:
        """
        Run steps in order.

        Returns:
            Terminal redirect and the session as left by the last step
        """
        for step in self.steps:
            result = await step.run(request, session)
            if isinstance(result, Redirect):
                logger.debug("Pipeline redirected", pipeline=self.name, step=step.name)
                return result, session
            session = result.session

        raise RuntimeError(f"Pipeline '{self.name}' completed without a redirect")
