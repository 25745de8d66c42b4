"""Effector that routes adaptation commands to connected components."""

from __future__ import annotations

import logging
from collections.abc import Callable

from .messages import AdaptationCommand

__all__ = ["ParamAdapter"]

logger = logging.getLogger(__name__)

Publisher = Callable[[AdaptationCommand], None]


class ParamAdapter:
    """Keeps one publisher per connected component and forwards commands.

    ``publisher_factory(topic)`` returns a callable that sends a command on
    that topic; each component gets the topic ``reconfigure_<name>``.
    """

    def __init__(self, publisher_factory: Callable[[str], Publisher]):
        self._publisher_factory = publisher_factory
        self._targets: dict[str, Publisher] = {}

    @property
    def targets(self) -> tuple[str, ...]:
        """Names of the connected components, sorted."""
        return tuple(sorted(self._targets))

    def module_connect(self, name: str, connection: bool) -> bool:
        """Register or unregister a component; returns the acknowledgement."""
        if connection:
            self._targets[name] = self._publisher_factory("reconfigure_" + name)
            logger.info("Module Connected. [%s]", name)
            return True
        if self._targets.pop(name, None) is None:
            return False
        logger.info("Module Disconnected. [%s]", name)
        return True

    def receive_adaptation_command(self, command: AdaptationCommand) -> bool:
        """Forward a command to its target; False if the target is unknown."""
        publisher = self._targets.get(command.target)
        if publisher is None:
            logger.info("ERROR, target not found! [%s]", command.target)
            return False
        publisher(command)
        return True