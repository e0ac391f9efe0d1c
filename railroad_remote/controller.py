"""High-level railroad controller facade.

Turns user intents (refresh roster, select a train, move a slider, flip a
function, hit the killswitch) into protocol commands sent over a
RailroadSession, and keeps the observable state a front end renders:
roster, selection, function list, speed, direction, stopped flag and an
append-only status log.

Nothing here raises for network or input problems. Failures are appended
to the status log and the operation returns False.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .errors import RailroadSessionClosed
from .models import Direction, Train, TrainFunction, UpdatePolicy
from .protocol import (
    DEFAULT_PORT,
    decode_function_list,
    decode_train_roster,
    encode_get_functions,
    encode_list_trains,
    encode_set_direction,
    encode_set_function,
    encode_set_speed,
    encode_start_all,
    encode_stop_all,
)
from .session import RailroadSession

if TYPE_CHECKING:
    from .config import ControllerConfig

_LOGGER = logging.getLogger(__name__)

NO_SELECTION_MESSAGE = "Please select a train to control."


class RailroadController:
    """Observable control state for one railroad command server.

    Usage:
        async with RailroadController("192.168.0.27") as controller:
            controller.on_state_changed(redraw)
            await controller.list_trains()
            await controller.select_train(controller.trains[0])
            await controller.set_speed(40)
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        *,
        session: RailroadSession | None = None,
        update_policy: UpdatePolicy = UpdatePolicy.OPTIMISTIC,
        reset_functions_on_stop: bool = True,
        **session_options: Any,
    ) -> None:
        """Initialize controller.

        Args:
            host: Controller hostname or IP
            port: Controller port
            session: Pre-built session, created from host/port when omitted
            update_policy: Apply speed/direction/function changes before or
                after the controller confirms them
            reset_functions_on_stop: Clear all function flags locally when
                the killswitch stop is confirmed
            **session_options: Passed to RailroadSession
        """
        self._session = session or RailroadSession(host, port, **session_options)
        self._update_policy = update_policy
        self._reset_functions_on_stop = reset_functions_on_stop

        self._trains: list[Train] = []
        self._selected_train: Train | None = None
        self._functions: list[TrainFunction] = []
        self._speed = 0
        self._direction = Direction.FORWARD
        self._stopped = False
        self._status = ""
        self._last_event: str | None = None

        self._state_callback: Callable[[str], None] | None = None
        self._event_callback: Callable[[str], None] | None = None

        self._session.on_event(self._handle_event)

    @classmethod
    def from_config(cls, config: ControllerConfig) -> RailroadController:
        """Build a controller and its session from loaded configuration."""
        return cls(
            config.host,
            config.port,
            update_policy=config.update_policy,
            reset_functions_on_stop=config.reset_functions_on_stop,
            **config.session_options(),
        )

    async def __aenter__(self) -> RailroadController:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> bool:
        """Connect to the controller; keeps retrying in the background on failure."""
        return await self._session.connect()

    async def close(self) -> None:
        """Close the connection. Any request in flight is abandoned."""
        await self._session.close()

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def session(self) -> RailroadSession:
        return self._session

    @property
    def trains(self) -> list[Train]:
        return list(self._trains)

    @property
    def selected_train(self) -> Train | None:
        return self._selected_train

    @property
    def selected_train_id(self) -> int | None:
        return self._selected_train.id if self._selected_train else None

    @property
    def functions(self) -> list[TrainFunction]:
        return list(self._functions)

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def status(self) -> str:
        """Append-only status log, one message per line."""
        return self._status

    @property
    def last_event(self) -> str | None:
        return self._last_event

    @property
    def connection_state(self) -> str:
        return self._session.connection_state

    def on_state_changed(self, callback: Callable[[str], None]) -> None:
        """Register callback for state changes.

        Callback receives the attribute name: "trains", "selected_train",
        "functions", "speed", "direction", "stopped", "status", "last_event".
        """
        self._state_callback = callback

    def on_event(self, callback: Callable[[str], None]) -> None:
        """Register callback for controller event notifications."""
        self._event_callback = callback

    # -------------------------------------------------------------------------
    # Roster and selection
    # -------------------------------------------------------------------------

    async def list_trains(self) -> bool:
        """Query the roster and replace the train list with the result."""
        reply = await self._request(encode_list_trains())
        if reply is None:
            self._log_status("Failed to retrieve trains.")
            return False

        trains = decode_train_roster(reply)
        self._update("trains", trains)
        if trains:
            self._log_status("Trains list updated.")
        else:
            self._log_status("Trains list updated: no trains reported.")
        return True

    async def select_train(self, train: Train) -> bool:
        """Select a train and load its functions."""
        if self._selected_train != train:
            self._update("selected_train", train)
        self._log_status(f"Selected Train ID: {train.id}")
        return await self.load_functions()

    async def load_functions(self) -> bool:
        """Reload the function list of the selected train."""
        train_id = self.selected_train_id
        if train_id is None:
            self._log_status(NO_SELECTION_MESSAGE)
            return False

        reply = await self._request(encode_get_functions(train_id))
        if reply is None:
            self._log_status(
                f"Failed to retrieve function settings for Train ID: {train_id}."
            )
            return False

        functions = decode_function_list(reply)
        if self.selected_train_id != train_id:
            _LOGGER.debug("Functions for train %d arrived after selection changed", train_id)
            return False

        self._update("functions", functions)
        self._log_status(f"Loaded {len(functions)} functions for Train ID: {train_id}")
        return True

    # -------------------------------------------------------------------------
    # Train control
    # -------------------------------------------------------------------------

    async def set_function(self, func_id: int, value: bool) -> bool:
        """Switch one function of the selected train."""
        train_id = self.selected_train_id
        if train_id is None:
            self._log_status(NO_SELECTION_MESSAGE)
            return False

        int_value = 1 if value else 0
        if self._update_policy is UpdatePolicy.OPTIMISTIC:
            self._apply_function(func_id, value)

        reply = await self._request(encode_set_function(train_id, func_id, value))
        if reply is None:
            self._log_status(f"Failed to set function {func_id} for Train ID: {train_id}")
            return False

        if self._update_policy is UpdatePolicy.CONFIRMED:
            self._apply_function(func_id, value)
        self._log_status(f"Set function {func_id} to {int_value} for Train ID: {train_id}")
        return True

    async def set_speed(self, percent: int) -> bool:
        """Set the speed (0-100) of the selected train."""
        train_id = self.selected_train_id
        if train_id is None:
            self._log_status(NO_SELECTION_MESSAGE)
            return False
        try:
            percent = int(percent)
        except (TypeError, ValueError, OverflowError):
            self._log_status(f"Speed must be between 0 and 100, got {percent!r}.")
            return False
        if not 0 <= percent <= 100:
            self._log_status(f"Speed must be between 0 and 100, got {percent}.")
            return False

        if self._update_policy is UpdatePolicy.OPTIMISTIC:
            self._update("speed", percent)

        reply = await self._request(encode_set_speed(train_id, percent))
        if reply is None:
            self._log_status(f"Failed to set speed for Train ID: {train_id}")
            return False

        if self._update_policy is UpdatePolicy.CONFIRMED:
            self._update("speed", percent)
        self._log_status(f"Set speed to {percent} for Train ID: {train_id}")
        return True

    async def set_direction(self, direction: Direction) -> bool:
        """Set the travel direction of the selected train."""
        train_id = self.selected_train_id
        if train_id is None:
            self._log_status(NO_SELECTION_MESSAGE)
            return False

        direction = Direction(direction)
        if self._update_policy is UpdatePolicy.OPTIMISTIC:
            self._update("direction", direction)

        reply = await self._request(encode_set_direction(train_id, direction))
        if reply is None:
            self._log_status(f"Failed to set direction for Train ID: {train_id}")
            return False

        if self._update_policy is UpdatePolicy.CONFIRMED:
            self._update("direction", direction)
        self._log_status(
            f"Set direction to {direction.name.capitalize()} for Train ID: {train_id}"
        )
        return True

    async def killswitch(self) -> bool:
        """Toggle the layout-wide stop.

        Stop and start only change ``stopped`` once the controller confirms.
        A confirmed stop also clears every function flag locally when
        ``reset_functions_on_stop`` is set; the controller's own function
        state is not re-read.
        """
        if self._stopped:
            reply = await self._request(encode_start_all())
            if reply is None:
                self._log_status("Failed to start trains.")
                return False
            self._update("stopped", False)
            self._log_status("Trains started.")
            return True

        reply = await self._request(encode_stop_all())
        if reply is None:
            self._log_status("Failed to activate killswitch.")
            return False
        self._update("stopped", True)
        if self._reset_functions_on_stop:
            self._update(
                "functions",
                [TrainFunction(id=f.id, value=False) for f in self._functions],
            )
        self._log_status("Killswitch activated: All trains stopped.")
        return True

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    async def _request(self, command: str) -> str | None:
        try:
            return await self._session.send(command)
        except RailroadSessionClosed:
            _LOGGER.debug("Request %r abandoned: session closed", command.strip())
            return None

    def _apply_function(self, func_id: int, value: bool) -> None:
        functions = [
            TrainFunction(id=f.id, value=value) if f.id == func_id else f
            for f in self._functions
        ]
        self._update("functions", functions)

    def _log_status(self, message: str) -> None:
        _LOGGER.info("%s", message)
        self._update("status", self._status + message + "\n")

    def _update(self, name: str, value: Any) -> None:
        setattr(self, f"_{name}", value)
        if self._state_callback:
            try:
                self._state_callback(name)
            except Exception as err:
                _LOGGER.exception("State callback error for %s: %s", name, err)

    def _handle_event(self, event: str) -> None:
        self._update("last_event", event)
        if self._event_callback:
            try:
                self._event_callback(event)
            except Exception as err:
                _LOGGER.exception("Event callback error: %s", err)
