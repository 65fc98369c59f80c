"""Engine-level exceptions with actionable messages.

Every error carries the engine name and an optional hint so callers (CLI,
route layer) can show the operator what to do next instead of a traceback.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine errors."""

    def __init__(self, message: str, *, engine: str = "", hint: str = "") -> None:
        self.engine = engine
        self.hint = hint
        super().__init__(message)


class ProviderUnavailableError(EngineError):
    """The engine's SDK or client could not be loaded or initialized."""


class UnsupportedEngineError(EngineError):
    """The requested engine name is not registered with the factory."""

    def __init__(self, engine: str, supported: list[str]) -> None:
        self.supported = supported
        super().__init__(
            f"Unsupported AI engine: {engine}. Supported engines: {', '.join(supported)}",
            engine=engine,
            hint="Pick one of the supported engines or add a profile under engines.profiles.",
        )


class SessionNotFoundError(EngineError):
    """An operation that requires a live session was given an unknown id."""

    def __init__(self, session_id: str, *, engine: str = "") -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} does not exist", engine=engine)


class SessionBusyError(EngineError):
    """A new turn was requested while the session's previous turn is still streaming."""

    def __init__(self, session_id: str, *, engine: str = "") -> None:
        self.session_id = session_id
        super().__init__(
            f"Session {session_id} is still running a turn",
            engine=engine,
            hint="Wait for the completion event or terminate the session first.",
        )


class UnknownProviderEventWarning(UserWarning):
    """A native stream produced an event kind the adapter does not recognize.

    The event is dropped and the stream keeps going; the warning exists so
    new backend event types are noticed instead of silently ignored.
    """
