"""Errors surfaced by the session layer to the hosting client."""


class GameUnavailableError(Exception):
    """The shared store could not be reached while joining the game.

    Fatal for the session: there is no retry loop, the client has to be
    restarted (reloaded) to try again.
    """
