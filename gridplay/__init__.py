"""Two-player tic-tac-toe over WebSockets: game rules, messages, matchmaking and server."""

__version__ = "0.1.0"