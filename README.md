# gridplay

A small game server for two-player tic-tac-toe played over WebSockets.
Clients connect, are paired with the next waiting player, and play a
match on a 3×3 board. The server checks every move, tells each player
about their opponent's moves and announces the result.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Running the server

```
gridplay
```

Options:

| option | default | meaning |
|--------|---------|---------|
| `--host` | all addresses | address to listen on |
| `--port` | `4000` | port to listen on |
| `--assert-file` | `assert.txt` | file that receives invariant failure reports |

The server accepts WebSocket connections at the path `/ws`; a connection
to any other path is closed with code 1008. Every 50 ms the server lets
each room process the events its players sent and then delivers the
resulting messages. Log lines go to stderr at level INFO.

From Python, run it with `gridplay.server.serve(host, port)` inside an
asyncio event loop (it runs until its task is cancelled), or embed a
`gridplay.server.GameServer` in your own application: call `start_loop()`
from a running loop, call `update()` periodically, and await
`handle_connection(websocket)` for each new WebSocket.

## Protocol

Every message is a JSON object with a numeric `type` and a `data` field.

Client to server (`gridplay.message.ClientMsgType`):

| type | name | data |
|------|------|------|
| 0 | move | `{"x": 0..2, "y": 0..2}` |

Server to client (`gridplay.message.ServerMsgType`):

| type | name | data |
|------|------|------|
| 0 | match_started | `{"char": <code point>, "opponentChar": <code point>}` |
| 1 | move_answer | `{"approved": bool, "reason": str}` |
| 2 | opponent_move | `{"x": int, "y": int}` |
| 3 | win_event | `{"status": "win" \| "lose" \| "draw", "cause": ""}` |
| 4 | not_allowed_error | `{"reason": str}` |

Players are matched in the order they connect. Before a room is opened
both connections are pinged; if one of them is gone, the other is put
back in line. In each room, the player with id 0 moves first and gets a
randomly chosen mark, `x` or `o`.

A move out of turn (`"not your round, dummy"`), onto an occupied cell
(`"cell is not empty"`) or after the game has ended (`"cannot move after
game ended"`) is answered with a `move_answer` whose `approved` is
`false`. A move sent before the client is in a room is answered with
`not_allowed_error`. Messages that are not valid JSON, or of an unknown
type, are ignored. If a player disconnects before the game has ended,
the opponent receives a `win` event; the room is removed once both
players have left.

## Using the game logic on its own

```python
from gridplay.game import Char, Game, Pos, WinKind

game = Game()  # or Game(first_char=Char.X) to fix player 0's mark
for x, y in [(0, 0), (1, 0), (1, 1), (2, 1), (2, 2)]:
    game.move(Pos(x, y))

state = game.win_state()
assert state.kind is WinKind.WIN
assert state.player.id == 0
```

`Game.move` raises `gridplay.game.MoveError` for a rule violation.
Coordinates outside the board are treated as a broken invariant and
raise `gridplay.invariants.InvariantError`.

Messages can be built and parsed with `gridplay.message`:

```python
from gridplay.message import (
    OpponentMove,
    ServerMsgType,
    concrete_message,
    make_message,
    unmarshal_message,
)

raw = make_message(ServerMsgType.OPPONENT_MOVE, OpponentMove(x=1, y=2)).marshal()
msg = unmarshal_message(raw)
move = concrete_message(msg, OpponentMove)
assert (move.x, move.y) == (1, 2)
```

`unmarshal_message` and `concrete_message` raise
`gridplay.message.MessageError` for input they cannot decode.

## Invariant reports

`gridplay.invariants` checks internal assumptions. When one fails it
writes the time, any values registered with `add_context`, the message
and a stack trace to the writer set with `set_writer` (stderr by
default), then raises `InvariantError`.

## What it does not do

The server keeps everything in memory: there are no accounts,
authentication, saved games, rankings or reconnection to a game in
progress. There is no client; players need their own WebSocket client
that speaks the protocol above.