"""Socket.IO event names."""

# client -> server
ROOM_CREATE = "room:create"
ROOM_JOIN = "room:join"
ROOM_LEAVE = "room:leave"
GAME_START = "game:start"
GAME_MARK = "game:mark"
GAME_DECLARE_WIN = "game:declare_win"
REMATCH_REQUEST = "rematch:request"
REMATCH_ACCEPT = "rematch:accept"
REMATCH_DECLINE = "rematch:decline"
CHAT_MESSAGE = "chat:message"

# server -> client
ROOM_CREATED = "room:created"
ROOM_JOINED = "room:joined"
ROOM_LEFT = "room:left"
ROOM_USER_JOINED = "room:user_joined"
ROOM_USER_LEFT = "room:user_left"
ROOM_STATE = "room:state"
ROOM_ERROR = "room:error"
GAME_NUMBER_MARKED = "game:number_marked"
GAME_WIN = "game:win"
GAME_DRAW = "game:draw"
GAME_RESET = "game:reset"
REMATCH_REQUESTED = "rematch:requested"
REMATCH_DECLINED = "rematch:declined"
CHAT_SYNC = "chat:sync"
