"""Remote-control client for model-railroad command servers."""

__version__ = "0.1.0"

from .config import ConfigError, ControllerConfig, load_config
from .controller import RailroadController
from .errors import (
    RailroadClientError,
    RailroadConnectionError,
    RailroadProtocolError,
    RailroadSessionClosed,
    RailroadTimeout,
)
from .framing import FramedChunk, ReplyFramer
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
from .transport import (
    RailroadTcpClient,
    RailroadTcpMessage,
    RailroadTcpMessageType,
    open_tcp_connection,
)

__all__ = [
    "DEFAULT_PORT",
    "ConfigError",
    "ControllerConfig",
    "Direction",
    "FramedChunk",
    "RailroadClientError",
    "RailroadConnectionError",
    "RailroadController",
    "RailroadProtocolError",
    "RailroadSession",
    "RailroadSessionClosed",
    "RailroadTcpClient",
    "RailroadTcpMessage",
    "RailroadTcpMessageType",
    "RailroadTimeout",
    "ReplyFramer",
    "Train",
    "TrainFunction",
    "UpdatePolicy",
    "__version__",
    "decode_function_list",
    "decode_train_roster",
    "encode_get_functions",
    "encode_list_trains",
    "encode_set_direction",
    "encode_set_function",
    "encode_set_speed",
    "encode_start_all",
    "encode_stop_all",
    "load_config",
    "open_tcp_connection",
]
