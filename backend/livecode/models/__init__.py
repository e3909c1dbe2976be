# Models package
from .base import Base
from .account import Account
from .game import Game, Stream
from .document import StreamSpec, StreamState, GameState, ChangeRecord, Subscription
