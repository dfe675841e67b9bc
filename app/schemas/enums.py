from enum import Enum

class ConnectionStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    expired = "expired"

class ConnectionDecision(str, Enum):
    accepted = "accepted"
    rejected = "rejected"

class ConnectionListType(str, Enum):
    sent = "sent"
    received = "received"
    all = "all"

class MediaType(str, Enum):
    image = "image"
    video = "video"
    audio = "audio"
    file = "file"

class RoomType(str, Enum):
    discussion = "discussion"
    event = "event"
    meetup = "meetup"
    hobby = "hobby"

class RoomStatus(str, Enum):
    upcoming = "upcoming"
    live = "live"
    ended = "ended"

class NotificationKind(str, Enum):
    connection_request = "connection_request"
    connection_accepted = "connection_accepted"
    connection_expired = "connection_expired"
    new_message = "new_message"
    room_joined = "room_joined"
