from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger


class RelayHub:
    """
    Forwards opaque frames between live sockets, keyed by user id.
    Holds only the currently open channels; nothing is persisted and
    nothing is queued for offline users.
    """

    def __init__(self):
        self._channels: Dict[str, WebSocket] = {}

    def attach(self, address: str, channel: WebSocket) -> None:
        # a newer socket replaces the older one for the same user
        self._channels[address] = channel
        logger.debug(f"[relay] attached | address={address} open={len(self._channels)}")

    def detach(self, address: str, channel: WebSocket) -> None:
        if self._channels.get(address) is channel:
            del self._channels[address]
        logger.debug(f"[relay] detached | address={address} open={len(self._channels)}")

    def channel_for(self, address: str) -> Optional[WebSocket]:
        return self._channels.get(address)

    async def forward(self, sender: str, target: str, event: str, payload: Any) -> bool:
        channel = self.channel_for(target)
        if channel is None:
            logger.debug(f"[relay] dropped, no channel | from={sender} to={target} event={event}")
            return False

        try:
            await channel.send_json({"from": sender, "event": event, "payload": payload})
        except (RuntimeError, WebSocketDisconnect) as e:
            # the target went away without detaching yet
            logger.debug(f"[relay] dropped, channel dead | from={sender} to={target} event={event} err={e}")
            self.detach(target, channel)
            return False
        return True


relay_hub = RelayHub()


def get_relay_hub() -> RelayHub:
    return relay_hub
