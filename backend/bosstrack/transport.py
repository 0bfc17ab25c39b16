import logging

logger = logging.getLogger(__name__)

ALERT_EVENT = 'spawn_alert'
NAMESPACE = '/ws'


def user_room(user_id) -> str:
    return f"user:{user_id}"


class SocketIOTransport:
    """Push delivery over Socket.IO; other channels are not wired up."""

    channels = ('push',)

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def deliver(self, channel: str, recipient, payload: dict) -> bool:
        if channel not in self.channels:
            logger.warning(f"[deliver-skip] channel={channel} recipient={recipient} no transport")
            return False
        try:
            self.socketio.emit(ALERT_EVENT, payload, to=user_room(recipient), namespace=self.namespace)
        except Exception as exc:
            logger.warning(f"[deliver-failed] channel={channel} recipient={recipient} error={exc}")
            return False
        return True
