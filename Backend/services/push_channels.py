"""
Per-user push channels for live notifications.

One channel per user; registering again replaces (and closes) the previous one.
Delivery is best effort: a failed send drops the channel, it is never retried.
"""
import logging
import queue
import threading

from config import PUSH_QUEUE_SIZE

logger = logging.getLogger(__name__)


class ChannelClosedError(Exception):
    pass


class PushChannel:
    def __init__(self, user_id, maxsize=PUSH_QUEUE_SIZE):
        self.user_id = user_id
        self._queue = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()

    @property
    def closed(self):
        return self._closed.is_set()

    def send(self, event, data):
        if self.closed:
            raise ChannelClosedError(f"Channel for user {self.user_id} is closed")
        try:
            self._queue.put_nowait((event, data))
        except queue.Full:
            raise ChannelClosedError(f"Channel for user {self.user_id} is full")

    def get_nowait(self):
        """Next (event, data) tuple or None when nothing is pending."""
        try:
            return self._queue.get_nowait()
        except queue.Empty:
            return None

    def close(self):
        self._closed.set()


class ConnectionManager:
    def __init__(self, maxsize=PUSH_QUEUE_SIZE):
        self._channels = {}
        self._lock = threading.Lock()
        self._maxsize = maxsize

    def register(self, user_id):
        channel = PushChannel(user_id, maxsize=self._maxsize)
        with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel
        if previous is not None:
            previous.close()
            logger.info(f"Replaced push channel for user {user_id}")
        else:
            logger.info(f"Registered push channel for user {user_id}")
        return channel

    def unregister(self, user_id, channel=None):
        """Remove the user's channel; when `channel` is given, only if it is still the registered one."""
        with self._lock:
            current = self._channels.get(user_id)
            if current is None or (channel is not None and current is not channel):
                return False
            del self._channels[user_id]
        current.close()
        logger.info(f"Unregistered push channel for user {user_id}")
        return True

    def send(self, user_id, event, data):
        with self._lock:
            channel = self._channels.get(user_id)
        if channel is None:
            return False
        try:
            channel.send(event, data)
            return True
        except ChannelClosedError as e:
            logger.warning(f"Dropping push channel for user {user_id}: {e}")
            self.unregister(user_id, channel)
            return False

    def is_connected(self, user_id):
        with self._lock:
            return user_id in self._channels

    def active_count(self):
        with self._lock:
            return len(self._channels)


connection_manager = ConnectionManager()
