from __future__ import annotations

import asyncio
import threading
import uuid
from typing import Callable, Dict, List, Optional

from log import get_logger, log_debug, log_error, log_info
from snapshot import Snapshot, serialize

logger = get_logger("moonclock.broadcaster")

_CLOSED = object()


class ChannelError(Exception):
    def __init__(self, channel_id: str, reason: str) -> None:
        super().__init__(f"channel {channel_id}: {reason}")
        self.channel_id = channel_id


class ChannelClosedError(ChannelError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(channel_id, "closed")


class ChannelFullError(ChannelError):
    def __init__(self, channel_id: str) -> None:
        super().__init__(channel_id, "too many pending payloads")


class Channel:
    """Un suscriptor vivo: cola FIFO acotada de instantáneas serializadas.

    ``send`` nunca bloquea; con la cola llena el consumidor va retrasado y se
    reporta como fallo de envío. Una vez que hay un consumidor esperando en
    ``receive``, usar solo desde el hilo del event loop.
    """

    def __init__(self, channel_id: str, max_pending: int = 16) -> None:
        self.channel_id = channel_id
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending + 1)
        self._max_pending = max_pending
        self._closed = False
        self.last_send_ok: Optional[bool] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def pending(self) -> int:
        return self._queue.qsize()

    def send(self, payload: str) -> None:
        if self._closed:
            raise ChannelClosedError(self.channel_id)
        # Un hueco queda reservado para la marca de cierre
        if self._queue.qsize() >= self._max_pending:
            self.last_send_ok = False
            raise ChannelFullError(self.channel_id)
        self._queue.put_nowait(payload)
        self.last_send_ok = True

    def close(self) -> None:
        """Descarta lo pendiente y despierta al consumidor. Idempotente."""
        if self._closed:
            return
        self._closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def receive(self, timeout: Optional[float] = None) -> Optional[str]:
        """Siguiente payload en orden de envío, o None si vence ``timeout``.

        Lanza ChannelClosedError una vez cerrado el canal.
        """
        try:
            if timeout is None:
                item = await self._queue.get()
            else:
                item = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None
        if item is _CLOSED:
            # Dejar la marca para lectores posteriores
            self._queue.put_nowait(_CLOSED)
            raise ChannelClosedError(self.channel_id)
        return item


class Broadcaster:
    """Registro de canales suscritos con publicación a todos.

    El registro va protegido por un lock; ``publish`` recorre una copia tomada
    bajo el lock, así subscribe/unsubscribe concurrentes no alteran una
    publicación en curso. Los canales que fallan se eliminan y se cierran.
    """

    def __init__(
        self,
        *,
        max_pending: int = 16,
        serializer: Callable[[Snapshot], str] = serialize,
    ) -> None:
        self._channels: Dict[str, Channel] = {}
        self._lock = threading.Lock()
        self._max_pending = max_pending
        self._serializer = serializer

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def subscribe(self) -> str:
        channel = Channel(uuid.uuid4().hex, max_pending=self._max_pending)
        with self._lock:
            self._channels[channel.channel_id] = channel
            count = len(self._channels)
        log_debug(logger, "subscriber added", channel_id=channel.channel_id, subscribers=count)
        return channel.channel_id

    def channel(self, channel_id: str) -> Optional[Channel]:
        with self._lock:
            return self._channels.get(channel_id)

    def channel_ids(self) -> List[str]:
        with self._lock:
            return list(self._channels)

    def unsubscribe(self, channel_id: str) -> None:
        """Quita y cierra un canal; ids desconocidos se ignoran."""
        with self._lock:
            channel = self._channels.pop(channel_id, None)
        if channel is None:
            return
        channel.close()
        log_debug(logger, "subscriber removed", channel_id=channel_id)

    def publish(self, snapshot: Snapshot) -> int:
        """Envía una instantánea serializada a cada canal registrado.

        Devuelve cuántos canales la aceptaron. Nunca lanza excepciones.
        """
        try:
            payload = self._serializer(snapshot)
        except Exception as exc:
            log_error(logger, "failed to serialise snapshot for broadcast", error=str(exc))
            return 0

        with self._lock:
            targets = list(self._channels.values())

        delivered = 0
        dead: List[Channel] = []
        for channel in targets:
            try:
                channel.send(payload)
                delivered += 1
            except Exception as exc:
                dead.append(channel)
                log_debug(logger, "subscriber dropped (send failed)", channel_id=channel.channel_id, error=str(exc))

        if dead:
            with self._lock:
                for channel in dead:
                    self._channels.pop(channel.channel_id, None)
            for channel in dead:
                channel.close()

        log_info(logger, "broadcast complete", delivered=delivered, removed=len(dead), subscribers=len(self))
        return delivered
