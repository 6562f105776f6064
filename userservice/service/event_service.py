import asyncio
import json
import time
from collections.abc import Callable
from datetime import datetime, timezone
import redis.asyncio as airedis

from core.logger import get_logger, get_correlation_id, correlation_id_var

logger = get_logger("events")

"""
이벤트 발행 (fire-and-forget)

요청 처리 흐름:
  publish_*() → 큐에 넣고 즉시 반환 (요청은 결과를 기다리지 않음)
  worker N개 → 큐에서 꺼내 sink로 전송

실패 정책:
  - 큐가 가득 찼거나 발행기가 멈춘 상태 → 이벤트 버림 (로그만)
  - 전송 실패 → 차단기 open, cooldown 동안은 전송 생략
  - cooldown이 지나면 다음 이벤트로 다시 시도, 성공하면 close
"""

IMAGE_UPLOADED = "IMAGE_UPLOADED"
IMAGE_DELETED = "IMAGE_DELETED"
USER_REGISTERED = "USER_REGISTERED"
USER_DEACTIVATED = "USER_DEACTIVATED"


class NoOpSink:
    """이벤트 비활성화 시 사용: 아무것도 보내지 않음"""

    async def send(self, stream: str, key: str, message: dict) -> None:
        logger.debug(f"Events disabled, dropping {message.get('eventType')} for {key}")


class RedisStreamSink:
    """Redis Stream(XADD)으로 전송: key는 username"""

    def __init__(self, redis: airedis.Redis, max_len: int = 10_000):
        self.redis = redis
        self.max_len = max_len

    async def send(self, stream: str, key: str, message: dict) -> None:
        await self.redis.xadd(
            stream,
            {"key": key, "payload": json.dumps(message, ensure_ascii=False)},
            maxlen=self.max_len,
            approximate=True,
        )


class CircuitBreaker:

    def __init__(self, cooldown_seconds: float, timer: Callable[[], float] = time.monotonic):
        self.cooldown_seconds = cooldown_seconds
        self.timer = timer
        self.is_open = False
        self.half_open = False
        self.opened_at = 0.0

    def allow(self) -> bool:
        if not self.is_open:
            return True
        # cooldown이 지나면 결과가 나올 때까지 한 건만 시험 삼아 통과
        if self.half_open or self.timer() - self.opened_at <= self.cooldown_seconds:
            return False
        self.half_open = True
        return True

    def record_success(self) -> None:
        self.half_open = False
        if self.is_open:
            self.is_open = False
            logger.info("Event circuit breaker closed - sink restored")

    def record_failure(self) -> None:
        self.is_open = True
        self.half_open = False
        self.opened_at = self.timer()
        logger.warning("Event circuit breaker opened due to failures")


class EventPublisher:

    def __init__(self, sink, image_stream: str = "image-events", user_stream: str = "user-events",
                 workers: int = 4, queue_size: int = 1000, cooldown_seconds: float = 300,
                 timer: Callable[[], float] = time.monotonic):
        self.sink = sink
        self.image_stream = image_stream
        self.user_stream = user_stream
        self.worker_count = workers
        self.breaker = CircuitBreaker(cooldown_seconds, timer)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task] = []
        self._running = False

    async def start(self) -> None:
        self._running = True
        self._workers = [
            asyncio.create_task(self._worker(), name=f"event-worker-{i}")
            for i in range(self.worker_count)
        ]
        logger.info(f"Event publisher started with {self.worker_count} workers")

    async def stop(self, timeout: float = 5.0) -> None:
        self._running = False
        try:
            await asyncio.wait_for(self._queue.join(), timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Event queue not drained, {self._queue.qsize()} events dropped")

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Event publisher stopped")

    async def drain(self) -> None:
        """큐에 쌓인 이벤트가 모두 처리될 때까지 대기"""
        await self._queue.join()

    def _event(self, username: str, event_type: str, category: str) -> dict:
        return {
            "username": username,
            "eventType": event_type,
            "eventCategory": category,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": "user-service",
            "version": "1.0.0",
            "correlationId": get_correlation_id(),
        }

    def publish_image_event(self, username: str, image_name: str, event_type: str,
                            backend: str | None = None) -> bool:
        message = self._event(username, event_type, "IMAGE")
        message["imageName"] = image_name
        if backend:
            message["backend"] = backend
        return self._enqueue(self.image_stream, username, message)

    def publish_user_event(self, username: str, event_type: str) -> bool:
        message = self._event(username, event_type, "USER")
        return self._enqueue(self.user_stream, username, message)

    def _enqueue(self, stream: str, key: str, message: dict) -> bool:
        if not self._running:
            logger.warning(f"Event publisher not running, dropping {message['eventType']} for {key}")
            return False
        try:
            self._queue.put_nowait((stream, key, message))
        except asyncio.QueueFull:
            logger.warning(f"Event queue full, dropping {message['eventType']} for {key}")
            return False
        return True

    async def _worker(self) -> None:
        while True:
            stream, key, message = await self._queue.get()
            token = correlation_id_var.set(message.get("correlationId") or "-")
            try:
                await self._deliver(stream, key, message)
            finally:
                correlation_id_var.reset(token)
                self._queue.task_done()

    async def _deliver(self, stream: str, key: str, message: dict) -> None:
        event_type = message["eventType"]
        if not self.breaker.allow():
            logger.debug(f"Event circuit breaker is open, skipping event: key={key}, eventType={event_type}")
            return

        try:
            await self.sink.send(stream, key, message)
        except Exception as e:
            # 전송 실패는 호출자에게 절대 전파하지 않음
            logger.warning(f"Failed to send event: key={key}, eventType={event_type}, error={e}")
            self.breaker.record_failure()
            return

        logger.debug(f"Event sent: key={key}, eventType={event_type}")
        self.breaker.record_success()
