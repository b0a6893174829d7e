"""
请求限流
固定窗口计数：同一个键在一个窗口内最多放行 max_requests 次请求，
窗口到期后计数清零。限流器实例由应用持有，后台任务定期清理过期的计数桶。
"""

import asyncio
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Union

import redis.asyncio as redis
from fastapi import Request, Response
from loguru import logger

from cognify.core.config import Settings
from cognify.core.errors import AppError

KeyFunc = Callable[[Request], str]
Clock = Callable[[], float]

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"


def client_ip(request: Request) -> str:
    """客户端 IP：cf-connecting-ip > x-real-ip > x-forwarded-for 首项 > unknown"""
    headers = request.headers
    cf_ip = (headers.get("cf-connecting-ip") or "").strip()
    if cf_ip:
        return cf_ip
    real_ip = (headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return "unknown"


def auth_key(request: Request) -> str:
    user_agent = request.headers.get("user-agent") or "unknown"
    return f"auth:{client_ip(request)}:{user_agent}"


def _iso_utc(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class RateLimitPolicy:
    name: str
    window_seconds: float
    max_requests: int
    key_func: KeyFunc = client_ip


@dataclass
class Bucket:
    count: int
    reset_time: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_time: float
    retry_after: int = 0

    def headers(self) -> Dict[str, str]:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": _iso_utc(self.reset_time),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """进程内限流器，计数桶的读写由 asyncio.Lock 串行化"""

    def __init__(self, policy: RateLimitPolicy, clock: Clock = time.time, sweep_interval: float = 60.0) -> None:
        self.policy = policy
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._buckets: Dict[str, Bucket] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._buckets)

    def key_for(self, request: Request) -> str:
        return self.policy.key_func(request)

    def _decide(self, key: str, now: float) -> RateLimitDecision:
        bucket = self._buckets.get(key)
        if bucket is None or now > bucket.reset_time:
            bucket = Bucket(count=0, reset_time=now + self.policy.window_seconds)
            self._buckets[key] = bucket

        limit = self.policy.max_requests
        if bucket.count >= limit:
            return RateLimitDecision(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_time=bucket.reset_time,
                retry_after=max(0, math.ceil(bucket.reset_time - now)),
            )
        return RateLimitDecision(
            allowed=True,
            limit=limit,
            remaining=limit - bucket.count - 1,
            reset_time=bucket.reset_time,
        )

    async def check(self, request: Request) -> RateLimitDecision:
        """只判断不计数"""
        key = self.key_for(request)
        async with self._lock:
            return self._decide(key, self._clock())

    async def increment(self, request: Request) -> None:
        key = self.key_for(request)
        async with self._lock:
            bucket = self._buckets.get(key)
            if bucket is not None:
                bucket.count += 1

    async def hit(self, request: Request) -> RateLimitDecision:
        """判断并在放行时计数，两步在同一次加锁内完成"""
        key = self.key_for(request)
        async with self._lock:
            decision = self._decide(key, self._clock())
            if decision.allowed:
                self._buckets[key].count += 1

        if not decision.allowed:
            logger.warning(f"触发限流 policy={self.policy.name} key={key}")
        return decision

    async def sweep(self) -> int:
        """删除窗口已过期的计数桶，返回删除数量"""
        now = self._clock()
        async with self._lock:
            expired = [key for key, bucket in self._buckets.items() if bucket.reset_time < now]
            for key in expired:
                del self._buckets[key]
        if expired:
            logger.debug(f"限流计数桶清理 policy={self.policy.name} removed={len(expired)}")
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"限流计数桶清理失败 policy={self.policy.name}: {e}")

    def start(self) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name=f"rate-limit-sweep:{self.policy.name}")

    async def stop(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None


class RedisRateLimiter:
    """
    基于 Redis 的共享限流器，多实例部署时使用
    计数键首次出现时设置窗口过期时间；Redis 不可用时回退到进程内限流器
    """

    def __init__(self, policy: RateLimitPolicy, client: redis.Redis, fallback: RateLimiter, clock: Clock = time.time) -> None:
        self.policy = policy
        self.client = client
        self._fallback = fallback
        self._clock = clock

    def key_for(self, request: Request) -> str:
        return f"rl:{self.policy.name}:{self.policy.key_func(request)}"

    async def hit(self, request: Request) -> RateLimitDecision:
        key = self.key_for(request)
        window_ms = max(1, int(self.policy.window_seconds * 1000))
        try:
            pipe = self.client.pipeline()
            pipe.set(key, 0, nx=True, px=window_ms)
            pipe.incr(key)
            pipe.pttl(key)
            _, count, ttl_ms = await pipe.execute()
        except Exception as e:
            logger.warning(f"Redis 限流不可用，回退到进程内限流: {e}")
            return await self._fallback.hit(request)

        now = self._clock()
        ttl_ms = int(ttl_ms) if ttl_ms is not None and int(ttl_ms) >= 0 else window_ms
        reset_time = now + ttl_ms / 1000
        limit = self.policy.max_requests
        count = int(count)
        if count > limit:
            logger.warning(f"触发限流 policy={self.policy.name} key={key}")
            return RateLimitDecision(
                allowed=False,
                limit=limit,
                remaining=0,
                reset_time=reset_time,
                retry_after=max(0, math.ceil(ttl_ms / 1000)),
            )
        return RateLimitDecision(allowed=True, limit=limit, remaining=limit - count, reset_time=reset_time)

    async def sweep(self) -> int:
        return await self._fallback.sweep()

    def start(self) -> None:
        self._fallback.start()

    async def stop(self) -> None:
        await self._fallback.stop()


AnyRateLimiter = Union[RateLimiter, RedisRateLimiter]


def default_policies(config: Settings) -> Dict[str, RateLimitPolicy]:
    return {
        "general": RateLimitPolicy(
            name="general",
            window_seconds=config.RATE_LIMIT_GENERAL_WINDOW_SECONDS,
            max_requests=config.RATE_LIMIT_GENERAL_MAX,
        ),
        "auth": RateLimitPolicy(
            name="auth",
            window_seconds=config.RATE_LIMIT_AUTH_WINDOW_SECONDS,
            max_requests=config.RATE_LIMIT_AUTH_MAX,
            key_func=auth_key,
        ),
        "strict": RateLimitPolicy(
            name="strict",
            window_seconds=config.RATE_LIMIT_STRICT_WINDOW_SECONDS,
            max_requests=config.RATE_LIMIT_STRICT_MAX,
        ),
    }


def build_rate_limiters(config: Settings, clock: Clock = time.time) -> Dict[str, AnyRateLimiter]:
    """按配置创建 general / auth / strict 三个限流器"""
    client: Optional[redis.Redis] = None
    if config.RATE_LIMIT_BACKEND == "redis":
        client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=config.REDIS_CONNECT_TIMEOUT,
        )

    limiters: Dict[str, AnyRateLimiter] = {}
    for name, policy in default_policies(config).items():
        memory = RateLimiter(policy, clock=clock, sweep_interval=config.RATE_LIMIT_SWEEP_INTERVAL_SECONDS)
        if client is not None:
            limiters[name] = RedisRateLimiter(policy, client, memory, clock=clock)
        else:
            limiters[name] = memory
    logger.info(f"限流器已创建 backend={config.RATE_LIMIT_BACKEND} policies={list(limiters)}")
    return limiters


def start_rate_limiters(limiters: Dict[str, AnyRateLimiter]) -> None:
    for limiter in limiters.values():
        limiter.start()


async def stop_rate_limiters(limiters: Dict[str, AnyRateLimiter]) -> None:
    clients = []
    for limiter in limiters.values():
        await limiter.stop()
        if isinstance(limiter, RedisRateLimiter) and limiter.client not in clients:
            clients.append(limiter.client)
    for client in clients:
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"关闭 Redis 限流连接失败: {e}")


def rate_limit(name: str):
    """
    限流依赖工厂
    放行时写入 X-RateLimit-* 响应头；超限时抛出 429，OPTIONS 预检请求不计数
    """

    async def dependency(request: Request, response: Response) -> None:
        if request.method == "OPTIONS":
            return
        limiters = getattr(request.app.state, "rate_limiters", None) or {}
        limiter = limiters.get(name)
        if limiter is None:
            return

        decision = await limiter.hit(request)
        if not decision.allowed:
            raise AppError(
                RATE_LIMIT_MESSAGE,
                status_code=429,
                code="RATE_LIMIT_EXCEEDED",
                headers=decision.headers(),
            )
        response.headers.update(decision.headers())

    dependency.__name__ = f"rate_limit_{name}"
    return dependency
