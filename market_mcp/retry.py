"""リトライ機構.

コネクター起動などの非同期処理を指数バックオフでリトライします。

使用例:
    ```python
    from market_mcp.retry import RetryPolicy, retry_async

    policy = RetryPolicy(max_attempts=3, wait_multiplier=2)
    result = await retry_async(lambda: connect("github"), policy)
    ```
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from pydantic import BaseModel, Field


T = TypeVar("T")


class RetryPolicy(BaseModel):
    """リトライ設定.

    Args:
        max_attempts: 最大試行回数
        wait_multiplier: 待機時間の倍率
        wait_min: 最小待機時間（秒）
        wait_max: 最大待機時間（秒）
    """

    max_attempts: int = Field(default=3, ge=1, description="最大試行回数")
    wait_multiplier: float = Field(default=2.0, ge=0.0, description="待機時間の倍率")
    wait_min: float = Field(default=1.0, ge=0.0, description="最小待機時間（秒）")
    wait_max: float = Field(default=30.0, ge=0.0, description="最大待機時間（秒）")

    def wait_time(self, attempt: int) -> float:
        """attempt 回目の失敗後の待機時間を計算."""
        return min(self.wait_min * (self.wait_multiplier ** (attempt - 1)), self.wait_max)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    logger: logging.Logger | None = None,
) -> T:
    """リトライ付きで非同期関数を実行.

    Args:
        func: 引数なしの非同期関数
        policy: リトライ設定
        label: ログ用の名前
        logger: ロガー

    Returns:
        func の戻り値

    Raises:
        Exception: 最大試行回数を超えた場合、最後の例外
    """
    log = logger or logging.getLogger(__name__)

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func()
        except Exception as e:
            log.warning(
                f"{label}: attempt {attempt}/{policy.max_attempts} failed: "
                f"{type(e).__name__}: {e}"
            )
            if attempt >= policy.max_attempts:
                raise

            wait = policy.wait_time(attempt)
            log.info(f"{label}: waiting {wait:.2f}s before retry...")
            await asyncio.sleep(wait)

    msg = "Unexpected error in retry logic"
    raise RuntimeError(msg)
