"""
生命周期与中断处理

CancellationToken 由调用方创建并传入调度器；SIGINT/SIGTERM 只负责设置令牌，
调度器在批次边界检查令牌，并在结束时无条件保存检查点。
"""
import asyncio
import signal
from typing import Callable, Optional
from loguru import logger

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """协作式取消令牌"""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled"):
        """请求停止（重复调用只记录第一次的原因）"""
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()

    async def wait(self):
        await self._event.wait()


def install_signal_handlers(
    token: CancellationToken,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> Callable[[], None]:
    """
    安装 SIGINT/SIGTERM 处理：收到信号时设置取消令牌

    第一次信号开始优雅停止，后续信号忽略。

    Args:
        token: 取消令牌
        loop: 事件循环，默认当前运行的循环

    Returns:
        卸载函数，恢复原有处理
    """
    loop = loop or asyncio.get_running_loop()
    restore = []

    def _handle(sig: signal.Signals):
        if token.cancelled:
            return
        logger.warning(f"⏹️  收到 {sig.name}，完成当前批次后保存进度...")
        token.cancel(sig.name)

    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _handle, sig)
            restore.append(lambda s=sig: loop.remove_signal_handler(s))
        except (NotImplementedError, RuntimeError):
            # 不支持 add_signal_handler 的平台（如 Windows）
            try:
                previous = signal.signal(sig, lambda signum, frame, s=sig: loop.call_soon_threadsafe(_handle, s))
                restore.append(lambda s=sig, p=previous: signal.signal(s, p))
            except ValueError:
                logger.debug(f"当前环境不支持信号 {sig.name}")

    def uninstall():
        for undo in restore:
            undo()
        restore.clear()

    return uninstall
