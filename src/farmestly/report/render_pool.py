"""HTML -> PDF rendering on a bounded pool over one shared headless browser."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol

from playwright.async_api import async_playwright
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from farmestly.exceptions import RenderError, RenderTimeoutError

logger = logging.getLogger(__name__)

CHROMIUM_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
)

PAGE_NUMBER_FOOTER = (
    '<div style="font-size:9px;width:100%;text-align:center;color:#666;">'
    '<span class="pageNumber"></span> / <span class="totalPages"></span></div>'
)


def _default_margin() -> dict[str, str]:
    return {"top": "20mm", "right": "15mm", "bottom": "20mm", "left": "15mm"}


@dataclass
class RenderOptions:
    format: str = "A4"
    margin: dict[str, str] = field(default_factory=_default_margin)
    print_background: bool = True
    show_page_numbers: bool = True

    def pdf_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "format": self.format,
            "margin": dict(self.margin),
            "print_background": self.print_background,
        }
        if self.show_page_numbers:
            kwargs.update(
                display_header_footer=True,
                header_template="<div></div>",
                footer_template=PAGE_NUMBER_FOOTER,
            )
        return kwargs


class BrowserLauncher(Protocol):
    async def launch(self) -> Any: ...

    async def stop(self) -> None: ...


class PlaywrightLauncher:
    """Launches headless Chromium through Playwright."""

    def __init__(self, headless: bool = True, args: tuple[str, ...] = CHROMIUM_ARGS) -> None:
        self._headless = headless
        self._args = list(args)
        self._playwright = None

    async def launch(self):
        if self._playwright is None:
            self._playwright = await async_playwright().start()
        return await self._playwright.chromium.launch(headless=self._headless, args=self._args)

    async def stop(self) -> None:
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None


@dataclass(eq=False)
class _BrowserHandle:
    browser: Any
    served: int = 0
    active: int = 0
    retired: bool = False
    connected: bool = True
    closed: bool = False

    def usable(self) -> bool:
        return self.connected and not self.retired and not self.closed and self.browser.is_connected()


class RenderPool:
    """Bounded-concurrency PDF renderer.

    At most ``concurrency`` renders run at once; the rest wait for a slot.
    Every attempt gets a fresh browser context on the shared browser and a
    hard timeout. Failed attempts are retried with exponential backoff and
    the slot is given back while waiting. The browser is replaced after
    ``max_tasks_per_browser`` renders or as soon as it disconnects.
    """

    def __init__(
        self,
        launcher: BrowserLauncher,
        concurrency: int | None = None,
        reserved_cpus: int = 2,
        max_tasks_per_browser: int = 100,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        timeout_seconds: float = 60.0,
    ) -> None:
        if not concurrency or concurrency <= 0:
            concurrency = max(1, (os.cpu_count() or 1) - reserved_cpus)
        self._launcher = launcher
        self._concurrency = concurrency
        self._max_tasks = max(1, max_tasks_per_browser)
        self._max_attempts = max(1, max_attempts)
        self._backoff = backoff_seconds
        self._timeout = timeout_seconds

        self._semaphore: asyncio.Semaphore | None = None
        self._lock = asyncio.Lock()
        self._handle: _BrowserHandle | None = None
        self._initialized = False

        self._waiting = 0
        self._active = 0
        self._completed = 0
        self._failed = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def initialize(self) -> None:
        if self._initialized:
            return
        self._semaphore = asyncio.Semaphore(self._concurrency)
        self._initialized = True
        logger.info("Render pool ready (concurrency=%d, recycle after %d tasks)", self._concurrency, self._max_tasks)

    async def shutdown(self) -> None:
        self._initialized = False
        async with self._lock:
            handle, self._handle = self._handle, None
        if handle is not None:
            await self._close_handle(handle)
        await self._launcher.stop()
        logger.info("Render pool shut down")

    async def submit(self, html: str, options: RenderOptions | None = None) -> bytes:
        if not self._initialized or self._semaphore is None:
            raise RenderError("Render pool is not initialized")
        options = options or RenderOptions()

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=wait_exponential(multiplier=self._backoff),
                reraise=True,
                before_sleep=self._log_retry,
            ):
                with attempt:
                    pdf = await self._run_in_slot(html, options)
        except Exception:
            self._failed += 1
            raise
        self._completed += 1
        return pdf

    def _log_retry(self, retry_state: RetryCallState) -> None:
        logger.warning(
            "Render attempt %d failed (%s), retrying in %ss",
            retry_state.attempt_number,
            retry_state.outcome.exception(),
            retry_state.next_action.sleep,
        )

    def get_stats(self) -> dict[str, int]:
        return {
            "concurrency": self._concurrency,
            "waiting": self._waiting,
            "active": self._active,
            "completed": self._completed,
            "failed": self._failed,
            "browser_tasks_served": self._handle.served if self._handle else 0,
        }

    async def _run_in_slot(self, html: str, options: RenderOptions) -> bytes:
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1
        self._active += 1
        try:
            return await asyncio.wait_for(self._render_once(html, options), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise RenderTimeoutError(f"Render exceeded {self._timeout:g}s") from exc
        except RenderError:
            raise
        except Exception as exc:
            raise RenderError(f"Render failed: {exc}") from exc
        finally:
            self._active -= 1
            self._semaphore.release()

    async def _render_once(self, html: str, options: RenderOptions) -> bytes:
        handle = await self._acquire_browser()
        try:
            context = await handle.browser.new_context()
            try:
                page = await context.new_page()
                await page.set_content(html, wait_until="networkidle")
                return await page.pdf(**options.pdf_kwargs())
            finally:
                await context.close()
        finally:
            await self._release_browser(handle)

    async def _acquire_browser(self) -> _BrowserHandle:
        stale = None
        async with self._lock:
            handle = self._handle
            if handle is None or not handle.usable():
                if handle is not None:
                    handle.retired = True
                    stale = handle
                handle = await self._launch()
                self._handle = handle
            handle.served += 1
            handle.active += 1
            if handle.served >= self._max_tasks:
                handle.retired = True
                logger.info("Browser reached %d tasks, retiring after in-flight work", handle.served)
        if stale is not None and stale.active == 0:
            await self._close_handle(stale)
        return handle

    async def _release_browser(self, handle: _BrowserHandle) -> None:
        handle.active -= 1
        if handle.active == 0 and (handle.retired or not handle.connected):
            await self._close_handle(handle)

    async def _launch(self) -> _BrowserHandle:
        browser = await self._launcher.launch()
        handle = _BrowserHandle(browser=browser)
        browser.on("disconnected", lambda *_: self._on_disconnected(handle))
        logger.info("Launched render browser")
        return handle

    def _on_disconnected(self, handle: _BrowserHandle) -> None:
        if handle.connected and not handle.closed:
            logger.warning("Render browser disconnected, will relaunch on next task")
        handle.connected = False

    async def _close_handle(self, handle: _BrowserHandle) -> None:
        if handle.closed:
            return
        handle.closed = True
        try:
            await handle.browser.close()
        except Exception:
            logger.warning("Closing render browser failed", exc_info=True)
        else:
            logger.info("Closed render browser after %d tasks", handle.served)
