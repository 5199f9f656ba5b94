from __future__ import annotations

from typing import Callable, Optional

AfterFn = Callable[[int, Callable[[], None]], object]
AfterCancelFn = Callable[[object], None]

STATUS_DISMISS_MS = 1500


class StatusPresenter:
    """Shows transient status notifications with a fixed auto-dismiss."""

    def __init__(
        self,
        *,
        show_fn: Callable[[str], None],
        hide_fn: Callable[[], None],
        after: AfterFn,
        after_cancel: AfterCancelFn,
        log_fn: Callable[..., None],
    ) -> None:
        self._show = show_fn
        self._hide = hide_fn
        self._after = after
        self._after_cancel = after_cancel
        self._log = log_fn
        self._message: str = ""
        self._visible: bool = False
        self._dismiss_handle: Optional[object] = None

    @property
    def message(self) -> str:
        return self._message

    @property
    def visible(self) -> bool:
        return self._visible

    def show(self, message: str) -> None:
        text = (message or "").strip()
        if not text:
            return
        self._cancel_pending()
        self._message = text
        self._visible = True
        self._log("Status message shown: text='%s' ttl_ms=%s", text, STATUS_DISMISS_MS)
        try:
            self._show(text)
        except Exception as exc:
            self._log("Status display failed: %s", exc)
        self._dismiss_handle = self._after(STATUS_DISMISS_MS, self._expire)

    def dismiss(self) -> None:
        self._cancel_pending()
        if not self._visible:
            return
        self._visible = False
        try:
            self._hide()
        except Exception as exc:
            self._log("Status dismiss failed: %s", exc)

    def _expire(self) -> None:
        self._dismiss_handle = None
        self.dismiss()

    def _cancel_pending(self) -> None:
        handle = self._dismiss_handle
        self._dismiss_handle = None
        if handle is not None:
            try:
                self._after_cancel(handle)
            except Exception:
                pass
