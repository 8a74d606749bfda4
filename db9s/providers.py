"""Command palette providers for windows, connections and refresh."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

from .state import LayoutState
from .windows import WINDOW_CATALOG, WindowType


def _layout_state(provider: Provider) -> LayoutState | None:
    state = getattr(provider.app, "layout_state", None)
    if isinstance(state, LayoutState):
        return state
    return None


class WindowSwitchProvider(Provider):
    """Expose every window to the command palette."""

    async def search(self, query: str) -> Hits:
        if _layout_state(self) is None:
            return
        matcher = self.matcher(query)
        for spec in WINDOW_CATALOG.values():
            match = matcher.match(spec.title)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=f"Open window: {matcher.highlight(spec.title)}",
                    command=self._build_callback(spec.window),
                    help=f"Same as :{spec.command}",
                )

    async def discover(self) -> Hits:
        if _layout_state(self) is None:
            return
        for spec in WINDOW_CATALOG.values():
            yield DiscoveryHit(
                display=f"Open window: {spec.title}",
                command=self._build_callback(spec.window),
                help=f"Same as :{spec.command}",
            )

    def _build_callback(self, window: WindowType) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            state = _layout_state(self)
            if state is None:
                return
            state.change_window(window)

        return _run


class ConnectionSwitchProvider(Provider):
    """Expose saved connections to the command palette."""

    async def search(self, query: str) -> Hits:
        state = _layout_state(self)
        if state is None:
            return
        matcher = self.matcher(query)
        for connection in state.store.connections:
            match = matcher.match(connection.name)
            if match > 0:
                yield Hit(
                    score=match,
                    match_display=f"Switch to connection: {matcher.highlight(connection.name)}",
                    command=self._build_callback(connection.id),
                    help=f"{connection.driver} {connection.address}",
                )

    async def discover(self) -> Hits:
        state = _layout_state(self)
        if state is None:
            return
        for connection in state.store.connections:
            yield DiscoveryHit(
                display=f"Switch to connection: {connection.name}",
                command=self._build_callback(connection.id),
                help=f"{connection.driver} {connection.address}",
            )

    def _build_callback(self, connection_id: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            state = _layout_state(self)
            if state is None:
                return
            state.activate_connection(connection_id)

        return _run


class RefreshProvider(Provider):
    """Expose a refresh action for the current window."""

    _LABEL = "Refresh current window"

    async def search(self, query: str) -> Hits:
        if _layout_state(self) is None:
            return
        matcher = self.matcher(query)
        score = matcher.match(self._LABEL)
        if score > 0:
            yield Hit(
                score=score,
                match_display=matcher.highlight(self._LABEL),
                command=self._build_callback(),
                help="Same as pressing r.",
            )

    async def discover(self) -> Hits:
        if _layout_state(self) is None:
            return
        yield DiscoveryHit(
            display=self._LABEL,
            command=self._build_callback(),
            help="Same as pressing r.",
        )

    def _build_callback(self) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            state = _layout_state(self)
            if state is None:
                return
            state.refresh()

        return _run


__all__ = ["ConnectionSwitchProvider", "RefreshProvider", "WindowSwitchProvider"]
