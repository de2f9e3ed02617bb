"""Real-time push channel for map observers."""

import asyncio
import contextlib

from fastapi import FastAPI, WebSocket, status

from where_api import DESCRIPTION, __version__
from where_api.app_logging import configure_logging
from where_api.containers import AppContainer


def create_push_app(container: AppContainer) -> FastAPI:
    """Create the WebSocket app observers connect to, served on its own port."""
    configure_logging(container.settings.log_level)
    app = FastAPI(title=f"{DESCRIPTION} (push)", version=__version__)
    app.state.container = container

    @app.websocket("/")
    async def observe(websocket: WebSocket) -> None:
        """Stream one JSON Feature per completed step until the client leaves."""
        hub = container.broadcast_hub
        # Subscribe before accepting so nothing published after the handshake
        # is missed.
        subscriber = hub.subscribe()
        tasks: list[asyncio.Task[None]] = []
        try:
            await websocket.accept()
            sender = asyncio.create_task(hub.deliver(subscriber, websocket.send_text))
            receiver = asyncio.create_task(_wait_for_disconnect(websocket))
            tasks = [sender, receiver]
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            if receiver not in done:
                # Delivery stopped on a failed or slow send.
                receiver.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await receiver
                await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        finally:
            hub.unsubscribe(subscriber)
            for task in tasks:
                task.cancel()
            for task in tasks:
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    @app.get("/health")
    async def health() -> dict[str, object]:
        """Report push channel status."""
        return {"status": "ok", "observers": container.broadcast_hub.subscriber_count}

    return app


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return
