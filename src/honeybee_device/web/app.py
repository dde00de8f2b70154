"""FastAPI application exposing the camera and system controls.

Commands arrive as HTTP requests; asynchronous results (frames, camera
errors, photo results) are pushed over a single WebSocket.

Routes:
    POST /api/camera/start      -> {"status": ...}
    POST /api/camera/stop       -> {"status": ...} or 504 {"error": ...}
    POST /api/camera/photo      -> {"path", "success", "error"}
    GET  /api/camera/status     -> {"running": bool}
    GET  /api/system/brightness -> {"level": int}
    POST /api/system/brightness -> {"level": int}   body {"level": int}
    GET  /api/system/volume     -> {"level": int}
    POST /api/system/volume     -> {"level": int}   body {"level": int}
    GET  /api/system/wifi       -> {"connected": bool, "ssid": str | null}
    GET  /api/system/qr         -> {"exists": bool, "data": str | null, "error": ...}
    WS   /ws/events             -> {"event": name, "payload": {...}} messages
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from honeybee_device import __version__
from honeybee_device.drivers.config import get_factory
from honeybee_device.errors import StopTimeout, SystemControlError
from honeybee_device.events import EventBroadcaster, Subscription
from honeybee_device.observability import get_logger
from honeybee_device.service import CameraService
from honeybee_device.system import (
    BrightnessControl,
    CommandRunner,
    SubprocessCommandRunner,
    VolumeControl,
    check_wifi_status,
    read_qr_code_image,
)

logger = get_logger(__name__)


class LevelRequest(BaseModel):
    """Body of the brightness and volume setters."""

    level: int


def create_app(
    service: CameraService | None = None,
    broadcaster: EventBroadcaster | None = None,
    runner: CommandRunner | None = None,
    qr_path: Path | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Factory function so tests get a fresh app around fakes, and the CLI
    gets one around the configured driver.

    Args:
        service: Camera service; built from the process-wide
            DriverFactory (emitting into ``broadcaster``) if omitted.
        broadcaster: Event fan-out for ``/ws/events``. Pass the same
            instance that ``service`` emits into. Omitting it while
            passing ``service`` logs a warning, since the socket would
            stay silent.
        runner: Command runner for system controls.
        qr_path: Provisioning QR code image; the per-user default if omitted.

    Returns:
        Configured FastAPI application. Its lifespan stops the camera on
        shutdown.

    Example:
        >>> app = create_app()
        >>> uvicorn.run(app, host="127.0.0.1", port=8765)
    """
    if service is not None and broadcaster is None:
        logger.warning(
            "Camera service given without its broadcaster; "
            "/ws/events will not carry its events"
        )
    events = broadcaster if broadcaster is not None else EventBroadcaster()
    camera = (
        service
        if service is not None
        else CameraService.from_factory(get_factory(), sink=events)
    )
    commands = runner if runner is not None else SubprocessCommandRunner()
    brightness = BrightnessControl(commands)
    volume = VolumeControl(commands)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Log startup; release the camera on shutdown."""
        logger.info("Starting honeybee device services", camera=repr(camera))
        yield
        logger.info("Shutting down honeybee device services")
        await asyncio.to_thread(camera.shutdown)

    app = FastAPI(
        title="Honeybee Device",
        description="Camera streaming and system controls for the kiosk",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.camera = camera
    app.state.events = events

    # --- Camera ---
    # Plain def routes run in the threadpool; stop blocks while polling.

    @app.post("/api/camera/start")
    def api_start_camera() -> dict:
        """Start the live stream. Device errors arrive as camera-error events."""
        return {"status": camera.start_camera_stream()}

    @app.post("/api/camera/stop")
    def api_stop_camera() -> JSONResponse:
        """Stop the live stream and wait for the device to be released.

        Returns:
            200 ``{"status": ...}``, or 504 ``{"error": ...}`` when the
            worker did not exit within the stop window.
        """
        try:
            status = camera.stop_camera_stream()
        except StopTimeout as e:
            return JSONResponse({"error": str(e)}, status_code=504)
        return JSONResponse({"status": status})

    @app.post("/api/camera/photo")
    def api_capture_photo() -> dict:
        """Save the latest frame. Failures are reported in the body, not as 5xx."""
        return camera.capture_photo().to_payload()

    @app.get("/api/camera/status")
    async def api_camera_status() -> dict:
        return {"running": camera.is_streaming}

    # --- System ---

    @app.get("/api/system/brightness")
    def api_get_brightness() -> JSONResponse:
        try:
            return JSONResponse({"level": brightness.get_brightness()})
        except SystemControlError as e:
            logger.error("Brightness read failed", error=str(e))
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.post("/api/system/brightness")
    def api_set_brightness(body: LevelRequest) -> JSONResponse:
        try:
            return JSONResponse({"level": brightness.set_brightness(body.level)})
        except SystemControlError as e:
            logger.error("Brightness change failed", error=str(e), level=body.level)
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.get("/api/system/volume")
    def api_get_volume() -> JSONResponse:
        try:
            return JSONResponse({"level": volume.get_volume()})
        except SystemControlError as e:
            logger.error("Volume read failed", error=str(e))
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.post("/api/system/volume")
    def api_set_volume(body: LevelRequest) -> JSONResponse:
        try:
            return JSONResponse({"level": volume.set_volume(body.level)})
        except SystemControlError as e:
            logger.error("Volume change failed", error=str(e), level=body.level)
            return JSONResponse({"error": str(e)}, status_code=500)

    @app.get("/api/system/wifi")
    def api_wifi_status() -> dict:
        return check_wifi_status(commands).to_payload()

    @app.get("/api/system/qr")
    def api_qr_code() -> dict:
        """Provisioning QR code as a PNG data URL, if the setup service wrote one."""
        return read_qr_code_image(qr_path).to_payload()

    # --- Events ---

    @app.websocket("/ws/events")
    async def ws_events(websocket: WebSocket) -> None:
        """Push every device event to the client until it disconnects.

        Business context: The GUI opens this socket once when it loads
        and renders ``camera-frame`` payloads straight into an ``<img>``.
        A slow client loses old frames, never the newest one.
        """
        # Subscribe before accepting so no event emitted after the
        # handshake is missed.
        with events.subscribe() as subscription:
            await websocket.accept()
            sender = asyncio.create_task(_pump(websocket, subscription))
            try:
                while True:
                    # Client messages are ignored; this only watches for close.
                    await websocket.receive_text()
            except WebSocketDisconnect:
                logger.debug(
                    "Event client disconnected",
                    subscriber_id=subscription.subscriber_id,
                )
            finally:
                sender.cancel()
                await asyncio.gather(sender, return_exceptions=True)

    return app


async def _pump(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward queued messages to the socket until cancelled."""
    while True:
        message = await subscription.get()
        await websocket.send_json(message)
