from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from ..core.exceptions import PermissionDeniedError
from ..core.interfaces import DevicePermissions, MediaDevices, Permission

logger = structlog.get_logger(__name__)

Send = Callable[[str, Dict[str, Any]], Awaitable[None]]


def parse_permission(value: Optional[str]) -> Permission:
    try:
        return Permission(value)
    except ValueError:
        return Permission.PROMPT


class BrowserMediaDevices(MediaDevices):
    """Camera and microphone owned by the candidate's browser tab."""

    def __init__(self, send: Send):
        self._send = send
        self.permissions = DevicePermissions()
        self.acquired = False
        self.release_count = 0

    def update_permissions(self, microphone: Optional[str] = None, camera: Optional[str] = None) -> DevicePermissions:
        if microphone is not None:
            self.permissions.microphone = parse_permission(microphone)
        if camera is not None:
            self.permissions.camera = parse_permission(camera)
        logger.info("device_permissions", microphone=self.permissions.microphone.value,
                    camera=self.permissions.camera.value)
        return self.permissions

    async def check_permissions(self) -> DevicePermissions:
        return self.permissions

    async def acquire(self) -> None:
        denied = self.permissions.denied()
        if denied:
            raise PermissionDeniedError(denied)
        if self.acquired:
            return
        self.acquired = True
        await self._send("acquire_devices", {"audio": True, "video": True})

    async def release(self) -> None:
        if not self.acquired:
            return
        self.acquired = False
        self.release_count += 1
        await self._send("release_devices", {})
        logger.info("devices_released")
