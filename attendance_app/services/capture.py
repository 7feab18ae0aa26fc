from typing import Optional

from attendance_app.utils.logger import get_logger

log = get_logger(__name__)


class CaptureSession:
    """
    Camera session state on the server side.

    The browser owns the camera and uploads frames; this only remembers
    whether a session is running and the latest frame it sent. Each start
    opens a new generation so results from an earlier session can be
    recognised as stale.
    """

    def __init__(self):
        self.active = False
        self.generation = 0
        self._frame: Optional[str] = None

    def start(self) -> int:
        if not self.active:
            self.active = True
            self.generation += 1
            self._frame = None
            log.info(f"Capture session {self.generation} started")
        return self.generation

    def stop(self) -> None:
        if self.active:
            log.info(f"Capture session {self.generation} stopped")
        self.active = False
        self._frame = None

    def submit_frame(self, frame: str) -> bool:
        """Stores a frame; ignored (False) when no session is running."""
        if not self.active:
            return False
        self._frame = frame
        return True

    def capture_frame(self) -> Optional[str]:
        if not self.active:
            return None
        return self._frame

    def is_current(self, generation: int) -> bool:
        return self.active and self.generation == generation
