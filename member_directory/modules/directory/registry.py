"""Thread-safe registry of user_id -> DirectoryController for signed-in members."""
import threading
import logging
from typing import Callable, Optional

from member_directory.core.session import SessionIdentity
from member_directory.modules.directory.controller import DirectoryController

logger = logging.getLogger(__name__)
_lock = threading.Lock()
_registry: dict[str, DirectoryController] = {}


def get_or_create(
    identity: SessionIdentity,
    factory: Callable[[SessionIdentity], DirectoryController],
) -> DirectoryController:
    """Return identity's controller, building it on first use.

    A refreshed access token is pushed into the existing controller's session
    so its listeners see the change; the cached directory is kept.
    """
    with _lock:
        controller = _registry.get(identity.user_id)
        if controller is None:
            controller = factory(identity)
            _registry[identity.user_id] = controller
            logger.debug(f"Registered directory controller for user {identity.user_id}")
            return controller
    if controller.session.identity != identity:
        controller.session.set_identity(identity)
    return controller


def get(user_id: str) -> Optional[DirectoryController]:
    with _lock:
        return _registry.get(user_id)


def drop(user_id: str) -> bool:
    """Sign the member's session out and forget its controller."""
    with _lock:
        controller = _registry.pop(user_id, None)
    if controller is None:
        return False
    controller.session.sign_out()
    controller.close()
    logger.debug(f"Dropped directory controller for user {user_id}")
    return True


def clear() -> None:
    with _lock:
        user_ids = list(_registry)
    for user_id in user_ids:
        drop(user_id)
