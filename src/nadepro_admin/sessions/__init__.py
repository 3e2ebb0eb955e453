"""Editor session control.

Usage:
    from nadepro_admin.sessions import SessionController

    controller = SessionController(api)
    session = await controller.start_editor_session("de_mirage", collection_id)
    watch = controller.watch(session, on_update=print)
    ...
    controller.stop_watching(watch)
"""

from .controller import SessionController, SessionWatch
from .polling import PeriodicPoll
from .views import ConnectionDetails, RunningSessionsView, SessionCard

__all__ = [
    "SessionController",
    "SessionWatch",
    "PeriodicPoll",
    "ConnectionDetails",
    "RunningSessionsView",
    "SessionCard",
]
