import logging

from PySide6.QtCore import QRunnable, Slot

logger = logging.getLogger(__name__)


class Worker(QRunnable):
    """
    Runs a blocking callable on the global thread pool so the UI thread stays free.
    """
    def __init__(self, fn, *args, **kwargs):
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs

    @Slot()
    def run(self):
        try:
            self.fn(*self.args, **self.kwargs)
        except Exception as e:
            logger.error("Error in worker thread (%s): %s", getattr(self.fn, "__name__", "callable"), e, exc_info=True)
