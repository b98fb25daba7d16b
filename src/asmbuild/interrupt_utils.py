"""KeyboardInterrupt handling for worker threads.

Ctrl-C is delivered only to the main thread. A worker that catches a
KeyboardInterrupt must forward it to the main thread before re-raising,
otherwise the interrupt is lost together with the worker.
"""

import _thread
import threading
from typing import NoReturn


def handle_keyboard_interrupt_properly(ke: KeyboardInterrupt) -> NoReturn:
    """Forward a KeyboardInterrupt to the main thread and re-raise it.

    Args:
        ke: The interrupt that was caught
    """
    if threading.current_thread() is not threading.main_thread():
        _thread.interrupt_main()
    raise ke
