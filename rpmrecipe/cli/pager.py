import os
import pydoc
from typing import Optional


def page(text: str, enabled: Optional[bool] = False) -> None:
    if enabled:
        # Less options from $RPMRECIPE_LESS, with a fallback:
        # F: don't page if one screen
        # X: do not clear screen
        # R: pass through control characters
        # K: quit on ^C
        os.environ["LESS"] = os.getenv("RPMRECIPE_LESS", "FXRK")
        pydoc.pager(text)
    else:
        print(text, end="" if text.endswith("\n") else "\n")
