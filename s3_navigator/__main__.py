"""Module entry point for the S3 navigator application."""
import logging
import os
import tkinter as tk

from .platform import detect_platform
from .settings import SettingsStorage, apply_env_overrides
from .tk_view import S3NavigatorApp


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("S3NAV_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = apply_env_overrides(SettingsStorage().load())
    root = tk.Tk()
    S3NavigatorApp(root, settings=settings, platform=detect_platform())
    root.mainloop()


if __name__ == "__main__":
    main()
