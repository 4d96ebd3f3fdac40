from __future__ import annotations
"""Tkinter-based shell that renders :class:`NavigationState`."""
from pathlib import Path
import tkinter as tk
from tkinter import filedialog, messagebox, ttk

from .controller import S3NavigatorController
from .models import NavigationState
from .platform import Platform
from .presenter import NavigationPresenter
from .services import S3ListingService
from .settings import AppSettings
from .ui_utils import format_entry, format_location, format_title, visible_entries


class TkFileSaver:
    """Asks the user where to store a download using the native save dialog."""

    def __init__(self, root: tk.Misc):
        self._root = root

    def save(self, suggested_name: str, data: bytes) -> bool:
        destination = filedialog.asksaveasfilename(
            parent=self._root,
            title="Save Object As",
            initialfile=suggested_name,
        )
        if not destination:
            return False
        Path(destination).write_bytes(data)
        return True


class S3NavigatorApp:
    """Tkinter view that delegates navigation to :class:`NavigationPresenter`."""

    def __init__(
        self,
        root: tk.Tk,
        *,
        settings: AppSettings | None = None,
        platform: Platform | None = None,
        presenter: NavigationPresenter | None = None,
    ):
        self.root = root
        self.root.geometry("640x720")
        self.root.minsize(400, 320)
        if presenter is None:
            controller = S3NavigatorController(S3ListingService(settings), settings)
            presenter = NavigationPresenter(
                controller=controller,
                file_saver=TkFileSaver(root),
                platform=platform,
                dispatch=lambda func: self.root.after(0, func),
            )
        self.presenter = presenter
        platform_name = presenter.platform.name if presenter.platform else None
        self.root.title(format_title(presenter.package_info, platform_name))
        self._entries = []

        self._create_widgets()
        self.presenter.subscribe(lambda state: self.root.after(0, lambda: self._render(state)))
        self._render(self.presenter.state)
        self.presenter.start(on_error=self._show_error)

    def _create_widgets(self) -> None:
        main_frame = ttk.Frame(self.root, padding="10")
        main_frame.grid(row=0, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))

        self.root.columnconfigure(0, weight=1)
        self.root.rowconfigure(0, weight=1)
        main_frame.columnconfigure(0, weight=1)
        main_frame.rowconfigure(1, weight=1)

        location_frame = ttk.Frame(main_frame)
        location_frame.grid(row=0, column=0, sticky=(tk.W, tk.E))
        location_frame.columnconfigure(1, weight=1)

        self.back_button = ttk.Button(location_frame, text="Back", command=self._go_back)
        self.back_button.grid(row=0, column=0, pady=2)
        self.location_var = tk.StringVar()
        ttk.Label(location_frame, textvariable=self.location_var).grid(
            row=0, column=1, sticky=(tk.W, tk.E), pady=2, padx=(5, 5)
        )
        ttk.Button(location_frame, text="Refresh", command=self._refresh).grid(row=0, column=2, pady=2)

        list_frame = ttk.Frame(main_frame)
        list_frame.grid(row=1, column=0, sticky=(tk.W, tk.E, tk.N, tk.S), pady=(10, 0))
        list_frame.columnconfigure(0, weight=1)
        list_frame.rowconfigure(0, weight=1)

        self.entry_list = tk.Listbox(list_frame, activestyle="dotbox")
        self.entry_list.grid(row=0, column=0, sticky=(tk.W, tk.E, tk.N, tk.S))
        scroll_y = ttk.Scrollbar(list_frame, orient="vertical", command=self.entry_list.yview)
        scroll_y.grid(row=0, column=1, sticky=(tk.N, tk.S))
        self.entry_list.configure(yscrollcommand=scroll_y.set)
        self.entry_list.bind("<Double-1>", self._handle_activate)
        self.entry_list.bind("<Return>", self._handle_activate)

        self.progress = ttk.Progressbar(main_frame, mode="indeterminate")
        self.progress.grid(row=2, column=0, sticky=(tk.W, tk.E), pady=5)

        self.status_var = tk.StringVar(value="Ready")
        ttk.Label(main_frame, textvariable=self.status_var, anchor=tk.W).grid(
            row=3, column=0, sticky=(tk.W, tk.E)
        )

    def _render(self, state: NavigationState) -> None:
        self.location_var.set(format_location(state.bucket, state.prefix))
        self.back_button.configure(state="disabled" if state.at_root else "normal")
        self._entries = visible_entries(state.entries)
        self.entry_list.delete(0, tk.END)
        for entry in self._entries:
            self.entry_list.insert(tk.END, format_entry(entry))
        if state.loading:
            self.progress.start()
            self.status_var.set("Loading...")
        else:
            self.progress.stop()
            self.status_var.set(f"Error: {state.error}" if state.error else f"{len(self._entries)} item(s)")

    def _handle_activate(self, _event) -> None:
        selection = self.entry_list.curselection()
        if not selection or self.presenter.state.loading:
            return
        entry = self._entries[selection[0]]
        if entry.is_dir:
            self.presenter.push(entry.name, on_error=self._show_error)
        else:
            self.presenter.download(entry.name, on_error=self._show_error)

    def _go_back(self) -> None:
        self.presenter.pop(on_error=self._show_error)

    def _refresh(self) -> None:
        self.presenter.refresh(on_error=self._show_error)

    def _show_error(self, exc: Exception) -> None:
        messagebox.showerror("Error", str(exc), parent=self.root)
