"""Stay-on-top progress window shown while a reconstruction runs."""

from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable

from recon_console.graphical_app.app.controller import AppController
from recon_console.graphical_app.app.dialogs import RunProgressModel


class RunProgressWindow(tk.Toplevel):
    def __init__(self, parent: tk.Misc, controller: AppController, on_status: Callable[[object], None]) -> None:
        super().__init__(parent)
        self.controller = controller
        self.on_status = on_status
        self.title("Reconstruction")
        self.transient(parent)
        self.attributes("-topmost", True)
        self.resizable(False, False)
        # The window has no close box; it disappears when the session finishes.
        self.protocol("WM_DELETE_WINDOW", lambda: None)

        self.message_var = tk.StringVar(value="")
        self.percent_var = tk.StringVar(value="0%")
        ttk.Label(self, textvariable=self.message_var, width=40).pack(anchor="w", padx=8, pady=(8, 2))
        self.gauge = ttk.Progressbar(self, maximum=100, length=320, mode="determinate")
        self.gauge.pack(fill=tk.X, padx=8)
        ttk.Label(self, textvariable=self.percent_var).pack(anchor="e", padx=8)
        self.cancel_btn = ttk.Button(self, text="Cancel", command=self._cancel)
        self.cancel_btn.pack(pady=(2, 8))
        self.withdraw()

    def _cancel(self) -> None:
        self.on_status(self.controller.cancel_run())

    def sync(self, progress: RunProgressModel) -> None:
        if not progress.visible:
            if self.winfo_viewable():
                self.grab_release()
                self.withdraw()
            return
        self.message_var.set(progress.message)
        self.gauge["value"] = progress.gauge
        self.percent_var.set(f"{progress.gauge}%")
        self.cancel_btn.configure(state=tk.NORMAL if self.controller.enabled().get("cancel_run") and not self.controller.session.cancel_requested else tk.DISABLED)
        if not self.winfo_viewable():
            self.deiconify()
            self.lift()
