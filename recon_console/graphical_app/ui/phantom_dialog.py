"""Modal editor for the resolution and contrast phantom lists."""

from __future__ import annotations

import tkinter as tk
from tkinter import ttk
from typing import Callable

from recon_console.graphical_app.app.controller import AppController
from recon_console.graphical_app.app.dialogs import PhantomDraft

COLUMNS = ("label", "x", "y", "width", "height", "value")


class PhantomDialog(tk.Toplevel):
    def __init__(self, parent: tk.Misc, controller: AppController, draft: PhantomDraft, on_status: Callable[[object], None]) -> None:
        super().__init__(parent)
        self.controller = controller
        self.draft = draft
        self.on_status = on_status
        self.title(f"{draft.kind.title()} phantoms")
        self.transient(parent)
        self.protocol("WM_DELETE_WINDOW", self._cancel)

        self.tree = ttk.Treeview(self, columns=COLUMNS, show="headings", height=10)
        for col in COLUMNS:
            self.tree.heading(col, text=col.title())
            self.tree.column(col, width=90, anchor="w" if col == "label" else "e")
        self.tree.pack(fill=tk.BOTH, expand=True, padx=6, pady=6)
        self.tree.bind("<<TreeviewSelect>>", self._on_select)

        self.vars = {col: tk.StringVar() for col in COLUMNS}
        editor = ttk.Frame(self)
        editor.pack(fill=tk.X, padx=6)
        for idx, col in enumerate(COLUMNS):
            ttk.Label(editor, text=col.title()).grid(row=0, column=idx, sticky="w")
            ttk.Entry(editor, textvariable=self.vars[col], width=10).grid(row=1, column=idx, padx=1)
        ttk.Button(editor, text="Update", command=self._update).grid(row=1, column=len(COLUMNS), padx=2)

        footer = ttk.Frame(self)
        footer.pack(fill=tk.X, padx=6, pady=6)
        ttk.Button(footer, text="Add", command=self._add).pack(side=tk.LEFT)
        ttk.Button(footer, text="Remove", command=self._remove).pack(side=tk.LEFT, padx=2)
        ttk.Button(footer, text="Cancel", command=self._cancel).pack(side=tk.RIGHT)
        ttk.Button(footer, text="OK", command=self._ok).pack(side=tk.RIGHT, padx=4)

        self._render()
        self.grab_set()

    def _render(self) -> None:
        self.tree.delete(*self.tree.get_children())
        for idx, item in enumerate(self.draft.rows):
            self.tree.insert("", tk.END, iid=str(idx), values=[getattr(item, col) for col in COLUMNS])

    def _selected(self) -> list[int]:
        return [int(iid) for iid in self.tree.selection()]

    def _on_select(self, _event: object | None = None) -> None:
        rows = self._selected()
        if len(rows) != 1:
            return
        item = self.draft.rows[rows[0]]
        for col, var in self.vars.items():
            var.set(str(getattr(item, col)))

    def _update(self) -> None:
        rows = self._selected()
        if len(rows) != 1:
            return
        self.draft.update(rows[0], **{col: var.get() for col, var in self.vars.items()})
        self._render()
        self.tree.selection_set(str(rows[0]))

    def _add(self) -> None:
        row = self.draft.add()
        self._render()
        self.tree.selection_set(str(row))

    def _remove(self) -> None:
        self.draft.remove(self._selected())
        self._render()

    def _ok(self) -> None:
        self.on_status(self.controller.commit_phantoms(self.draft))
        self.grab_release()
        self.destroy()

    def _cancel(self) -> None:
        self.draft.cancel()
        self.grab_release()
        self.destroy()
