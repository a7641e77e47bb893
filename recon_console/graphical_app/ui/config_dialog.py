"""Modal configuration dialog: length parameters, orientation, rotation and the angle table."""

from __future__ import annotations

import tkinter as tk
from tkinter import filedialog, ttk
from typing import Callable

from recon_console.config.schema import ANGLE_TABLE_COLUMNS
from recon_console.graphical_app.app.controller import AppController
from recon_console.graphical_app.app.dialogs import ConfigDraft
from recon_console.graphical_app.app.values import LENGTH_FIELDS, Choice, Field

FILE_TYPES = [("YAML", "*.yaml *.yml"), ("JSON", "*.json"), ("All files", "*.*")]


class ConfigDialog(tk.Toplevel):
    def __init__(self, parent: tk.Misc, controller: AppController, draft: ConfigDraft, on_status: Callable[[object], None]) -> None:
        super().__init__(parent)
        self.controller = controller
        self.draft = draft
        self.on_status = on_status
        self.title("Reconstruction configuration")
        self.transient(parent)
        self.protocol("WM_DELETE_WINDOW", self._cancel)

        self.length_vars = {name: tk.StringVar() for name in LENGTH_FIELDS}
        self.orientation_var = tk.StringVar()
        self.rotation_var = tk.StringVar()
        self.cell_vars = [tk.StringVar() for _ in ANGLE_TABLE_COLUMNS]
        self.warning_var = tk.StringVar(value="")

        form = ttk.Frame(self)
        form.pack(fill=tk.X, padx=6, pady=6)
        for row, name in enumerate(LENGTH_FIELDS):
            ttk.Label(form, text=f"{name.value.replace('_', ' ').capitalize()} (mm)").grid(row=row, column=0, sticky="w")
            ttk.Entry(form, textvariable=self.length_vars[name], width=12).grid(row=row, column=1, sticky="w")
        row = len(LENGTH_FIELDS)
        for offset, (label, var, name) in enumerate((("Orientation", self.orientation_var, Field.ORIENTATION), ("Rotation", self.rotation_var, Field.ROTATION_ENABLED))):
            domain = controller.model.domain(name)
            options = list(domain.options) if isinstance(domain, Choice) else []
            ttk.Label(form, text=label).grid(row=row + offset, column=0, sticky="w")
            ttk.Combobox(form, textvariable=var, values=options, state="readonly", width=12).grid(row=row + offset, column=1, sticky="w")

        table_frame = ttk.LabelFrame(self, text="Projection angles")
        table_frame.pack(fill=tk.BOTH, expand=True, padx=6)
        self.table = ttk.Treeview(table_frame, columns=ANGLE_TABLE_COLUMNS, show="headings", height=8, selectmode="extended")
        for col in ANGLE_TABLE_COLUMNS:
            self.table.heading(col, text=col.replace("_", " "))
            self.table.column(col, width=110, anchor="e")
        self.table.pack(fill=tk.BOTH, expand=True)
        self.table.bind("<<TreeviewSelect>>", self._on_select)

        editor = ttk.Frame(table_frame)
        editor.pack(fill=tk.X)
        for col, var in enumerate(self.cell_vars):
            ttk.Entry(editor, textvariable=var, width=10).grid(row=0, column=col, padx=1)
        ttk.Button(editor, text="Set Row", command=self._set_row).grid(row=0, column=len(self.cell_vars), padx=2)

        buttons = ttk.Frame(table_frame)
        buttons.pack(fill=tk.X, pady=2)
        ttk.Button(buttons, text="Add Row", command=self._add_row).pack(side=tk.LEFT)
        ttk.Button(buttons, text="Remove Rows", command=self._remove_rows).pack(side=tk.LEFT, padx=2)
        ttk.Button(buttons, text="Load...", command=self._load).pack(side=tk.RIGHT)
        ttk.Button(buttons, text="Save...", command=self._save).pack(side=tk.RIGHT, padx=2)

        ttk.Label(self, textvariable=self.warning_var, foreground="#b22222", wraplength=560, justify=tk.LEFT).pack(anchor="w", padx=6)
        footer = ttk.Frame(self)
        footer.pack(fill=tk.X, padx=6, pady=6)
        ttk.Button(footer, text="Cancel", command=self._cancel).pack(side=tk.RIGHT)
        ttk.Button(footer, text="OK", command=self._ok).pack(side=tk.RIGHT, padx=4)

        self._render()
        self.grab_set()

    def _render(self) -> None:
        for name, var in self.length_vars.items():
            var.set(str(self.draft.values.get(name, "")))
        self.orientation_var.set(str(self.draft.values.get(Field.ORIENTATION, "")))
        self.rotation_var.set(str(self.draft.values.get(Field.ROTATION_ENABLED, "")))
        self.table.delete(*self.table.get_children())
        for idx, row in enumerate(self.draft.rows):
            self.table.insert("", tk.END, iid=str(idx), values=[str(cell) for cell in row])

    def _collect(self) -> None:
        self.draft.edit(**{name.value: var.get() for name, var in self.length_vars.items()})
        self.draft.edit(orientation=self.orientation_var.get(), rotation_enabled=self.rotation_var.get())

    def _selected_rows(self) -> list[int]:
        return [int(iid) for iid in self.table.selection()]

    def _on_select(self, _event: object | None = None) -> None:
        rows = self._selected_rows()
        if len(rows) != 1:
            return
        for var, cell in zip(self.cell_vars, self.draft.rows[rows[0]]):
            var.set(str(cell))

    def _set_row(self) -> None:
        rows = self._selected_rows()
        if len(rows) != 1:
            self.warning_var.set("Select one row to edit.")
            return
        for col, var in enumerate(self.cell_vars):
            self.draft.set_cell(rows[0], col, var.get())
        self.warning_var.set("\n".join(self.draft.row_errors()))
        self._collect()
        self._render()

    def _add_row(self) -> None:
        self._collect()
        self.draft.add_row()
        self._render()

    def _remove_rows(self) -> None:
        self._collect()
        self.draft.remove_rows(self._selected_rows())
        self._render()

    def _load(self) -> None:
        selected = filedialog.askopenfilename(parent=self, filetypes=FILE_TYPES)
        if not selected:
            return
        result = self.controller.load_config_into(self.draft, selected)
        self.warning_var.set("" if result.success else result.message)
        self.on_status(result)
        self._render()

    def _save(self) -> None:
        selected = filedialog.asksaveasfilename(parent=self, filetypes=FILE_TYPES, defaultextension=".yaml")
        if not selected:
            return
        self._collect()
        result = self.controller.save_config_from(self.draft, selected)
        self.warning_var.set("" if result.success else result.message)
        self.on_status(result)

    def _ok(self) -> None:
        self._collect()
        reasons = self.draft.validate()
        if reasons:
            self.warning_var.set("\n".join(reasons))
            return
        result = self.controller.commit_config(self.draft)
        self.on_status(result)
        if result.success:
            self.grab_release()
            self.destroy()
        else:
            self.warning_var.set(result.message)

    def _cancel(self) -> None:
        self.draft.cancel()
        self.grab_release()
        self.destroy()
