"""Tkinter main window of the reconstruction console."""

from __future__ import annotations

import tkinter as tk
from tkinter import filedialog, messagebox, ttk
from typing import Any, Dict, List, Tuple

from recon_console.graphical_app.app.bindings import ControlKind
from recon_console.graphical_app.app.controller import TOOLBAR_CHOICES, TOOLBARS, AppController
from recon_console.graphical_app.app.dialogs import ConfigDraft, PhantomDraft
from recon_console.graphical_app.app.input import IMAGE_PANEL, MAIN_WINDOW, KeyEvent, KeyKind, Route
from recon_console.graphical_app.app.interfaces import OperationResult, RunOutcome
from recon_console.graphical_app.app.state import LogLevel
from recon_console.graphical_app.app.values import Choice, Field
from recon_console.graphical_app.ui.config_dialog import ConfigDialog
from recon_console.graphical_app.ui.phantom_dialog import PhantomDialog
from recon_console.graphical_app.ui.run_dialog import RunProgressWindow

KEY_TAG = "ReconKeys"
POLL_MS = 50

# Failures that interrupt the operator with a message box rather than the status bar.
MODAL_ERROR_CODES = {"invalid_configuration", "engine_failure", "config_load_failed", "config_save_failed", "invalid_selection"}

_CTRL_MASK = 0x0004
_SHIFT_MASK = 0x0001
_ALT_MASK = 0x0008


class MainWindow(tk.Tk):
    PAGE_TITLES: dict[str, str] = {"image": "Image", "logs": "Logs"}

    def __init__(self, controller: AppController) -> None:
        super().__init__()
        self.controller = controller
        self.title("Tomography Reconstruction")
        self.controller.dispatcher.bind_to_current_thread()

        self.label_vars: Dict[str, tk.StringVar] = {}
        self.check_vars: Dict[str, tk.BooleanVar] = {}
        self.scales: Dict[str, ttk.Scale] = {}
        self.gated_widgets: Dict[str, List[ttk.Widget]] = {}
        self.gated_menu_items: Dict[str, List[Tuple[tk.Menu, str]]] = {}
        self.widget_controls: Dict[str, str] = {}
        self.toolbars: Dict[str, ttk.Frame] = {}
        self._echoing = False
        self._was_running = False

        self.distance_var = tk.StringVar(value=self.controller.bindings.label("distance_entry"))
        self.choice_vars: Dict[str, tk.StringVar] = {}
        self.toolbar_choice_var = tk.StringVar(value=next(iter(TOOLBAR_CHOICES)))
        self.status_var = tk.StringVar(value=self.controller.state.status_text)
        self.session_var = tk.StringVar(value=self.controller.session.status_text)

        self._build_menus()
        self._build_toolbars()
        self._build_pages()
        parity_issues = self.controller.bindings.parity_check(self._represented_controls())
        if parity_issues:
            raise ValueError("; ".join(parity_issues))
        status = ttk.Frame(self)
        status.pack(fill=tk.X, side=tk.BOTTOM)
        ttk.Label(status, textvariable=self.status_var, anchor="w").pack(side=tk.LEFT, fill=tk.X, expand=True, padx=4, pady=2)
        ttk.Label(status, textvariable=self.session_var, anchor="e").pack(side=tk.RIGHT, padx=4)

        self.run_window = RunProgressWindow(self, self.controller, self._handle_result)
        self.controller.dialog_opener = self._open_dialog
        self.controller.quit_confirm = self._confirm_quit
        self.controller.bindings.add_echo_listener(self._on_echo)
        self.controller.add_enable_listener(self._apply_enabled)
        self.controller.session.subscribe(lambda _session: self._sync_session())

        self._install_key_tags(self)
        self.bind_class(KEY_TAG, "<KeyPress>", self._on_key_down)
        self.bind_class(KEY_TAG, "<KeyRelease>", self._on_key_up)
        self.bind_class(KEY_TAG, "<FocusIn>", self._on_focus_in, add="+")

        self._apply_enabled(self.controller.enabled())
        self.protocol("WM_DELETE_WINDOW", self._bind_safe("quit", self._quit))
        self.after(POLL_MS, self._schedule_poll)

    # -- helpers --------------------------------------------------------

    def _safe_callback(self, callback_name: str, fn) -> None:
        try:
            fn()
        except Exception as exc:
            message = f"{callback_name} error: {exc}"
            self.status_var.set(message)
            self.controller.state.notify(message)
            self.controller.state.add_log(LogLevel.ERROR, message, source="ui")
            self._refresh_logs()

    def _bind_safe(self, callback_name: str, fn):
        return lambda *_args: self._safe_callback(callback_name, fn)

    def _handle_result(self, result: OperationResult | str) -> None:
        if isinstance(result, str):
            self.status_var.set(result)
            return
        self.status_var.set(result.message)
        if not result.success and result.error is not None and result.error.code in MODAL_ERROR_CODES:
            messagebox.showerror("Reconstruction", result.message, parent=self)
        self._refresh_logs()

    def _gate(self, control: str, widget: ttk.Widget) -> ttk.Widget:
        self.gated_widgets.setdefault(control, []).append(widget)
        return widget

    def _command_item(self, menu: tk.Menu, label: str, control: str, fn, accelerator: str = "") -> None:
        menu.add_command(label=label, command=self._bind_safe(control, fn), accelerator=accelerator)
        self.gated_menu_items.setdefault(control, []).append((menu, label))

    # -- layout ---------------------------------------------------------

    def _build_menus(self) -> None:
        c = self.controller
        menubar = tk.Menu(self)

        file_menu = tk.Menu(menubar, tearoff=False)
        self._command_item(file_menu, "New", "new", lambda: self._handle_result(c.new_session()), "Ctrl+N")
        self._command_item(file_menu, "Open...", "open", self._open_file, "Ctrl+O")
        file_menu.add_command(label="Save Session...", command=self._bind_safe("save_session", self._save_session))
        file_menu.add_separator()
        self._command_item(file_menu, "Quit", "quit", self._quit, "Ctrl+Q")
        menubar.add_cascade(label="File", menu=file_menu)

        config_menu = tk.Menu(menubar, tearoff=False)
        self._command_item(config_menu, "Configure...", "configure", lambda: self._handle_result(c.configure()))
        config_menu.add_separator()
        for control, title in (("gain_choice", "Gain"), ("orientation_radio", "Orientation"), ("rotation_radio", "Rotation")):
            config_menu.add_cascade(label=title, menu=self._choice_menu(config_menu, control))
        config_menu.add_separator()
        self._command_item(config_menu, "Auto Focus", "auto_focus", lambda: self._handle_result(c.auto_focus()))
        self._command_item(config_menu, "Auto Light", "auto_light", lambda: self._handle_result(c.auto_light()))
        self._command_item(config_menu, "Auto Focus + Light", "auto_all", lambda: self._handle_result(c.auto_all()))
        menubar.add_cascade(label="Config", menu=config_menu)

        calibration_menu = tk.Menu(menubar, tearoff=False)
        self._command_item(calibration_menu, "Run Test", "run_test", lambda: self._handle_result(c.run_test()))
        self._command_item(calibration_menu, "Cancel Run", "cancel_run", lambda: self._handle_result(c.cancel_run()))
        calibration_menu.add_separator()
        self._command_item(calibration_menu, "Test Geometry", "test_geo", lambda: self._handle_result(c.test_geometry()))
        self._command_item(calibration_menu, "Auto Geometry", "auto_geo", lambda: self._handle_result(c.auto_geometry()))
        calibration_menu.add_separator()
        self._command_item(calibration_menu, "Resolution Phantoms...", "res_list", lambda: self._handle_result(c.phantom_editor("resolution")))
        self._command_item(calibration_menu, "Contrast Phantoms...", "cont_list", lambda: self._handle_result(c.phantom_editor("contrast")))
        menubar.add_cascade(label="Calibration", menu=calibration_menu)

        view_menu = tk.Menu(menubar, tearoff=False)
        for control, label in (("vert_flip", "Flip Vertical"), ("hor_flip", "Flip Horizontal"), ("log_view", "Log View"), ("projection_view", "Projection View")):
            var = self._check_var(control)
            view_menu.add_checkbutton(label=label, variable=var, command=self._bind_safe(control, lambda ctl=control, v=var: c.toggled(ctl, v.get())))
        menubar.add_cascade(label="View", menu=view_menu)

        help_menu = tk.Menu(menubar, tearoff=False)
        help_menu.add_command(label="About", command=self._bind_safe("about", lambda: self._handle_result(c.about())))
        menubar.add_cascade(label="Help", menu=help_menu)
        self.config(menu=menubar)

    def _choice_menu(self, parent: tk.Menu, control: str) -> tk.Menu:
        field_name = self.controller.bindings.binding(control).field
        domain = self.controller.model.domain(field_name)
        var = tk.StringVar(value=str(self.controller.model.get(field_name)))
        self.choice_vars[control] = var
        menu = tk.Menu(parent, tearoff=False)
        for option in domain.options if isinstance(domain, Choice) else ():
            menu.add_radiobutton(label=option, variable=var, value=option, command=self._bind_safe(control, lambda: self._handle_result(self.controller.chosen(control, var.get()))))
        return menu

    def _check_var(self, control: str) -> tk.BooleanVar:
        if control not in self.check_vars:
            binding = self.controller.bindings.binding(control)
            self.check_vars[control] = tk.BooleanVar(value=bool(self.controller.model.get(binding.field)))
        return self.check_vars[control]

    def _slider(self, parent: ttk.Frame, control: str, title: str) -> None:
        bindings = self.controller.bindings
        lo, hi = bindings.slider_range(control)
        ttk.Label(parent, text=title).pack(side=tk.LEFT, padx=(6, 1))
        scale = ttk.Scale(parent, from_=lo, to=hi, orient=tk.HORIZONTAL, length=120)
        scale.set(bindings.position(control))
        scale.configure(command=lambda pos, ctl=control: self._on_slide(ctl, pos))
        scale.bind("<ButtonRelease-1>", lambda _e, ctl=control, s=scale: self._safe_callback(ctl, lambda: self.controller.slider_released(ctl, s.get())))
        scale.pack(side=tk.LEFT)
        self.scales[control] = scale
        self.widget_controls[str(scale)] = control
        self._gate(control, scale)
        var = tk.StringVar(value=bindings.label(control))
        self.label_vars[control] = var
        ttk.Label(parent, textvariable=var, width=6).pack(side=tk.LEFT)

    def _checkbox(self, parent: ttk.Frame, control: str, title: str) -> None:
        var = self._check_var(control)
        box = ttk.Checkbutton(parent, text=title, variable=var, command=self._bind_safe(control, lambda: self.controller.toggled(control, var.get())))
        box.pack(side=tk.LEFT, padx=2)
        self._gate(control, box)

    def _reset_button(self, parent: ttk.Frame, control: str) -> None:
        button = ttk.Button(parent, text="Reset", width=6, command=self._bind_safe(control, lambda: self._handle_result(self.controller.reset(control))))
        button.pack(side=tk.LEFT, padx=2)
        self._gate(control, button)

    def _build_toolbars(self) -> None:
        bar = ttk.Frame(self)
        bar.pack(fill=tk.X, padx=4, pady=(4, 0))
        ttk.Label(bar, text="Toolbars:").pack(side=tk.LEFT)
        chooser = ttk.Combobox(bar, textvariable=self.toolbar_choice_var, values=list(TOOLBAR_CHOICES), state="readonly", width=18)
        chooser.pack(side=tk.LEFT, padx=4)
        chooser.bind("<<ComboboxSelected>>", self._bind_safe("toolbars", self._select_toolbars))
        self.toolbar_host = ttk.Frame(self)
        self.toolbar_host.pack(fill=tk.X, padx=4)

        nav = ttk.Frame(self.toolbar_host)
        ttk.Label(nav, text="Distance (mm)").pack(side=tk.LEFT)
        entry = ttk.Entry(nav, textvariable=self.distance_var, width=9)
        entry.pack(side=tk.LEFT, padx=2)
        entry.bind("<Return>", self._bind_safe("distance", self._commit_distance))
        entry.bind("<FocusOut>", self._bind_safe("distance", self._commit_distance))
        self.widget_controls[str(entry)] = "distance_entry"
        self._slider(nav, "step_slider", "Step")
        self._slider(nav, "window_slider", "Window")
        self._slider(nav, "level_slider", "Level")
        self._slider(nav, "zoom_slider", "Zoom")
        self.toolbars["navigation"] = nav

        edge = ttk.Frame(self.toolbar_host)
        self._checkbox(edge, "x_enhance", "X")
        self._checkbox(edge, "y_enhance", "Y")
        self._checkbox(edge, "abs_enhance", "Abs")
        self._slider(edge, "enhance_slider", "Ratio")
        self._reset_button(edge, "reset_enhance")
        self.toolbars["edge"] = edge

        scan = ttk.Frame(self.toolbar_host)
        self._checkbox(scan, "scan_vert_enable", "Vertical")
        self._slider(scan, "scan_vert_slider", "")
        self._reset_button(scan, "reset_scan_vert")
        self._checkbox(scan, "scan_hor_enable", "Horizontal")
        self._slider(scan, "scan_hor_slider", "")
        self._reset_button(scan, "reset_scan_hor")
        self.toolbars["scan"] = scan

        noise = ttk.Frame(self.toolbar_host)
        self._checkbox(noise, "outlier_enable", "Outliers")
        self._slider(noise, "noise_max_slider", "Max")
        self._reset_button(noise, "reset_noise_max")
        self.toolbars["noise"] = noise

        self._show_toolbars(TOOLBARS)

    def _build_pages(self) -> None:
        self.page_notebook = ttk.Notebook(self)
        self.page_notebook.pack(fill=tk.BOTH, expand=True, padx=4, pady=4)

        image_page = ttk.Frame(self.page_notebook)
        self.page_notebook.add(image_page, text=self.PAGE_TITLES["image"])
        self.canvas = tk.Canvas(image_page, width=512, height=384, background="#101010", highlightthickness=1, takefocus=1)
        self.canvas.pack(fill=tk.BOTH, expand=True)
        self.canvas.bind("<Button-1>", lambda _e: self.canvas.focus_set())
        self.widget_controls[str(self.canvas)] = IMAGE_PANEL
        self.preview_text = self.canvas.create_text(8, 8, anchor="nw", fill="#d0d0d0", font=("TkFixedFont", 10))

        logs_page = ttk.Frame(self.page_notebook)
        self.page_notebook.add(logs_page, text=self.PAGE_TITLES["logs"])
        columns = ("timestamp", "level", "source", "message")
        self.log_tree = ttk.Treeview(logs_page, columns=columns, show="headings", height=10)
        for col, width in (("timestamp", 150), ("level", 80), ("source", 90), ("message", 460)):
            self.log_tree.heading(col, text=col.title())
            self.log_tree.column(col, width=width, anchor="w")
        self.log_tree.pack(fill=tk.BOTH, expand=True)

        self.page_notebook.bind("<<NotebookTabChanged>>", self._on_page_changed)
        self.controller.model.subscribe_all(lambda _name, _value: self._draw_preview())
        self._draw_preview()

    def _represented_controls(self) -> set[str]:
        return set(self.scales) | set(self.check_vars) | set(self.choice_vars) | {"distance_entry"}

    def _install_key_tags(self, widget: tk.Misc) -> None:
        widget.bindtags((KEY_TAG,) + tuple(tag for tag in widget.bindtags() if tag != KEY_TAG))
        for child in widget.winfo_children():
            self._install_key_tags(child)

    # -- model sync -----------------------------------------------------

    def _on_slide(self, control: str, position: Any) -> None:
        if self._echoing:
            return
        self._safe_callback(control, lambda: self.controller.slider_moved(control, position))

    def _commit_distance(self) -> None:
        self.controller.text_edited("distance_entry", self.distance_var.get())
        self.controller.text_committed("distance_entry")

    def _on_echo(self, control: str, text: str, position: Any) -> None:
        kind = self.controller.bindings.binding(control).kind
        if control in self.label_vars:
            self.label_vars[control].set(text)
        if kind is ControlKind.SLIDER and control in self.scales:
            scale = self.scales[control]
            if int(round(float(scale.get()))) != int(position):
                self._echoing = True
                try:
                    scale.set(position)
                finally:
                    self._echoing = False
        elif kind is ControlKind.CHECKBOX and control in self.check_vars:
            self.check_vars[control].set(bool(position))
        elif kind is ControlKind.ENTRY:
            self.distance_var.set(text)
        elif kind is ControlKind.CHOICE and control in self.choice_vars:
            self.choice_vars[control].set(str(position))

    def _apply_enabled(self, vector: Dict[str, bool]) -> None:
        for control, widgets in self.gated_widgets.items():
            state = ["!disabled"] if vector.get(control, True) else ["disabled"]
            for widget in widgets:
                widget.state(state)
        for control, items in self.gated_menu_items.items():
            state = tk.NORMAL if vector.get(control, True) else tk.DISABLED
            for menu, label in items:
                menu.entryconfigure(label, state=state)

    def _draw_preview(self) -> None:
        snapshot = self.controller.model.snapshot()
        lines = [
            f"window={snapshot[Field.WINDOW]} level={snapshot[Field.LEVEL]} zoom={snapshot[Field.ZOOM]:.1f}x step={snapshot[Field.STEP]}",
            f"flip v={snapshot[Field.VERT_FLIP]} h={snapshot[Field.HOR_FLIP]} log={snapshot[Field.LOG_VIEW]} projection={snapshot[Field.PROJECTION_VIEW]}",
            f"gain={snapshot[Field.GAIN_SELECTION]} distance={snapshot[Field.DISTANCE]:.2f} mm",
        ]
        self.canvas.itemconfigure(self.preview_text, text="\n".join(lines))

    def _sync_session(self) -> None:
        session = self.controller.session
        self.session_var.set(session.status_text)
        self.status_var.set(self.controller.state.status_text)
        self.run_window.sync(session.progress)
        if self._was_running and not session.running and session.last_result is not None and session.last_result.outcome is RunOutcome.FAILED:
            messagebox.showerror("Reconstruction", session.last_result.status_text, parent=self)
        self._was_running = session.running

    def _refresh_logs(self) -> None:
        for item in self.log_tree.get_children():
            self.log_tree.delete(item)
        for entry in self.controller.state.logs[-300:]:
            self.log_tree.insert("", tk.END, values=(entry.timestamp, entry.level.value.upper(), entry.source, entry.message))

    def _schedule_poll(self) -> None:
        if self.controller.quit_requested:
            self.destroy()
            return
        processed = 0
        try:
            processed = self.controller.poll()
        except Exception as exc:
            self.controller.state.add_log(LogLevel.ERROR, f"poll error: {exc}", source="ui")
        if processed:
            self.status_var.set(self.controller.state.status_text)
            self._refresh_logs()
        self.after(POLL_MS, self._schedule_poll)

    # -- events ---------------------------------------------------------

    def _key_event(self, event: tk.Event, kind: KeyKind) -> KeyEvent:
        state = int(event.state) if isinstance(event.state, int) else 0
        return KeyEvent(key=event.keysym, kind=kind, ctrl=bool(state & _CTRL_MASK), shift=bool(state & _SHIFT_MASK), alt=bool(state & _ALT_MASK))

    def _route_key(self, event: tk.Event, kind: KeyKind) -> str | None:
        route = self.controller.key(self._key_event(event, kind))
        return None if route is Route.FORWARDED else "break"

    def _on_key_down(self, event: tk.Event) -> str | None:
        return self._route_key(event, KeyKind.DOWN)

    def _on_key_up(self, event: tk.Event) -> str | None:
        return self._route_key(event, KeyKind.UP)

    def _on_focus_in(self, event: tk.Event) -> None:
        self.controller.input.request_focus(self.widget_controls.get(str(event.widget), MAIN_WINDOW))

    def _on_page_changed(self, _event: object | None = None) -> None:
        idx = self.page_notebook.index("current")
        self.controller.select_page(self.page_notebook.tab(idx, "text"))
        if self.controller.input.focus == IMAGE_PANEL:
            self.canvas.focus_set()

    def _select_toolbars(self) -> None:
        self._show_toolbars(self.controller.select_toolbars(self.toolbar_choice_var.get()))

    def _show_toolbars(self, names: tuple[str, ...]) -> None:
        for frame in self.toolbars.values():
            frame.pack_forget()
        for name in names:
            self.toolbars[name].pack(fill=tk.X, pady=1)

    def _open_dialog(self, kind: str, model: Any) -> None:
        if kind == "config" and isinstance(model, ConfigDraft):
            ConfigDialog(self, self.controller, model, self._handle_result)
        elif kind == "phantoms" and isinstance(model, PhantomDraft):
            PhantomDialog(self, self.controller, model, self._handle_result)
        elif kind == "about":
            messagebox.showinfo("About", str(model), parent=self)
        elif kind == "open":
            self._open_file()

    def _open_file(self) -> None:
        selected = filedialog.askopenfilename(parent=self, filetypes=[("YAML", "*.yaml *.yml"), ("JSON", "*.json"), ("All files", "*.*")])
        if selected:
            self._handle_result(self.controller.open_config(selected))

    def _save_session(self) -> None:
        selected = filedialog.asksaveasfilename(parent=self, filetypes=[("JSON", "*.json")], defaultextension=".json")
        if selected:
            self._handle_result(self.controller.save_session(selected))

    def _confirm_quit(self) -> bool:
        return messagebox.askyesno("Quit", "A reconstruction is running. Cancel it and quit?", parent=self)

    def _quit(self) -> None:
        self._handle_result(self.controller.quit(self._confirm_quit))
        if self.controller.quit_requested:
            self.destroy()


def launch(controller: AppController) -> int:
    app = MainWindow(controller)
    app.mainloop()
    return controller.exit_code
