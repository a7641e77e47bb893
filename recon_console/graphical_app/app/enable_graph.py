"""Enable/disable state of controls derived from model values."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from recon_console.graphical_app.app.values import Field

# Commands that only make sense while no reconstruction is running.
IDLE_ONLY_CONTROLS = ("new", "open", "configure", "res_list", "cont_list", "run_test", "test_geo", "auto_geo")

ALWAYS_ENABLED_CONTROLS = ("quit", "about", "reset_enhance", "reset_scan_vert", "reset_scan_hor", "reset_noise_max")


def enabled_controls(values: Mapping[Field, Any], session_running: bool, capabilities: Mapping[str, bool] | None = None) -> Dict[str, bool]:
    """Return the enable vector for every gated control.

    ``values`` is any field mapping (a live model read or a snapshot); the
    result depends on nothing else, so equal inputs give equal vectors.
    """
    caps = capabilities or {}
    idle = not session_running
    enhancing = bool(values[Field.X_ENHANCE]) or bool(values[Field.Y_ENHANCE])

    enabled: Dict[str, bool] = {
        "scan_vert_slider": bool(values[Field.SCAN_VERT_ENABLE]),
        "scan_hor_slider": bool(values[Field.SCAN_HOR_ENABLE]),
        "noise_max_slider": bool(values[Field.OUTLIER_ENABLE]),
        "enhance_slider": enhancing,
        "abs_enhance": enhancing,
        "auto_focus": idle and bool(caps.get("auto_focus", True)),
        "auto_light": idle and bool(caps.get("auto_light", True)),
        "cancel_run": session_running,
    }
    enabled["auto_all"] = enabled["auto_focus"] and enabled["auto_light"]
    for control in IDLE_ONLY_CONTROLS:
        enabled[control] = idle
    for control in ALWAYS_ENABLED_CONTROLS:
        enabled[control] = True
    return enabled
