"""Working copies behind the modal dialogs: configuration, phantom lists, run progress."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Iterable, List

import numpy as np

from recon_console import __version__
from recon_console.config.schema import ANGLE_TABLE_COLUMNS, ReconConfig
from recon_console.graphical_app.app.errors import InvalidConfiguration
from recon_console.graphical_app.app.interfaces import ConfigStoreInterface
from recon_console.graphical_app.app.values import (
    CONFIG_FIELDS,
    LENGTH_FIELDS,
    PHANTOM_FIELDS,
    Choice,
    Field,
    Phantom,
    ProjectionAngle,
    ValueModel,
)


@dataclass
class RunProgressModel:
    """Backing state of the run-progress dialog."""

    visible: bool = False
    value: float = 0.0
    closable: bool = False
    stay_on_top: bool = True
    message: str = ""

    @property
    def gauge(self) -> int:
        return int(round(self.value * 100))


def about_text() -> str:
    return f"Tomography Reconstruction console {__version__}"


def _parse_cells(rows: List[List[Any]]) -> tuple[np.ndarray, List[str]]:
    errors: List[str] = []
    reported: set[tuple[int, int]] = set()
    table = np.full((len(rows), len(ANGLE_TABLE_COLUMNS)), np.nan, dtype=float)
    for r, row in enumerate(rows):
        if len(row) != len(ANGLE_TABLE_COLUMNS):
            errors.append(f"row {r + 1}: expected {len(ANGLE_TABLE_COLUMNS)} cells, got {len(row)}")
            reported.update((r, c) for c in range(len(ANGLE_TABLE_COLUMNS)))
            continue
        for c, cell in enumerate(row):
            try:
                table[r, c] = float(str(cell).strip())
            except ValueError:
                errors.append(f"row {r + 1}, {ANGLE_TABLE_COLUMNS[c]}: '{cell}' is not numeric")
                reported.add((r, c))
    for r, c in zip(*np.nonzero(~np.isfinite(table))):
        if (int(r), int(c)) not in reported:
            errors.append(f"row {r + 1}, {ANGLE_TABLE_COLUMNS[c]}: value must be finite")
    return table, errors


@dataclass
class ConfigDraft:
    """Transactional working copy of the configuration fields.

    Edits stay private until ``ok``; ``cancel`` drops them. Length and grid
    cells are kept as entered (possibly text) so the dialog can show what the
    operator typed and report every invalid cell at once.
    """

    model: ValueModel
    store: ConfigStoreInterface
    values: Dict[Field, Any] = field(default_factory=dict)
    rows: List[List[Any]] = field(default_factory=list)
    closed: bool = False
    committed: bool = False

    @classmethod
    def from_model(cls, model: ValueModel, store: ConfigStoreInterface) -> "ConfigDraft":
        draft = cls(model=model, store=store)
        draft.values = {name: model.get(name) for name in CONFIG_FIELDS if name is not Field.ANGLE_TABLE}
        draft.rows = [row.as_row() for row in model.get(Field.ANGLE_TABLE)]
        return draft

    def edit(self, **updates: Any) -> None:
        for key, value in updates.items():
            name = Field(key)
            if name not in CONFIG_FIELDS or name is Field.ANGLE_TABLE:
                raise KeyError(f"{key} is not a configuration field")
            self.values[name] = value

    def set_cell(self, row: int, column: int, text: Any) -> None:
        self.rows[row][column] = text

    def add_row(self) -> int:
        self.rows.append([0.0] * len(ANGLE_TABLE_COLUMNS))
        return len(self.rows) - 1

    def remove_rows(self, indices: Iterable[int]) -> None:
        drop = set(indices)
        self.rows = [row for idx, row in enumerate(self.rows) if idx not in drop]

    def row_errors(self) -> List[str]:
        return _parse_cells(self.rows)[1]

    def validate(self) -> List[str]:
        reasons: List[str] = []
        for name in LENGTH_FIELDS:
            raw = self.values.get(name)
            try:
                number = float(str(raw).strip())
            except ValueError:
                reasons.append(f"{name.value}: '{raw}' is not numeric")
                continue
            if not math.isfinite(number) or number <= 0:
                reasons.append(f"{name.value} must be > 0")
        for name in (Field.ORIENTATION, Field.ROTATION_ENABLED):
            domain = self.model.domain(name)
            if isinstance(domain, Choice) and not domain.contains(self.values.get(name)):
                reasons.append(f"{name.value}: {self.values.get(name)!r} is not one of {list(domain.options)}")
        reasons.extend(self.row_errors())
        return reasons

    def build_updates(self) -> Dict[Field, Any]:
        reasons = self.validate()
        if reasons:
            raise InvalidConfiguration(reasons)
        table, _ = _parse_cells(self.rows)
        updates: Dict[Field, Any] = {name: float(str(self.values[name]).strip()) for name in LENGTH_FIELDS}
        updates[Field.ORIENTATION] = self.values[Field.ORIENTATION]
        updates[Field.ROTATION_ENABLED] = self.values[Field.ROTATION_ENABLED]
        updates[Field.ANGLE_TABLE] = tuple(ProjectionAngle.from_row(row) for row in table.tolist())
        return updates

    def to_recon_config(self) -> ReconConfig:
        updates = self.build_updates()
        return ReconConfig(
            slice_thickness=updates[Field.SLICE_THICKNESS],
            pixel_width=updates[Field.PIXEL_WIDTH],
            pixel_height=updates[Field.PIXEL_HEIGHT],
            pitch_width=updates[Field.PITCH_WIDTH],
            pitch_height=updates[Field.PITCH_HEIGHT],
            orientation=updates[Field.ORIENTATION],
            rotation_enabled=updates[Field.ROTATION_ENABLED],
            angle_table=[row.as_row() for row in updates[Field.ANGLE_TABLE]],
        )

    def apply_recon_config(self, config: ReconConfig) -> None:
        for name in LENGTH_FIELDS:
            self.values[name] = float(getattr(config, name.value))
        self.values[Field.ORIENTATION] = config.orientation
        self.values[Field.ROTATION_ENABLED] = config.rotation_enabled
        self.rows = [list(row) for row in config.angle_table]

    def load(self, path: str | Path) -> None:
        self.apply_recon_config(self.store.load(Path(path)))

    def save(self, path: str | Path) -> None:
        self.store.save(Path(path), self.to_recon_config())

    def ok(self) -> List[Field]:
        changed = self.model.set_many(self.build_updates())
        self.closed = True
        self.committed = True
        return changed

    def cancel(self) -> None:
        self.closed = True


_PHANTOM_NUMERIC = tuple(f.name for f in fields(Phantom) if f.name != "label")


@dataclass
class PhantomDraft:
    """Working copy of one phantom list; the whole list is committed on ``ok``."""

    model: ValueModel
    kind: str = "resolution"
    rows: List[Phantom] = field(default_factory=list)
    closed: bool = False
    committed: bool = False

    @classmethod
    def from_model(cls, model: ValueModel, kind: str = "resolution") -> "PhantomDraft":
        if kind not in PHANTOM_FIELDS:
            raise KeyError(f"Unknown phantom list '{kind}'")
        return cls(model=model, kind=kind, rows=list(model.get(PHANTOM_FIELDS[kind])))

    @property
    def target(self) -> Field:
        return PHANTOM_FIELDS[self.kind]

    def add(self) -> int:
        self.rows.append(Phantom())
        return len(self.rows) - 1

    def update(self, row: int, **updates: Any) -> bool:
        """Edit one row in place; non-numeric numeric cells keep their previous value."""
        current = self.rows[row]
        accepted: Dict[str, Any] = {}
        for key, value in updates.items():
            if key == "label":
                accepted[key] = str(value)
            elif key in _PHANTOM_NUMERIC:
                try:
                    number = float(value)
                except (TypeError, ValueError):
                    continue
                if math.isfinite(number):
                    accepted[key] = number
            else:
                raise KeyError(f"{key} is not a phantom column")
        updated = replace(current, **accepted)
        self.rows[row] = updated
        return updated != current

    def remove(self, rows: Iterable[int]) -> None:
        drop = set(rows)
        self.rows = [item for idx, item in enumerate(self.rows) if idx not in drop]

    def ok(self) -> bool:
        changed = self.model.set(self.target, tuple(self.rows))
        self.closed = True
        self.committed = True
        return changed

    def cancel(self) -> None:
        self.closed = True
