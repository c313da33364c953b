from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence

from staffhub.schemas import EmployeeRead


class EmployeeSelector:
    """Searchable multi-select over employees. Never talks to the server."""

    def __init__(self, employees: Sequence[EmployeeRead] = (), selected: Iterable[uuid.UUID] = ()):
        self.employees: list[EmployeeRead] = list(employees)
        self.search = ""
        self._selected: list[uuid.UUID] = []
        self.set_selected(selected)

    @property
    def selected(self) -> list[uuid.UUID]:
        return list(self._selected)

    def set_employees(self, employees: Sequence[EmployeeRead]) -> None:
        self.employees = list(employees)

    def set_selected(self, employee_ids: Iterable[uuid.UUID]) -> None:
        self._selected = []
        for employee_id in employee_ids:
            if employee_id not in self._selected:
                self._selected.append(employee_id)

    def is_selected(self, employee_id: uuid.UUID) -> bool:
        return employee_id in self._selected

    def toggle(self, employee_id: uuid.UUID) -> list[uuid.UUID]:
        if employee_id in self._selected:
            self._selected.remove(employee_id)
        else:
            self._selected.append(employee_id)
        return self.selected

    def clear(self) -> None:
        self._selected = []
        self.search = ""

    def visible(self) -> list[EmployeeRead]:
        needle = self.search.strip().lower()
        if not needle:
            return list(self.employees)
        return [
            item
            for item in self.employees
            if needle in item.name.lower() or needle in item.employee_id.lower()
        ]

    def summary(self) -> str:
        count = len(self._selected)
        if count == 0:
            return "Select employees"
        return f"{count} employee{'s' if count != 1 else ''} selected"
