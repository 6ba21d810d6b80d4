"""Autocomplete values remembered per form field."""

FIELDS = ("component", "sub_component", "manpower", "material")


class SuggestionRegistry:
    def __init__(self, data=None):
        self._values = {name: [] for name in FIELDS}
        for name, values in (data or {}).items():
            if name in self._values and isinstance(values, list):
                for value in values:
                    self.add(name, value)

    def add(self, field, value):
        """Remember ``value`` for ``field`` unless it is blank or already known."""
        if not isinstance(value, str) or not value.strip():
            return False
        values = self._values.setdefault(field, [])
        if value in values:
            return False
        values.append(value)
        return True

    def add_many(self, field, values):
        for value in values:
            self.add(field, value)

    def get(self, field):
        return list(self._values.get(field, []))

    def to_dict(self):
        return {name: list(values) for name, values in self._values.items()}
