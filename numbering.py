"""Work order numbering: ``WO-00001``, ``WO-00002``, ..."""

from errors import ValidationError

WO_PREFIX = "WO-"


def format_wo_number(value):
    return f"{WO_PREFIX}{value:05d}"


class NumberingSequence:
    """
    Persisted counter behind work order numbers.

    ``peek_next`` labels a new record without consuming anything; ``advance``
    is called once the record is in the ledger, so a rejected form never burns
    a number. Numbers are never reused, even after a delete.
    """

    def __init__(self, value=1):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(f"Sequence value must be a positive integer, got {value!r}")
        self._value = value

    @property
    def value(self):
        return self._value

    def peek_next(self):
        return format_wo_number(self._value)

    def advance(self):
        self._value += 1
        return self._value
