from __future__ import annotations


class EngineError(ValueError):
    pass


class InvalidField(EngineError):
    def __init__(self, field: str, available: list[str] | None = None) -> None:
        self.field = field
        self.available = list(available or [])
        message = f"Column '{field}' not found in dataset."
        if self.available:
            message += f" Available columns: {', '.join(self.available)}"
        super().__init__(message)


class TypeMismatch(EngineError):
    def __init__(self, field: str, expected: str, given: str) -> None:
        self.field = field
        self.expected = expected
        self.given = given
        super().__init__(f"Column '{field}' requires {expected} but got {given}.")


class SpecRejected(EngineError):
    pass


class NoDataLoaded(EngineError):
    def __init__(self) -> None:
        super().__init__("No dataset is loaded.")


class DatasetLoadError(EngineError):
    pass
