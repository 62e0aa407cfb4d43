"""Engine errors."""


class DataConsistencyError(Exception):
    """World state violates an ownership invariant (orphaned or doubly owned affiliation)."""

    def __init__(self, message: str = "Inconsistent world data"):
        self.message = message
        super().__init__(self.message)


class ActionRejectedError(Exception):
    """Player action not allowed in the current phase."""

    def __init__(self, message: str = "Action rejected"):
        self.message = message
        super().__init__(self.message)
