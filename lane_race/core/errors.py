class LaneRaceError(Exception):
    """Base class for every error raised by lane_race."""


class SimulationExhaustedError(LaneRaceError, RuntimeError):
    """A race hit its tick cap before any lane reached the finish line.

    The rules can never terminate for this input; fix the rules, do not retry.
    """


class InvalidScoreTupleError(LaneRaceError, ValueError):
    """A score tuple is unsorted, the wrong length, or out of range."""


class CheckpointMismatchError(LaneRaceError):
    """A checkpoint was produced with different trials or rules."""


class TableFormatError(LaneRaceError, ValueError):
    """Packed table data or its manifest is malformed."""


class TableBuildError(LaneRaceError):
    """A worker failed while estimating one table entry."""

    def __init__(self, index: int, reason: str) -> None:
        super().__init__(index, reason)
        self.index = index
        self.reason = reason

    def __str__(self) -> str:
        return f"table build failed at index {self.index}: {self.reason}"
