"""
Error taxonomy.

- `SourceLoadError`: a dataset failed to fetch or parse. Fatal at startup.
- `UnrecognisedDatasetError`: a remote dataset name that is not configured.
- `FilterInputError`: filter criteria outside their declared domain.

The last two also subclass `ValueError`, so the API and CLI report them the same
way they report any other validation problem.
"""

from __future__ import annotations


class ParkFinderError(Exception):
    """Base class for all ParkFinder errors."""


class SourceLoadError(ParkFinderError):
    """A named data source could not be loaded."""

    def __init__(self, source: str, cause: BaseException | str):
        self.source = source
        self.cause = cause
        super().__init__(f"Failed to load source '{source}': {cause}")


class UnrecognisedDatasetError(ParkFinderError, ValueError):
    """The requested remote dataset is not in the configured dataset map."""

    def __init__(self, dataset: str):
        self.dataset = dataset
        super().__init__(f"Unrecognised dataset {dataset}")


class FilterInputError(ParkFinderError, ValueError):
    """A filter criterion is outside its declared domain."""
