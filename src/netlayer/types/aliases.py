"""Type aliases using modern PEP 695 syntax."""

from collections.abc import Mapping

# Header maps are plain str -> str; lookups go through case-insensitive helpers
type Headers = Mapping[str, str]

# Scalar values accepted as query parameter values
type QueryScalar = str | int | float | bool
