class SheetParseError(ValueError):
    """Terminal, non-retryable failure to turn a grid into typed data.

    Raised for an empty grid, a header-only grid, an unsupported file type,
    or a grid exceeding the configured row/column ceilings. No partial result
    accompanies it.
    """


__all__ = ["SheetParseError"]
