"""Human-readable byte counts."""

_UNITS = ("K", "M", "G", "T")


def file_size(n: int) -> str:
    """Format a byte count compactly.

    Counts below 1024 are returned as plain integers. Larger counts get one
    decimal place and a unit suffix, escalating up to ``T`` and no further.

    Examples:
        >>> file_size(512)
        '512'
        >>> file_size(1536)
        '1.5K'
        >>> file_size(1048576)
        '1.0M'
    """
    if n < 1024:
        return str(n)

    value = n / 1024
    unit = _UNITS[0]
    for unit in _UNITS:
        if value < 1024 or unit == _UNITS[-1]:
            break
        value /= 1024
    return f"{value:.1f}{unit}"
