"""Map remote display names to filesystem-safe path segments."""

# Characters rejected by at least one common filesystem.
FORBIDDEN_CHARACTERS = ("<", ">", ":", '"', "/", "\\", "|", "?", "*")

_TRANSLATION = str.maketrans({char: "_" for char in FORBIDDEN_CHARACTERS})


def sanitize_name(name: str) -> str:
    """Return ``name`` made safe for use as a single path segment.

    Each forbidden character becomes one underscore (runs are not collapsed),
    then leading and trailing spaces are trimmed. Distinct names may map to
    the same result; callers do not get a uniqueness guarantee.

    Args:
        name: Display name as reported by Drive.

    Returns:
        Sanitized name.
    """
    return name.translate(_TRANSLATION).strip(" ")
