"""
SQL text quoting for generated metadata queries

Filter values from Flight SQL requests are spliced into generated SQL. Every
such value goes through quote_literal() first so a crafted filter such as
``x' OR '1'='1`` stays a single string literal.
"""


def quote_literal(value: str) -> str:
    """
    Render a value as a SQLite string literal.

    Args:
        value: Raw text taken from a request field

    Returns:
        The value wrapped in single quotes, embedded single quotes doubled
    """
    return "'" + str(value).replace("'", "''") + "'"


def quote_identifier(name: str) -> str:
    """
    Render a name as a SQLite delimited identifier.

    Embedded double quotes are doubled, so any text is a valid identifier.
    """
    return '"' + str(name).replace('"', '""') + '"'
