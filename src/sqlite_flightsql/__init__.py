"""
SQLite Flight SQL Server

Serves the Flight SQL command vocabulary over Apache Arrow Flight, backed by a
single embedded SQLite connection. Metadata commands are answered with
generated SQL, prepared statements are tracked by opaque handles, and bind
parameters arrive as dense-union tagged values.
"""

__version__ = "0.1.0"
__author__ = "SQLite FlightSQL Team"

# Don't import server/dispatcher here so `python -m sqlite_flightsql.server`
# doesn't load the package modules twice.
# Users can import directly: from sqlite_flightsql.server import SQLiteFlightSqlServer

__all__ = ["__version__", "__author__"]
