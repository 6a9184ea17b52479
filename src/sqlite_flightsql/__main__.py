"""Allow `python -m sqlite_flightsql`"""

from .server import main

main()
