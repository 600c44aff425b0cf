"""
Database abstraction layer — reference population of completed assessments.

PopulationStore is the capability handed to the ranking engine. SQLPopulationStore
is the live SQLAlchemy implementation (SQLite or PostgreSQL); UnavailableStore
stands in when no connection exists.
"""

from lovebrain.database.models import PopulationRecord
from lovebrain.database.population import (
    PopulationStore,
    SQLPopulationStore,
    UnavailableStore,
    connect_population_store,
)

__all__ = [
    "PopulationRecord",
    "PopulationStore",
    "SQLPopulationStore",
    "UnavailableStore",
    "connect_population_store",
]
