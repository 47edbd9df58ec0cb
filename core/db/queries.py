"""
Secure Query Builder Module

Parameterized query building for the work cycle source. Values are always
passed as parameters; identifiers (table names) are validated before being
interpolated.
"""

import logging
import re
from datetime import datetime
from typing import Any, List, Optional, Tuple

from config import Config

logger = logging.getLogger(__name__)

# Columns read from the work cycle table, in result order
WORK_CYCLE_COLUMNS = [
    "work_cycles_id",
    "work_cycles_rec_name",
    "work_cycles_operator_rec_name",
    "work_cycles_operator_id",
    "work_cycles_work_center_rec_name",
    "work_cycles_duration",
    "work_cycles_quantity_done",
    "work_production_id",
    "work_production_number",
    "work_production_quantity",
    "work_production_routing_rec_name",
    "work_production_product_code",
    "work_production_create_date",
    "work_id",
    "work_rec_name",
    "data_corrupted",
]


class SecureQueryBuilder:
    """Secure query builder with parameterized queries and input validation."""

    @staticmethod
    def validate_table_name(table: str) -> bool:
        """
        Validate a (optionally schema-qualified) table name.

        Args:
            table: Table name to validate

        Returns:
            bool: True if the name is a plain SQL identifier
        """
        if not table or len(table) > 63:
            return False

        valid_pattern = re.compile(r'^[a-zA-Z_][a-zA-Z0-9_]*(\.[a-zA-Z_][a-zA-Z0-9_]*)?$')
        return bool(valid_pattern.match(table))

    def build_work_cycles_query(
        self,
        since: Optional[datetime] = None,
        table: Optional[str] = None
    ) -> Tuple[str, List[Any]]:
        """
        Build secure parameterized query for work cycle rows.

        Rows without a creation date are always returned; they stay eligible
        for every rolling window.

        Args:
            since: Only rows created at or after this timestamp
            table: Source table, defaults to Config.WORK_CYCLES_TABLE

        Returns:
            Tuple[str, List[Any]]: (query_string, parameters)

        Raises:
            ValueError: If the table name is not a valid identifier
        """
        table = table or Config.WORK_CYCLES_TABLE
        if not self.validate_table_name(table):
            raise ValueError(f"Invalid table name: {table}")

        columns = ",\n                ".join(WORK_CYCLE_COLUMNS)
        query = f"""
            SELECT
                {columns}
            FROM {table}
        """

        if since is not None:
            query += """
            WHERE work_production_create_date IS NULL
               OR work_production_create_date >= %s
            """
            parameters = [since]
        else:
            parameters = []

        query += "ORDER BY work_cycles_id ASC;"

        logger.info(f"Built secure work cycle query on {table} since {since or 'beginning'}")
        return query, parameters


# Global instance for convenience
secure_query_builder = SecureQueryBuilder()
