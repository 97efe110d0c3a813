"""Airtable destinations, one table per configured base ("partition")."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

from pyairtable import Api


class PartitionWriter(Protocol):
    def create(self, partition: str, row: dict[str, Any]) -> bool: ...


class AirtablePartitions:
    """Creates rows in the same-named table of one of several bases.

    Partition names match case-insensitively. ``create`` returns ``False``
    without writing anything when the partition is not configured.
    """

    def __init__(self, api_key: str, table_name: str, bases: Mapping[str, str], api: Api | None = None) -> None:
        self.api = api or Api(api_key)
        self.table_name = table_name
        self.bases = {name.lower(): base_id for name, base_id in bases.items()}
        self._tables: dict[str, Any] = {}

    def _table(self, partition: str):
        table = self._tables.get(partition)
        if table is None:
            table = self.api.table(self.bases[partition], self.table_name)
            self._tables[partition] = table
        return table

    def create(self, partition: str, row: dict[str, Any]) -> bool:
        key = partition.lower()
        if key not in self.bases:
            return False
        self._table(key).create(row, typecast=True)
        return True
