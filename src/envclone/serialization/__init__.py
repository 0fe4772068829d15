"""JSON encoding of row values for reports, backups and JSON columns."""

from envclone.serialization.json import CloneJSONEncoder, json_dumps, json_loads

__all__ = ["CloneJSONEncoder", "json_dumps", "json_loads"]
