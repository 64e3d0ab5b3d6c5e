# Internal
from typing import Any, Dict, List, Optional
import os
import shutil
import glob
from datetime import datetime

# External
from pydantic import TypeAdapter
from tinydb import TinyDB, Query
from tinydb.storages import Storage


def to_document(item: Any) -> Dict[str, Any]:
    """Serialize a pydantic dataclass into a JSON-safe dict for storage."""
    return TypeAdapter(type(item)).dump_python(item, mode="json")


class Database:
    def __init__(
            self,
            db_path: str = "welfare_database.json",
            storage: Optional[type[Storage]] = None,
            max_backups: int = 5
    ):
        self.db_path = db_path
        self.max_backups = max_backups
        self.default_db_name = "welfare_database.json"

        if storage is None:
            self.db = TinyDB(db_path, create_dirs=True, encoding="utf-8")
        else:
            self.db_path = ""
            self.db = TinyDB(storage=storage)

        self.query = Query()

    def _create_backup(self):
        if self.default_db_name in self.db_path and os.path.exists(self.db_path):
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_path = f"{os.path.splitext(self.db_path)[0]}_{timestamp}_bak.json"

            shutil.copy2(self.db_path, backup_path)

            backup_pattern = f"{os.path.splitext(self.db_path)[0]}_*_bak.json"
            backup_files = sorted(glob.glob(backup_pattern), key=os.path.getmtime, reverse=True)

            if len(backup_files) > self.max_backups:
                for old_backup in backup_files[self.max_backups:]:
                    os.remove(old_backup)

    def _build_query(self, condition: Dict[str, Any]):
        query_obj = None
        for key, value in condition.items():
            if query_obj is None:
                query_obj = (self.query[key] == value)
            else:
                query_obj &= (self.query[key] == value)

        return query_obj

    def insert(self, table_name: str, data: Dict[str, Any]) -> int:
        table = self.db.table(table_name)
        result = table.insert(data)
        self._create_backup()
        return result

    def get_all(self, table_name: str) -> List[Dict[str, Any]]:
        table = self.db.table(table_name)
        return table.all()

    def search(self, table_name: str, condition: Dict[str, Any]) -> List[Dict[str, Any]]:
        table = self.db.table(table_name)
        query_obj = self._build_query(condition)

        return table.search(query_obj) if query_obj else []

    def update(self, table_name: str, data: Dict[str, Any], condition: Dict[str, Any]) -> List[int]:
        table = self.db.table(table_name)
        query_obj = self._build_query(condition)

        result = table.update(data, query_obj) if query_obj else []
        self._create_backup()
        return result

    def next_id(self, table_name: str) -> str:
        """Sequential string ids, ignoring any legacy non-integer id."""
        highest_id = -1
        for item in self.get_all(table_name):
            try:
                item_id = int(item["id"])
                if item_id > highest_id:
                    highest_id = item_id
            except (KeyError, ValueError):
                pass

        return str(highest_id + 1)

    def close(self) -> None:
        self.db.close()
