"""
Preset library for saving and loading named filter configurations.
"""

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from ..constants import PRESET_CONFIG
from ..exceptions import PresetNotFoundError, PresetSaveError
from ..utils.validators import validate_filter_config, validate_preset_name
from .database import PresetDatabase
from .models import AdvancedFilterConfig

logger = logging.getLogger(__name__)


@dataclass
class FilterPreset:
    """A saved filter configuration."""

    id: str
    name: str
    description: str
    config: AdvancedFilterConfig
    author: str
    created_at: datetime
    updated_at: datetime
    tags: list[str]

    @classmethod
    def from_database_row(cls, row_data: dict[str, Any]) -> "FilterPreset":
        """Create FilterPreset from database row data."""
        return cls(
            id=row_data["id"],
            name=row_data["name"],
            description=row_data.get("description") or "",
            config=AdvancedFilterConfig.from_dict(json.loads(row_data["config"])),
            author=row_data.get("author") or "system",
            created_at=datetime.fromisoformat(row_data["created_at"]),
            updated_at=datetime.fromisoformat(row_data["updated_at"]),
            tags=row_data.get("tags", []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "config": self.config.to_dict(),
            "author": self.author,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "tags": self.tags,
        }


class PresetLibrary:
    """High-level operations for filter presets."""

    def __init__(self, db_path: Optional[str] = None):
        self.db = PresetDatabase(db_path)

    def get_preset_by_id(self, preset_id: str) -> Optional[FilterPreset]:
        row_data = self.db.get_preset_by_id(preset_id)
        if not row_data:
            return None
        return FilterPreset.from_database_row(row_data)

    def get_preset_by_name(self, name: str) -> Optional[FilterPreset]:
        row_data = self.db.get_preset_by_name(name)
        if not row_data:
            return None
        return FilterPreset.from_database_row(row_data)

    def load_config(self, preset_ref: str) -> AdvancedFilterConfig:
        """Return the config of a preset looked up by id, then by name."""
        preset = self.get_preset_by_id(preset_ref) or self.get_preset_by_name(preset_ref)
        if not preset:
            raise PresetNotFoundError(preset_ref)
        return preset.config

    def search_presets(self, search_term: str = "", tag: str = "", author: str = "") -> list[FilterPreset]:
        rows = self.db.search_presets(search_term=search_term, tag=tag, author=author)
        return [FilterPreset.from_database_row(row) for row in rows]

    def save_preset(
        self,
        config: AdvancedFilterConfig,
        name: str,
        description: str = "",
        author: str = "system",
        tags: Optional[list[str]] = None,
    ) -> FilterPreset:
        """Save config under name, replacing any preset already using that name.

        Raises:
            PresetSaveError: if the name is invalid or the database write fails
        """
        if not validate_preset_name(name):
            raise PresetSaveError(f"Invalid preset name: {name!r}")

        name = name.strip()
        tags = sorted({t.strip() for t in tags or [] if t and t.strip()})
        if len(tags) > PRESET_CONFIG["MAX_TAGS"]:
            raise PresetSaveError(f"Too many tags. Maximum allowed: {PRESET_CONFIG['MAX_TAGS']}")

        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO filter_presets (id, name, description, config, author)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        description = excluded.description,
                        config = excluded.config,
                        author = excluded.author,
                        updated_at = CURRENT_TIMESTAMP,
                        is_active = TRUE
                """,
                    (str(uuid.uuid4()), name, description, json.dumps(config.to_dict()), author),
                )

                preset_id = conn.execute("SELECT id FROM filter_presets WHERE name = ?", (name,)).fetchone()[0]

                conn.execute("DELETE FROM preset_tags WHERE preset_id = ?", (preset_id,))
                for tag in tags:
                    conn.execute("INSERT INTO preset_tags (preset_id, tag) VALUES (?, ?)", (preset_id, tag))

                conn.commit()

        except sqlite3.Error as e:
            raise PresetSaveError(f"Failed to save preset '{name}': {e}") from e

        logger.info(f"Saved preset '{name}' ({preset_id})")
        return self.get_preset_by_id(preset_id)

    def delete_preset(self, preset_id: str) -> bool:
        """Deactivate a preset. Returns False when no active preset has that id."""
        with self.db.get_connection() as conn:
            cursor = conn.execute(
                "UPDATE filter_presets SET is_active = FALSE, updated_at = CURRENT_TIMESTAMP "
                "WHERE id = ? AND is_active = TRUE",
                (preset_id,),
            )
            conn.commit()
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted preset {preset_id}")
        return deleted

    def import_presets_from_json(self, json_file_path: str) -> dict[str, Any]:
        """Import presets from a JSON file with a top-level 'presets' list."""
        try:
            with open(json_file_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.exception(f"Failed to read presets from {json_file_path}: {e}")
            return {"success": False, "error": str(e), "source_file": json_file_path}

        imported = 0
        failed = 0
        errors = []

        for preset_data in data.get("presets", []):
            name = preset_data.get("name", "unknown")
            is_valid, config_errors = validate_filter_config(preset_data.get("config", {}))
            if not is_valid:
                failed += 1
                errors.append(f"Invalid config for preset '{name}': {'; '.join(config_errors)}")
                continue

            try:
                self.save_preset(
                    AdvancedFilterConfig.from_dict(preset_data.get("config")),
                    name,
                    description=preset_data.get("description", ""),
                    author=preset_data.get("author", "system"),
                    tags=preset_data.get("tags", []),
                )
                imported += 1
            except PresetSaveError as e:
                failed += 1
                errors.append(str(e))

        logger.info(f"Import completed: {imported} successful, {failed} failed")

        return {
            "success": True,
            "imported_count": imported,
            "failed_count": failed,
            "errors": errors,
            "source_file": json_file_path,
        }

    def export_presets_to_json(self, output_file_path: str, tag: str = "") -> dict[str, Any]:
        """Export active presets to a JSON file that import_presets_from_json accepts."""
        presets = self.search_presets(tag=tag)

        export_data = {
            "metadata": {
                "version": PRESET_CONFIG["EXPORT_VERSION"],
                "exported_at": datetime.now().isoformat(),
                "preset_count": len(presets),
                "tag": tag or "all",
            },
            "presets": [
                {
                    "name": preset.name,
                    "description": preset.description,
                    "author": preset.author,
                    "tags": preset.tags,
                    "config": preset.config.to_dict(),
                }
                for preset in presets
            ],
        }

        try:
            with open(output_file_path, "w", encoding="utf-8") as f:
                json.dump(export_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.exception(f"Failed to export to {output_file_path}: {e}")
            return {"success": False, "error": str(e)}

        logger.info(f"Exported {len(presets)} presets to {output_file_path}")
        return {"success": True, "exported_count": len(presets), "output_file": output_file_path}

    def get_database_stats(self) -> dict[str, Any]:
        """Database health plus a per-tag preset breakdown."""
        health = self.db.get_health_check()
        if health.get("status") != "healthy":
            return health

        tag_breakdown: dict[str, int] = {}
        for preset in self.search_presets():
            for tag in preset.tags:
                tag_breakdown[tag] = tag_breakdown.get(tag, 0) + 1

        health["tag_breakdown"] = tag_breakdown
        return health
