"""
Database migrations for the filter preset store.

Migrations are executed in filename order and tracked in the migrations table.
Each migration is a .sql file with a version prefix and a descriptive name.

Migration naming convention: XXX_description.sql
Example: 001_initial_schema.sql, 002_add_preset_indexes.sql
"""
