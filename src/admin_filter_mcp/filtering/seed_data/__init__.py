"""
Seed data for the filter tools.

- sample_users.json: a small user directory for trying filters without a data source
- default_presets.json: presets imported into a fresh preset database
"""
