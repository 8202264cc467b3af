"""
Configuration loading for Modwatch.

- **app_configuration.py**: YAML configuration accessor guarded by fcntl locks.
- **monitor_settings.py**: jsonschema-validated, immutable monitor and rule settings.
- **ai_settings.py**: Typed accessors for the analysis model settings.
"""
