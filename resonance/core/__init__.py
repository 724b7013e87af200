"""
Core - Engine infrastructure.

- config/      - Settings and factory functions
- interfaces/  - Protocols for DI
- connectors/  - Cache and catalog implementations (Redis, SQLite, memory)
- monitoring/  - Prometheus metrics
- errors.py    - Error hierarchy
- models.py    - Catalog records shared by all modules
"""
