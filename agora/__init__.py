"""
Agora — Backend API for a Social-Debate Platform
==================================================
User accounts, comments, notifications and metrics export, plus a thin
HTTP/GraphQL facade over the debate chain (claims, arguments, stakes,
rewards).

Package layout::

    agora/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Coin, metrics and user-group constants
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models
    ├── engine/
    │   ├── chain.py       # Chain record types (claims, stakes, txs)
    │   ├── mentions.py    # @mention parsing and translation
    │   ├── metrics.py     # Metrics accumulation + CSV rows
    │   ├── notifications.py  # Notification requests + rendering
    │   └── validators.py  # Email / username / brand regexes
    ├── services/
    │   ├── chain_client.py        # httpx chain query client
    │   ├── comment_service.py     # Comment persistence
    │   ├── metrics_service.py     # Report orchestration
    │   ├── notification_dispatcher.py  # Queues + workers
    │   ├── notification_service.py     # notification_events access
    │   ├── push_client.py         # Push endpoint delivery
    │   ├── stats_service.py       # Views / replies / flags summaries
    │   └── user_service.py        # Users, profiles, mention lookups
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection + JWT
        ├── schema.py      # graphene schema
        └── routes/        # comments, metrics, graphql
"""

__version__ = "0.1.0"
