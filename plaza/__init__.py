"""
Plaza — Accounts, Moderation & Global Chat with a Coin Economy
================================================================
A small multi-user site: members register, earn coins by redeeming promo
codes, and talk in one global realtime chat room.  Admins moderate through
a privileged panel (bans, promotions, promo codes).

Package layout::

    plaza/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Domain error taxonomy (HTTP status + code)
    ├── __main__.py        # ``python -m plaza`` → uvicorn
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async helper
    │   └── models.py      # ORM models (accounts, promo codes, chat, sessions…)
    ├── engine/
    │   ├── ban_policy.py  # Pure ban predicate + mutators
    │   └── profanity.py   # Pluggable word-masking filter
    ├── services/
    │   ├── session_service.py  # Opaque server-side session tokens
    │   ├── account_service.py  # Registration + login
    │   ├── promo_service.py    # Promo ledger with atomic redemption
    │   ├── admin_service.py    # Audit-logged admin mutations
    │   ├── chat_service.py     # Chat broadcast pipeline
    │   └── log_buffer.py       # In-memory log ring buffer
    └── api/
        ├── main.py        # FastAPI app + Socket.IO mount
        ├── deps.py        # Guards + dependency injection
        ├── rate_limit.py  # Per-client sliding-window limiter
        ├── realtime.py    # Socket.IO event handlers
        └── routes/        # Auth, user and admin REST endpoints
"""

__version__ = "0.1.0"
