# ledger_sync/init_db.py
from ledger_sync.db import Base, engine
import ledger_sync.models  # noqa: F401  (registers all tables on Base.metadata)


def main() -> None:
    if engine is None:
        raise SystemExit("DATABASE_URL is not set")
    Base.metadata.create_all(bind=engine)


if __name__ == "__main__":
    main()
