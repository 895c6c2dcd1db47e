from smartcharge.core.config import Settings
from smartcharge.database.database import create_client, ensure_indexes


def init_db():
    settings = Settings.from_env()
    client = create_client(settings)
    try:
        ensure_indexes(client[settings.db_name])
    finally:
        client.close()
    print("✅ Índices creados correctamente")


if __name__ == "__main__":
    init_db()
