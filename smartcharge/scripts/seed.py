import argparse

from smartcharge.core.config import Settings
from smartcharge.database.database import create_client, ensure_indexes, utcnow
from smartcharge.models.models import PowerType, StationStatus

DEMO_USER = {"_id": "demo-user", "email": "demo@smartcharge.local", "name": "Demo User"}

DEMO_STATIONS = [
    {
        "_id": 1,
        "name": "Station Bastille A1",
        "latitude": 48.8534,
        "longitude": 2.3688,
        "address": "1 Place de la Bastille, 75011 Paris",
        "city": "Paris",
        "power_type": PowerType.AC_FAST.value,
        "max_power": 22.0,
        "device_id": "ESP32-BASTILLE-001",
    },
    {
        "_id": 2,
        "name": "Station République B2",
        "latitude": 48.8673,
        "longitude": 2.3638,
        "address": "Place de la République, 75003 Paris",
        "city": "Paris",
        "power_type": PowerType.DC_FAST.value,
        "max_power": 50.0,
        "device_id": "ESP32-REPUBLIQUE-002",
    },
    {
        "_id": 3,
        "name": "Station Montparnasse C3",
        "latitude": 48.8421,
        "longitude": 2.3219,
        "address": "Gare Montparnasse, 75015 Paris",
        "city": "Paris",
        "power_type": PowerType.AC_SLOW.value,
        "max_power": 7.4,
        "device_id": "ESP32-MONTPARNASSE-003",
    },
    {
        "_id": 4,
        "name": "Station Saint-Lazare D4",
        "latitude": 48.8762,
        "longitude": 2.3255,
        "address": "Gare Saint-Lazare, 75008 Paris",
        "city": "Paris",
        "power_type": PowerType.AC_FAST.value,
        "max_power": 22.0,
        "device_id": "ESP32-SAINTLAZARE-004",
    },
]


def _fields(doc: dict) -> dict:
    return {k: v for k, v in doc.items() if k != "_id"}


def seed(db) -> dict:
    """Inserta (o actualiza) el usuario y las estaciones de demo."""
    ensure_indexes(db)
    db.users.update_one(
        {"_id": DEMO_USER["_id"]},
        {"$set": _fields(DEMO_USER), "$setOnInsert": {"created_at": utcnow()}},
        upsert=True,
    )
    for st in DEMO_STATIONS:
        db.stations.update_one(
            {"_id": st["_id"]},
            {"$set": _fields(st), "$setOnInsert": {"status": StationStatus.AVAILABLE.value, "last_ping": None}},
            upsert=True,
        )
    return {"users": 1, "stations": len(DEMO_STATIONS)}


def main():
    p = argparse.ArgumentParser(description="Cargar estaciones y usuario de demo")
    p.add_argument("--db", default=None, help="Nombre de la base (por defecto DB_NAME)")
    args = p.parse_args()

    settings = Settings.from_env()
    client = create_client(settings)
    try:
        counts = seed(client[args.db or settings.db_name])
    finally:
        client.close()
    print(f"✅ Demo cargada: {counts['stations']} estaciones, {counts['users']} usuario")


if __name__ == "__main__":
    main()
