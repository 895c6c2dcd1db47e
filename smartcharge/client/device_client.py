"""Cliente de sondeo que reproduce el ciclo del firmware de la estación.

La estación pide su configuración al arrancar y después, cada
``reportInterval`` milisegundos, sube una lectura y ejecuta el comando que
venga en la respuesta (``"NONE"`` si no hay nada pendiente).
"""

import logging
import os
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

NO_COMMAND = "NONE"
DEFAULT_TIMEOUT = float(os.getenv("DEVICE_TIMEOUT", "10"))


class DeviceClient:
    def __init__(
        self,
        base_url: str,
        station_id: int,
        api_key: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.station_id = station_id
        self.report_interval_ms = 5000
        headers = {"x-api-key": api_key} if api_key else {}
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout or DEFAULT_TIMEOUT,
            transport=transport,
        )

    @property
    def url(self) -> str:
        return f"/api/iot/stations/{self.station_id}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def fetch_config(self) -> dict:
        """Configuración de arranque; ajusta el intervalo de sondeo."""
        resp = self._client.get(self.url)
        resp.raise_for_status()
        data = resp.json().get("data", {})
        self.report_interval_ms = int(data.get("reportInterval", self.report_interval_ms))
        return data

    def send_telemetry(self, **readings) -> str:
        """Sube una lectura y devuelve el comando recibido.

        Los errores HTTP o de red no se propagan: la estación vuelve a intentar
        en el siguiente ciclo, igual que el firmware.
        """
        body = {k: v for k, v in readings.items() if v is not None}
        try:
            resp = self._client.post(self.url, json=body)
        except httpx.HTTPError as exc:
            logger.warning("Estación %s: fallo de red al enviar telemetría: %s", self.station_id, exc)
            return NO_COMMAND
        if resp.status_code != 200:
            logger.warning("Estación %s: HTTP %s - %s", self.station_id, resp.status_code, resp.text)
            return NO_COMMAND
        data = resp.json()
        command = data.get("command") or (data.get("data") or {}).get("command")
        return command or NO_COMMAND

    def run(
        self,
        read_sensors: Callable[[], dict],
        on_command: Callable[[str], None],
        cycles: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        done = 0
        while cycles is None or done < cycles:
            command = self.send_telemetry(**read_sensors())
            if command != NO_COMMAND:
                logger.info("Estación %s: comando %s recibido", self.station_id, command)
                on_command(command)
            done += 1
            if cycles is None or done < cycles:
                sleep(self.report_interval_ms / 1000)


__all__ = ["DeviceClient", "NO_COMMAND"]
