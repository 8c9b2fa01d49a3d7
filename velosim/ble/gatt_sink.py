"""Sample sinks: BLE GATT peripheral (bless) and a console stand-in."""

from __future__ import annotations

import contextlib
import importlib
from typing import Any, Callable, Optional, Protocol

from velosim.ble.constants import (
    CSC_FEATURE_CHAR_UUID,
    CSC_FEATURE_CRANK_REVOLUTION_SUPPORTED,
    CSC_MEASUREMENT_CHAR_UUID,
    CSC_SERVICE_UUID,
    CYCLING_POWER_FEATURE_CHAR_UUID,
    CYCLING_POWER_MEASUREMENT_CHAR_UUID,
    CYCLING_POWER_SERVICE_UUID,
    HEART_RATE_MEASUREMENT_CHAR_UUID,
    HEART_RATE_SERVICE_UUID,
    MEASUREMENT_CHARACTERISTICS,
    SENSOR_LOCATION_CHAR_UUID,
    SENSOR_LOCATION_REAR_HUB,
)
from velosim.ble.records import (
    SampleRecords,
    encode_crank_record,
    encode_heart_rate_record,
    encode_power_record,
)

_bless: Any
try:
    _bless = importlib.import_module("bless")
except ImportError:  # pragma: no cover - runtime dependency guard
    _bless = None


ConnectionCallback = Callable[[bool], None]


class SampleSink(Protocol):
    @property
    def consumer_attached(self) -> bool: ...

    async def start(self) -> None: ...

    async def publish(self, records: SampleRecords) -> None: ...

    async def stop(self) -> None: ...


def _ensure_bless_available() -> None:
    if _bless is None:
        raise RuntimeError("bless is not installed. Run: pip install 'velosim[ble]'")


class ConsoleSink:
    """Always-attached sink that optionally prints each record as hex."""

    def __init__(self, verbose: bool = False) -> None:
        self._verbose = verbose
        self.published = 0

    @property
    def consumer_attached(self) -> bool:
        return True

    async def start(self) -> None:
        if self._verbose:
            print("[BLE-SIM] console sink ready")

    async def publish(self, records: SampleRecords) -> None:
        self.published += 1
        if self._verbose:
            print(
                f"[BLE-SIM] power={records.power.hex(' ')} "
                f"crank={records.crank.hex(' ')} "
                f"hr={records.heart_rate.hex(' ')}"
            )

    async def stop(self) -> None:
        return None


class GattSensorSink:
    """Advertise power, cadence and heart rate services and notify samples."""

    def __init__(
        self,
        name: str = "Velosim Sensor",
        on_connection_change: Optional[ConnectionCallback] = None,
        debug: bool = False,
    ) -> None:
        self._name = name
        self._on_connection_change = on_connection_change
        self._debug = debug
        self._server: Optional[Any] = None
        self._connected = False

    @property
    def consumer_attached(self) -> bool:
        return self._connected

    async def start(self) -> None:
        _ensure_bless_available()
        server = _bless.BlessServer(name=self._name, name_overwrite=True)
        server.read_request_func = self._handle_read
        server.write_request_func = self._handle_write
        self._server = server

        properties = _bless.GATTCharacteristicProperties
        permissions = _bless.GATTAttributePermissions

        await server.add_new_service(CYCLING_POWER_SERVICE_UUID)
        await server.add_new_characteristic(
            CYCLING_POWER_SERVICE_UUID,
            CYCLING_POWER_MEASUREMENT_CHAR_UUID,
            properties.notify,
            bytearray(encode_power_record(0)),
            permissions.readable,
        )
        await server.add_new_characteristic(
            CYCLING_POWER_SERVICE_UUID,
            CYCLING_POWER_FEATURE_CHAR_UUID,
            properties.read,
            bytearray(bytes(4)),
            permissions.readable,
        )
        await server.add_new_characteristic(
            CYCLING_POWER_SERVICE_UUID,
            SENSOR_LOCATION_CHAR_UUID,
            properties.read,
            bytearray([SENSOR_LOCATION_REAR_HUB]),
            permissions.readable,
        )

        await server.add_new_service(CSC_SERVICE_UUID)
        await server.add_new_characteristic(
            CSC_SERVICE_UUID,
            CSC_MEASUREMENT_CHAR_UUID,
            properties.notify,
            bytearray(encode_crank_record(0, 0)),
            permissions.readable,
        )
        await server.add_new_characteristic(
            CSC_SERVICE_UUID,
            CSC_FEATURE_CHAR_UUID,
            properties.read,
            bytearray(CSC_FEATURE_CRANK_REVOLUTION_SUPPORTED.to_bytes(2, "little")),
            permissions.readable,
        )

        await server.add_new_service(HEART_RATE_SERVICE_UUID)
        await server.add_new_characteristic(
            HEART_RATE_SERVICE_UUID,
            HEART_RATE_MEASUREMENT_CHAR_UUID,
            properties.notify,
            bytearray(encode_heart_rate_record(0)),
            permissions.readable,
        )

        await server.start()
        if self._debug:
            print(f"[BLE] advertising as '{self._name}'")

    async def publish(self, records: SampleRecords) -> None:
        if self._server is None:
            raise RuntimeError("GATT sink not started")

        await self._refresh_connection()
        if not self._connected:
            return

        payloads = (records.power, records.crank, records.heart_rate)
        for (service_uuid, char_uuid), payload in zip(MEASUREMENT_CHARACTERISTICS, payloads):
            try:
                characteristic = self._server.get_characteristic(char_uuid)
                characteristic.value = bytearray(payload)
                self._server.update_value(service_uuid, char_uuid)
            except Exception as exc:  # pragma: no cover - BLE runtime variability
                if self._debug:
                    print(f"[BLE] notify {char_uuid} failed: {exc}")

    async def stop(self) -> None:
        if self._server is None:
            return
        with contextlib.suppress(Exception):
            await self._server.stop()
        self._server = None
        self._set_connected(False)

    async def _refresh_connection(self) -> None:
        assert self._server is not None
        try:
            connected = bool(await self._server.is_connected())
        except Exception as exc:  # pragma: no cover - BLE runtime variability
            if self._debug:
                print(f"[BLE] connection probe failed: {exc}")
            connected = False
        self._set_connected(connected)

    def _set_connected(self, connected: bool) -> None:
        if connected == self._connected:
            return
        self._connected = connected
        if self._debug:
            print(f"[BLE] consumer {'attached' if connected else 'detached'}")
        if self._on_connection_change is not None:
            self._on_connection_change(connected)

    def _handle_read(self, characteristic: Any, **_kwargs: Any) -> bytearray:
        value = getattr(characteristic, "value", None)
        return bytearray(value) if value is not None else bytearray()

    def _handle_write(self, characteristic: Any, value: Any, **_kwargs: Any) -> None:
        if self._debug:
            print(f"[BLE] ignored write to {characteristic.uuid}: {bytes(value).hex(' ')}")
