"""GATT service/characteristic UUIDs and record flags for the virtual sensor."""

from __future__ import annotations

CYCLING_POWER_SERVICE_UUID = "00001818-0000-1000-8000-00805f9b34fb"
CYCLING_POWER_MEASUREMENT_CHAR_UUID = "00002a63-0000-1000-8000-00805f9b34fb"
CYCLING_POWER_FEATURE_CHAR_UUID = "00002a65-0000-1000-8000-00805f9b34fb"
SENSOR_LOCATION_CHAR_UUID = "00002a5d-0000-1000-8000-00805f9b34fb"

CSC_SERVICE_UUID = "00001816-0000-1000-8000-00805f9b34fb"
CSC_MEASUREMENT_CHAR_UUID = "00002a5b-0000-1000-8000-00805f9b34fb"
CSC_FEATURE_CHAR_UUID = "00002a5c-0000-1000-8000-00805f9b34fb"

HEART_RATE_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HEART_RATE_MEASUREMENT_CHAR_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

# Cycling Power Measurement: no optional fields, power only
POWER_RECORD_FLAGS = 0x0000
# CSC Measurement: crank revolution data present
CSC_FLAG_CRANK_REVOLUTION_DATA = 1 << 1
CSC_FEATURE_CRANK_REVOLUTION_SUPPORTED = 1 << 1
# Heart Rate Measurement: u8 value format, no contact/energy/RR fields
HEART_RATE_RECORD_FLAGS = 0x00

SENSOR_LOCATION_REAR_HUB = 0x0D

POWER_RECORD_SIZE = 4
CRANK_RECORD_SIZE = 5
HEART_RATE_RECORD_SIZE = 2

# (service uuid, measurement uuid) pairs notified on every tick
MEASUREMENT_CHARACTERISTICS: tuple[tuple[str, str], ...] = (
    (CYCLING_POWER_SERVICE_UUID, CYCLING_POWER_MEASUREMENT_CHAR_UUID),
    (CSC_SERVICE_UUID, CSC_MEASUREMENT_CHAR_UUID),
    (HEART_RATE_SERVICE_UUID, HEART_RATE_MEASUREMENT_CHAR_UUID),
)
