from __future__ import annotations

import sys
import uuid
from pathlib import Path

from mediasession2mqtt.const import MEDIASESSION_UUID_PATH
from mediasession2mqtt.logging_abstraction import get_logger

logger = get_logger(__name__)

MIN_PYTHON: tuple[int, int] = (3, 12)


def check_python_version() -> None:
    if sys.version_info < MIN_PYTHON:
        logger.error(
            "Python %s.%s or newer is required, running %s.%s",
            *MIN_PYTHON,
            *sys.version_info[:2],
        )
        sys.exit(1)


def check_for_uuid(uuid_path: str | Path = MEDIASESSION_UUID_PATH) -> uuid.UUID:
    """Load the device UUID used as the discovery serial number, creating it on first run."""
    lp = "check_uuid:"
    uuid_file = Path(uuid_path).expanduser().resolve()
    try:
        uuid_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        logger.exception("%s Failed to create data directory: %s - Exiting...", lp, uuid_file.parent)
        sys.exit(1)

    try:
        uuid_from_disk = uuid_file.read_text().strip() if uuid_file.exists() else ""
    except PermissionError:
        logger.exception("%s PermissionError: Unable to read %s. Please check permissions.", lp, uuid_file)
        uuid_from_disk = ""

    if uuid_from_disk:
        try:
            uuid_obj = uuid.UUID(uuid_from_disk)
        except ValueError:
            logger.warning("%s Malformed UUID in %s: %s", lp, uuid_file, uuid_from_disk)
        else:
            if uuid_obj.version == 4:
                logger.info("%s UUID found in %s for the MQTT device", lp, uuid_file)
                return uuid_obj
            logger.warning("%s Invalid UUID version in %s: %s", lp, uuid_file, uuid_from_disk)
    else:
        logger.info("%s No uuid.txt found in %s", lp, uuid_file.parent)

    device_uuid = uuid.uuid4()
    logger.debug("%s Creating and caching a new UUID for the MQTT device", lp)
    try:
        _ = uuid_file.write_text(str(device_uuid))
    except OSError:
        logger.exception("%s Unable to write %s, the UUID will change on restart", lp, uuid_file)
    return device_uuid
